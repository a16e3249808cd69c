"""Completion provider protocol for pluggable language model backends."""

from collections.abc import AsyncIterator, Sequence
from typing import Literal, Protocol, runtime_checkable

from pydantic import BaseModel


class ChatTurn(BaseModel):
    """One earlier message of the conversation."""

    role: Literal["user", "assistant"]
    content: str


class StreamChunk(BaseModel):
    """An increment of streamed output. The last chunk has ``done`` set."""

    text: str = ""
    done: bool = False


def build_messages(user: str, history: Sequence[ChatTurn] = ()) -> list[dict[str, str]]:
    """Chat messages for the history followed by the new user turn."""
    messages = [{"role": turn.role, "content": turn.content} for turn in history]
    messages.append({"role": "user", "content": user})
    return messages


@runtime_checkable
class CompletionProvider(Protocol):
    """Protocol for chat completion backends.

    Failures raise TransientProviderError (timeouts, rate limits, 5xx) or
    ConfigurationError (bad credentials, unknown model). Callers decide how
    to degrade.
    """

    async def complete(self, system: str, user: str, history: Sequence[ChatTurn] = ()) -> str:
        """Return the full completion text."""
        ...

    def stream(
        self, system: str, user: str, history: Sequence[ChatTurn] = ()
    ) -> AsyncIterator[str]:
        """Yield text increments. Closing the iterator releases the connection."""
        ...

    async def close(self) -> None:
        """Release resources."""
        ...
