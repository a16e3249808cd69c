"""Anthropic chat completion client (optional ``anthropic`` extra)."""

import logging
import os
from collections.abc import AsyncIterator, Sequence
from typing import Any

import anthropic

from helpdesk_rag.config import get_anthropic_model, get_provider_timeout
from helpdesk_rag.errors import ConfigurationError, TransientProviderError
from helpdesk_rag.llm.provider import ChatTurn, build_messages

logger = logging.getLogger(__name__)

MAX_TOKENS = 4096

# Errors worth retrying; anything else from the API is a request or credential problem
_TRANSIENT_ERRORS = (
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


class AnthropicCompletionClient:
    """Generates answers via the Anthropic Messages API."""

    def __init__(self, client: Any = None, *, model: str | None = None) -> None:
        """Initialize with lazy client creation."""
        self._client = client
        self._model = model or get_anthropic_model()

    def _get_client(self) -> Any:
        if self._client is None:
            if not os.environ.get("ANTHROPIC_API_KEY"):
                raise ConfigurationError("ANTHROPIC_API_KEY not set")
            self._client = anthropic.AsyncAnthropic()
        return self._client

    def _kwargs(self, system: str, user: str, history: Sequence[ChatTurn]) -> dict[str, Any]:
        return {
            "model": self._model,
            "max_tokens": MAX_TOKENS,
            "system": system,
            "messages": build_messages(user, history),
            "timeout": get_provider_timeout(),
        }

    async def complete(self, system: str, user: str, history: Sequence[ChatTurn] = ()) -> str:
        """Return the full completion text."""
        client = self._get_client()
        try:
            response = await client.messages.create(**self._kwargs(system, user, history))
        except _TRANSIENT_ERRORS as exc:
            raise TransientProviderError(f"Anthropic request failed: {exc}") from exc
        except anthropic.APIStatusError as exc:
            raise ConfigurationError(f"Anthropic rejected the request: {exc}") from exc
        return "".join(block.text for block in response.content if block.type == "text")

    async def stream(
        self, system: str, user: str, history: Sequence[ChatTurn] = ()
    ) -> AsyncIterator[str]:
        """Yield text increments; closing the generator closes the SDK stream."""
        client = self._get_client()
        try:
            async with client.messages.stream(**self._kwargs(system, user, history)) as stream:
                async for text in stream.text_stream:
                    yield text
        except _TRANSIENT_ERRORS as exc:
            raise TransientProviderError(f"Anthropic stream failed: {exc}") from exc
        except anthropic.APIStatusError as exc:
            raise ConfigurationError(f"Anthropic rejected the request: {exc}") from exc

    async def close(self) -> None:
        """Close the Anthropic client if open."""
        if self._client is not None:
            await self._client.close()
            self._client = None
