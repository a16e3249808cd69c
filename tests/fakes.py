"""Fake collaborators shared by tests."""

from collections.abc import AsyncIterator, Sequence

from helpdesk_rag.errors import ConfigurationError, TransientProviderError
from helpdesk_rag.llm.provider import ChatTurn
from helpdesk_rag.models.item import KnowledgeItem, SourceType


class MemoryKnowledgeStore:
    """KnowledgeStore kept in a dict, with a save log and per-source failures."""

    def __init__(self, items: dict[SourceType, list[KnowledgeItem]] | None = None):
        self.items: dict[SourceType, list[KnowledgeItem]] = {
            k: list(v) for k, v in (items or {}).items()
        }
        self.broken: set[SourceType] = set()
        self.saves: list[SourceType] = []

    async def load(self, source_type: SourceType) -> list[KnowledgeItem]:
        if source_type in self.broken:
            raise ConfigurationError(f"{source_type.value} credentials missing")
        return list(self.items.get(source_type, []))

    async def save(self, source_type: SourceType, items: list[KnowledgeItem]) -> None:
        self.saves.append(source_type)
        self.items[source_type] = list(items)


class FakeEmbedder:
    """Deterministic fake embedder driven by substring rules.

    The first rule whose key occurs in the (lower-cased) text decides the
    vector; anything else embeds to the zero vector, which is never similar
    to anything.
    """

    def __init__(self, rules: Sequence[tuple[str, list[float]]] = (), dim: int = 3):
        self.rules = list(rules)
        self.dim = dim
        self.fail = False
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise TransientProviderError("embedding backend down")
        lowered = text.lower()
        for key, vector in self.rules:
            if key in lowered:
                return list(vector)
        return [0.0] * self.dim

    async def close(self) -> None:
        pass


class FakeLLM:
    """Controllable fake completion provider."""

    def __init__(self, response: str = "Try reconnecting the VPN client."):
        self.response = response
        self.chunks: list[str] | None = None
        self.fail = False
        self.fail_after_chunks: int | None = None
        self.complete_count = 0
        self.last_system: str | None = None
        self.last_user: str | None = None
        self.last_history: list[ChatTurn] = []
        self.stream_closed = False

    async def complete(self, system: str, user: str, history: Sequence[ChatTurn] = ()) -> str:
        self.complete_count += 1
        self.last_system, self.last_user, self.last_history = system, user, list(history)
        if self.fail:
            raise TransientProviderError("completion backend down")
        return self.response

    async def stream(
        self, system: str, user: str, history: Sequence[ChatTurn] = ()
    ) -> AsyncIterator[str]:
        self.last_system, self.last_user, self.last_history = system, user, list(history)
        if self.fail:
            raise TransientProviderError("completion backend down")
        try:
            for i, chunk in enumerate(self.chunks or [self.response]):
                if self.fail_after_chunks is not None and i >= self.fail_after_chunks:
                    raise TransientProviderError("stream dropped")
                yield chunk
        finally:
            self.stream_closed = True

    async def close(self) -> None:
        pass
