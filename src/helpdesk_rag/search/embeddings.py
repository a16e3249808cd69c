"""Embedding provider protocol and the Ollama embedding client."""

import logging
from typing import Protocol, runtime_checkable

import httpx

from helpdesk_rag.config import get_embedding_model, get_ollama_url, get_provider_timeout
from helpdesk_rag.errors import ConfigurationError, TransientProviderError
from helpdesk_rag.resilience import raise_for_provider_status

logger = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns text into a fixed-length float vector.

    Implementations raise ``TransientProviderError`` for failures worth retrying
    and ``ConfigurationError`` for ones that are not.
    """

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        ...

    async def close(self) -> None:
        """Release resources."""
        ...


class OllamaEmbeddingClient:
    """Generates embeddings via Ollama's /api/embed endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        base_url: str | None = None,
        model: str | None = None,
    ) -> None:
        """Initialize with an optional HTTP client and endpoint overrides."""
        self._http = http_client
        self._base_url = base_url or get_ollama_url()
        self._model = model or get_embedding_model()

    async def embed(self, text: str) -> list[float]:
        """Generate an embedding vector for the given text."""
        vectors = await self._post([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts in one request."""
        if not texts:
            return []
        return await self._post(texts)

    async def _post(self, texts: list[str]) -> list[list[float]]:
        if not self._base_url or not self._model:
            raise ConfigurationError("Ollama URL or embedding model not configured")
        client = self._get_client()
        try:
            resp = await client.post(
                f"{self._base_url}/api/embed",
                json={"model": self._model, "input": texts},
                timeout=get_provider_timeout(),
            )
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise TransientProviderError(f"Ollama embedding request failed: {exc}") from exc
        raise_for_provider_status(resp, "Ollama")
        try:
            # Ollama /api/embed returns {"embeddings": [[...], ...]}
            vectors: list[list[float]] = resp.json()["embeddings"]
        except (ValueError, KeyError, TypeError) as exc:
            raise TransientProviderError("Malformed Ollama embedding response") from exc
        if len(vectors) != len(texts):
            raise TransientProviderError(
                f"Ollama returned {len(vectors)} embeddings for {len(texts)} inputs"
            )
        return vectors

    def _get_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def close(self) -> None:
        """Close the HTTP client if open."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
