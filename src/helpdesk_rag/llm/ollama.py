"""Ollama chat completion client."""

import json
import logging
from collections.abc import AsyncIterator, Sequence

import httpx

from helpdesk_rag.config import get_completion_model, get_ollama_url, get_provider_timeout
from helpdesk_rag.errors import ConfigurationError, TransientProviderError
from helpdesk_rag.llm.provider import ChatTurn, build_messages
from helpdesk_rag.resilience import raise_for_provider_status

logger = logging.getLogger(__name__)


class OllamaCompletionClient:
    """Generates answers via Ollama's /api/chat endpoint."""

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
        self._model = model or get_completion_model()

    def _payload(
        self, system: str, user: str, history: Sequence[ChatTurn], stream: bool
    ) -> dict[str, object]:
        if not self._base_url or not self._model:
            raise ConfigurationError("Ollama URL or completion model not configured")
        return {
            "model": self._model,
            "messages": [{"role": "system", "content": system}, *build_messages(user, history)],
            "stream": stream,
        }

    async def complete(self, system: str, user: str, history: Sequence[ChatTurn] = ()) -> str:
        """Return the full completion text."""
        payload = self._payload(system, user, history, stream=False)
        client = self._get_client()
        try:
            resp = await client.post(
                f"{self._base_url}/api/chat", json=payload, timeout=get_provider_timeout()
            )
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise TransientProviderError(f"Ollama chat request failed: {exc}") from exc
        raise_for_provider_status(resp, "Ollama")
        try:
            result: str = resp.json()["message"]["content"]
        except (ValueError, KeyError, TypeError) as exc:
            raise TransientProviderError("Malformed Ollama chat response") from exc
        return result

    async def stream(
        self, system: str, user: str, history: Sequence[ChatTurn] = ()
    ) -> AsyncIterator[str]:
        """Yield content increments from the NDJSON stream.

        Closing the generator early exits the ``client.stream`` block, which
        closes the response and returns the connection to the pool.
        """
        payload = self._payload(system, user, history, stream=True)
        client = self._get_client()
        try:
            async with client.stream(
                "POST", f"{self._base_url}/api/chat", json=payload, timeout=get_provider_timeout()
            ) as resp:
                if not resp.is_success:
                    await resp.aread()
                raise_for_provider_status(resp, "Ollama")
                async for line in resp.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        data = json.loads(line)
                    except ValueError as exc:
                        raise TransientProviderError("Malformed Ollama stream line") from exc
                    if "error" in data:
                        raise TransientProviderError(f"Ollama stream error: {data['error']}")
                    text = data.get("message", {}).get("content", "")
                    if text:
                        yield text
                    if data.get("done"):
                        return
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise TransientProviderError(f"Ollama chat stream failed: {exc}") from exc

    def _get_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def close(self) -> None:
        """Close the HTTP client if open."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
