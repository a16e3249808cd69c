"""Tests for server-level functions."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import aiosqlite
import pytest
from fastmcp import FastMCP

from helpdesk_rag.llm.ollama import OllamaCompletionClient
from helpdesk_rag.server import (
    _create_completion,
    _flush_periodically,
    _load_erp_lookup,
    create_server,
)


def test_create_completion_ollama():
    """Should create OllamaCompletionClient for 'ollama' provider."""
    assert isinstance(_create_completion("ollama"), OllamaCompletionClient)


def test_create_completion_anthropic_unavailable():
    """Should fall back to Ollama when the Anthropic SDK is not installed."""
    with patch("helpdesk_rag.server.AnthropicCompletionClient", None):
        assert isinstance(_create_completion("anthropic"), OllamaCompletionClient)


def test_create_completion_anthropic():
    """Should create the Anthropic client when the SDK is available."""
    with patch("helpdesk_rag.server.AnthropicCompletionClient") as cls:
        client = _create_completion("anthropic")
    assert client is cls.return_value


def test_create_completion_unknown_provider():
    """Unknown providers fall back to Ollama."""
    assert isinstance(_create_completion("unknown"), OllamaCompletionClient)


def test_erp_lookup_disabled_without_path(monkeypatch):
    monkeypatch.delenv("HD_ERP_MAPPINGS", raising=False)
    assert _load_erp_lookup() is None


def test_erp_lookup_loaded(monkeypatch, tmp_path):
    path = tmp_path / "erp.json"
    path.write_text(json.dumps([{"role_id": "Z_MM_BUYER", "transaction": "ME21N"}]))
    monkeypatch.setenv("HD_ERP_MAPPINGS", str(path))
    lookup = _load_erp_lookup()
    assert lookup is not None
    assert lookup.lookup("ME21N") is not None


def test_erp_lookup_bad_file_disables(monkeypatch, tmp_path):
    path = tmp_path / "erp.json"
    path.write_text("not json")
    monkeypatch.setenv("HD_ERP_MAPPINGS", str(path))
    assert _load_erp_lookup() is None


def test_create_server():
    """Should build a FastMCP server without error."""
    server = create_server()
    assert isinstance(server, FastMCP)
    assert server.name == "helpdesk-rag"


@pytest.mark.asyncio
async def test_periodic_flush_survives_database_errors():
    calls = []

    async def flush():
        calls.append(1)
        if len(calls) == 1:
            raise aiosqlite.OperationalError("locked")

    pipeline = MagicMock()
    pipeline.flush = AsyncMock(side_effect=flush)

    task = asyncio.create_task(_flush_periodically(pipeline, 0))
    for _ in range(100):
        if pipeline.flush.await_count >= 2:
            break
        await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert pipeline.flush.await_count >= 2
