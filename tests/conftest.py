"""Shared test fixtures."""

import pytest
import pytest_asyncio

from helpdesk_rag.db.connection import create_connection
from helpdesk_rag.store.knowledge_store import SQLiteKnowledgeStore
from helpdesk_rag.store.state_store import StateStore
from tests.fakes import FakeEmbedder, FakeLLM, MemoryKnowledgeStore


@pytest_asyncio.fixture
async def db():
    """In-memory database with full schema."""
    conn = await create_connection(":memory:")
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def sqlite_store(db):
    """Knowledge store backed by in-memory DB."""
    return SQLiteKnowledgeStore(db)


@pytest_asyncio.fixture
async def state_store(db):
    """Cache/feedback snapshot store backed by in-memory DB."""
    return StateStore(db)


@pytest_asyncio.fixture
async def memory_store():
    """Empty in-memory knowledge store."""
    return MemoryKnowledgeStore()


@pytest_asyncio.fixture
async def fake_embedder():
    """Fake embedding provider without rules."""
    return FakeEmbedder()


@pytest_asyncio.fixture
async def fake_llm():
    """Controllable fake completion provider."""
    return FakeLLM()


@pytest.fixture(autouse=True)
def _no_retry_delay(monkeypatch):
    """Retry immediately so provider-failure tests stay fast."""
    monkeypatch.setenv("HD_RETRY_BASE_DELAY", "0")
