"""Tests for the semantic query cache."""

from datetime import UTC, datetime, timedelta

import pytest

from helpdesk_rag.cache.semantic_cache import SemanticQueryCache, query_fingerprint
from helpdesk_rag.models.specialist import Specialist
from tests.fakes import FakeEmbedder

START = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


class Clock:
    def __init__(self) -> None:
        self.now = START

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def embedder():
    return FakeEmbedder(
        [
            ("reset my sap password", [1.0, 0.0, 0.0]),
            ("sap password reset", [0.99, 0.141, 0.0]),  # cosine ~0.99
            ("sap login", [0.8, 0.6, 0.0]),  # cosine 0.8
            ("sap password change", [2.0, 0.0, 0.0]),  # cosine exactly 1.0
        ]
    )


def _cache(embedder, clock, **kwargs) -> SemanticQueryCache:
    kwargs.setdefault("threshold", 0.92)
    kwargs.setdefault("capacity", 10)
    kwargs.setdefault("max_age", timedelta(hours=24))
    return SemanticQueryCache(embedder.embed, clock=clock, **kwargs)


def test_fingerprint_ignores_case_and_spacing():
    assert query_fingerprint("Reset  my SAP password?") == query_fingerprint(
        "reset my sap password"
    )
    assert query_fingerprint("reset my sap password") != query_fingerprint("reset sap password")


@pytest.mark.asyncio
async def test_exact_hit_skips_embedding(embedder, clock):
    cache = _cache(embedder, clock)
    await cache.store("Reset my SAP password", "Use the self-service portal.", Specialist.ERP)
    embedder.calls.clear()

    hit = await cache.lookup("reset my sap password", Specialist.ERP)

    assert hit is not None
    assert hit.response == "Use the self-service portal."
    assert hit.use_count == 1
    assert embedder.calls == []
    stats = await cache.stats()
    assert (stats.hits, stats.semantic_hits, stats.misses, stats.size) == (1, 0, 0, 1)


@pytest.mark.asyncio
async def test_semantic_hit_above_threshold(embedder, clock):
    cache = _cache(embedder, clock)
    await cache.store("Reset my SAP password", "Use the self-service portal.", Specialist.ERP)

    hit = await cache.lookup("SAP password reset", Specialist.ERP)
    assert hit is not None
    assert hit.query == "Reset my SAP password"

    assert await cache.lookup("SAP login", Specialist.ERP) is None
    stats = await cache.stats()
    assert (stats.hits, stats.semantic_hits, stats.misses) == (1, 1, 1)
    assert stats.hit_rate == 0.5


@pytest.mark.asyncio
async def test_threshold_is_inclusive(embedder, clock):
    cache = _cache(embedder, clock, threshold=1.0)
    await cache.store("Reset my SAP password", "portal", Specialist.ERP)
    assert await cache.lookup("SAP password change", Specialist.ERP) is not None


@pytest.mark.asyncio
async def test_scoped_per_specialist(embedder, clock):
    cache = _cache(embedder, clock)
    await cache.store("Reset my SAP password", "portal", Specialist.ERP)

    assert await cache.lookup("Reset my SAP password", Specialist.GENERAL) is None
    assert await cache.lookup("SAP password reset", Specialist.GENERAL) is None


@pytest.mark.asyncio
async def test_lru_eviction(clock):
    cache = SemanticQueryCache(capacity=2, clock=clock, max_age=timedelta(hours=1))
    await cache.store("query a", "A", Specialist.GENERAL)
    await cache.store("query b", "B", Specialist.GENERAL)
    await cache.store("query c", "C", Specialist.GENERAL)

    assert await cache.lookup("query a", Specialist.GENERAL) is None
    assert await cache.lookup("query b", Specialist.GENERAL) is not None
    assert await cache.lookup("query c", Specialist.GENERAL) is not None


@pytest.mark.asyncio
async def test_lookup_refreshes_recency(clock):
    cache = SemanticQueryCache(capacity=2, clock=clock, max_age=timedelta(hours=1))
    await cache.store("query a", "A", Specialist.GENERAL)
    await cache.store("query b", "B", Specialist.GENERAL)
    await cache.lookup("query a", Specialist.GENERAL)
    await cache.store("query c", "C", Specialist.GENERAL)

    assert await cache.lookup("query a", Specialist.GENERAL) is not None
    assert await cache.lookup("query b", Specialist.GENERAL) is None


@pytest.mark.asyncio
async def test_entries_expire(embedder, clock):
    cache = _cache(embedder, clock, max_age=timedelta(hours=2))
    await cache.store("Reset my SAP password", "portal", Specialist.ERP)

    clock.advance(hours=1)
    assert await cache.lookup("Reset my SAP password", Specialist.ERP) is not None

    clock.advance(hours=2)
    assert await cache.lookup("Reset my SAP password", Specialist.ERP) is None
    assert (await cache.stats()).size == 0


@pytest.mark.asyncio
async def test_restore_keeps_order_and_bound(embedder, clock):
    cache = _cache(embedder, clock)
    for name in ("one", "two", "three"):
        await cache.store(f"query {name}", name, Specialist.NETWORK)
        clock.advance(minutes=1)
    entries = await cache.entries()

    restored = _cache(embedder, clock, capacity=2)
    await restored.restore(reversed(entries))

    assert [e.response for e in await restored.entries()] == ["two", "three"]


@pytest.mark.asyncio
async def test_restore_drops_expired(embedder, clock):
    cache = _cache(embedder, clock)
    await cache.store("old question", "old", Specialist.GENERAL)
    entries = await cache.entries()

    clock.advance(days=2)
    await cache.clear()
    await cache.restore(entries)
    assert await cache.entries() == []


@pytest.mark.asyncio
async def test_store_keeps_created_at_and_use_count(embedder, clock):
    cache = _cache(embedder, clock)
    first = await cache.store("Reset my SAP password", "v1", Specialist.ERP)
    await cache.lookup("Reset my SAP password", Specialist.ERP)
    clock.advance(minutes=5)

    second = await cache.store("Reset my SAP password", "v2", Specialist.ERP)
    assert second.created_at == first.created_at
    assert second.use_count == 1
    assert second.response == "v2"


@pytest.mark.asyncio
async def test_embedder_unavailable_means_exact_only(clock):
    async def no_embedding(text: str) -> None:
        return None

    cache = SemanticQueryCache(no_embedding, clock=clock, threshold=0.5)
    await cache.store("vpn not connecting", "reconnect", Specialist.NETWORK)
    assert await cache.lookup("vpn is not connecting", Specialist.NETWORK) is None
    assert await cache.lookup("VPN not connecting", Specialist.NETWORK) is not None
