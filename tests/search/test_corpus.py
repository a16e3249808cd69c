"""Tests for corpus initialization, reloads and keyword enrichment."""

import pytest

from helpdesk_rag.models.item import SourceType
from helpdesk_rag.search.corpus import CorpusRegistry, SourceCorpus, SourceState
from tests.factories import ticket, wiki
from tests.fakes import FakeEmbedder

VPN_VEC = [1.0, 0.0, 0.0]


@pytest.mark.asyncio
async def test_initialize_embeds_and_saves(memory_store):
    memory_store.items[SourceType.WIKI_PAGE] = [wiki("wiki-1", "VPN guide")]
    embedder = FakeEmbedder([("vpn", VPN_VEC)])
    corpus = SourceCorpus(SourceType.WIKI_PAGE, memory_store, embedder)
    assert corpus.state == SourceState.PENDING
    assert corpus.items == ()

    await corpus.initialize()

    assert corpus.ready
    assert corpus.items[0].embedding == VPN_VEC
    assert memory_store.saves == [SourceType.WIKI_PAGE]
    assert not memory_store.items[SourceType.WIKI_PAGE][0].needs_embedding


@pytest.mark.asyncio
async def test_fresh_embeddings_not_recomputed(memory_store):
    memory_store.items[SourceType.WIKI_PAGE] = [wiki("wiki-1", "VPN guide").with_embedding(VPN_VEC)]
    embedder = FakeEmbedder()
    corpus = SourceCorpus(SourceType.WIKI_PAGE, memory_store, embedder)

    await corpus.initialize()

    assert embedder.calls == []
    assert memory_store.saves == []


@pytest.mark.asyncio
async def test_embedder_failure_keeps_items_keyword_only(memory_store):
    memory_store.items[SourceType.WIKI_PAGE] = [wiki("wiki-1", "VPN"), wiki("wiki-2", "Printer")]
    embedder = FakeEmbedder()
    embedder.fail = True
    corpus = SourceCorpus(SourceType.WIKI_PAGE, memory_store, embedder)

    await corpus.initialize()

    assert corpus.ready
    assert [i.embedding for i in corpus.items] == [None, None]
    # Gave up after the first item
    assert set(embedder.calls) == {corpus.items[0].searchable_text}


@pytest.mark.asyncio
async def test_broken_source_is_unavailable(memory_store):
    memory_store.items[SourceType.WIKI_PAGE] = [wiki("wiki-1", "VPN guide")]
    memory_store.broken.add(SourceType.ARTICLE)
    registry = CorpusRegistry(memory_store)

    await registry.initialize()

    assert registry.state(SourceType.ARTICLE) == SourceState.UNAVAILABLE
    assert registry.snapshot(SourceType.ARTICLE) == ()
    assert registry.state(SourceType.WIKI_PAGE) == SourceState.READY
    assert [i.id for i in registry.snapshot(SourceType.WIKI_PAGE)] == ["wiki-1"]


@pytest.mark.asyncio
async def test_wrong_source_items_dropped(memory_store):
    memory_store.items[SourceType.WIKI_PAGE] = [wiki("wiki-1", "VPN"), ticket("MT-1", "VPN")]
    corpus = SourceCorpus(SourceType.WIKI_PAGE, memory_store)
    await corpus.initialize()
    assert [i.id for i in corpus.items] == ["wiki-1"]


@pytest.mark.asyncio
async def test_enrich_keywords_is_idempotent(memory_store):
    memory_store.items[SourceType.WIKI_PAGE] = [wiki("wiki-1", "Network access")]
    registry = CorpusRegistry(memory_store, FakeEmbedder([("proxy", VPN_VEC)]))
    await registry.initialize()

    assert await registry.enrich_keywords("wiki-1", ["Proxy"]) == ["proxy"]
    assert await registry.enrich_keywords("wiki-1", ["proxy"]) == []
    assert await registry.enrich_keywords("missing", ["proxy"]) is None

    item = registry.find("wiki-1")
    assert item is not None
    assert item.keywords == ["proxy"]
    # New keyword changed the text, so the item was re-embedded
    assert item.embedding == VPN_VEC
    assert memory_store.items[SourceType.WIKI_PAGE][0].keywords == ["proxy"]


@pytest.mark.asyncio
async def test_snapshot_is_copy_on_write(memory_store):
    memory_store.items[SourceType.WIKI_PAGE] = [wiki("wiki-1", "Network access")]
    registry = CorpusRegistry(memory_store)
    await registry.initialize()

    before = registry.snapshot(SourceType.WIKI_PAGE)
    await registry.enrich_keywords("wiki-1", ["proxy"])
    after = registry.snapshot(SourceType.WIKI_PAGE)

    assert before[0].keywords == []
    assert after[0].keywords == ["proxy"]
    assert before is not after


@pytest.mark.asyncio
async def test_replace_and_reload(memory_store):
    corpus = SourceCorpus(SourceType.TICKET_SOLUTION, memory_store)
    await corpus.initialize()
    assert corpus.items == ()

    await corpus.replace([ticket("MT-1", "VPN down")])
    assert [i.id for i in corpus.items] == ["MT-1"]
    assert memory_store.saves == [SourceType.TICKET_SOLUTION]

    memory_store.items[SourceType.TICKET_SOLUTION].append(ticket("MT-2", "Printer"))
    await corpus.reload()
    assert [i.id for i in corpus.items] == ["MT-1", "MT-2"]


@pytest.mark.asyncio
async def test_background_initialization(memory_store):
    memory_store.items[SourceType.WIKI_PAGE] = [wiki("wiki-1", "VPN guide")]
    registry = CorpusRegistry(memory_store, sources=[SourceType.WIKI_PAGE])

    tasks = registry.start_background()
    assert len(tasks) == 1
    await registry.wait_ready()

    assert registry.state(SourceType.WIKI_PAGE) == SourceState.READY
    assert registry.state(SourceType.ARTICLE) == SourceState.UNAVAILABLE


@pytest.mark.asyncio
async def test_validate_counts_and_saves(memory_store):
    memory_store.items[SourceType.TICKET_SOLUTION] = [ticket("MT-1", "VPN down")]
    registry = CorpusRegistry(memory_store)
    await registry.initialize()
    before = registry.snapshot(SourceType.TICKET_SOLUTION)

    assert await registry.validate("MT-1") == 1
    assert await registry.validate("MT-1") == 2
    assert await registry.validate("MT-404") is None

    assert registry.find("MT-1").validation_count == 2
    assert before[0].validation_count == 0
    assert memory_store.saves == [SourceType.TICKET_SOLUTION, SourceType.TICKET_SOLUTION]
    assert memory_store.items[SourceType.TICKET_SOLUTION][0].validation_count == 2
