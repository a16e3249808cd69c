"""Tests for the SQLite knowledge store."""

import asyncio

import aiosqlite
import pytest

from helpdesk_rag.models.item import SourceType
from helpdesk_rag.store.knowledge_store import KnowledgeStore, SQLiteKnowledgeStore
from tests.factories import article, ticket, wiki
from tests.fakes import MemoryKnowledgeStore


@pytest.mark.asyncio
async def test_implementations_satisfy_protocol(sqlite_store):
    assert isinstance(sqlite_store, KnowledgeStore)
    assert isinstance(MemoryKnowledgeStore(), KnowledgeStore)


@pytest.mark.asyncio
async def test_save_and_load_round_trip(sqlite_store):
    items = [
        wiki("wiki-2", "Printer setup", content="Add the printer by IP.").with_embedding(
            [0.1, 0.2, 0.3]
        ),
        wiki("wiki-1", "VPN guide", content="Install the client.", keywords=["zscaler"]),
    ]
    await sqlite_store.save(SourceType.WIKI_PAGE, items)

    loaded = await sqlite_store.load(SourceType.WIKI_PAGE)
    assert [i.id for i in loaded] == ["wiki-2", "wiki-1"]
    assert loaded[0].embedding == [0.1, 0.2, 0.3]
    assert not loaded[0].needs_embedding
    assert loaded[1].keywords == ["zscaler"]
    assert loaded[1].needs_embedding


@pytest.mark.asyncio
async def test_sources_are_independent(sqlite_store):
    await sqlite_store.save(SourceType.WIKI_PAGE, [wiki("wiki-1", "VPN guide")])
    await sqlite_store.save(SourceType.TICKET_SOLUTION, [ticket("MT-1", "VPN down")])

    assert [i.id for i in await sqlite_store.load(SourceType.WIKI_PAGE)] == ["wiki-1"]
    assert [i.id for i in await sqlite_store.load(SourceType.TICKET_SOLUTION)] == ["MT-1"]
    assert await sqlite_store.load(SourceType.ARTICLE) == []


@pytest.mark.asyncio
async def test_save_replaces_source(sqlite_store):
    await sqlite_store.save(SourceType.ARTICLE, [article("kb-1", "Old"), article("kb-2", "Gone")])
    await sqlite_store.save(SourceType.ARTICLE, [article("kb-1", "New")])

    loaded = await sqlite_store.load(SourceType.ARTICLE)
    assert len(loaded) == 1
    assert loaded[0].content.title == "New"


@pytest.mark.asyncio
async def test_validation_count_survives(sqlite_store):
    await sqlite_store.save(SourceType.TICKET_SOLUTION, [ticket("MT-9", "Fix", validation_count=4)])
    loaded = await sqlite_store.load(SourceType.TICKET_SOLUTION)
    assert loaded[0].validation_count == 4


@pytest.mark.asyncio
async def test_malformed_row_skipped(db):
    store = SQLiteKnowledgeStore(db)
    await store.save(SourceType.WIKI_PAGE, [wiki("wiki-1", "VPN guide")])
    await db.execute(
        "INSERT INTO knowledge_items (source_type, id, position, document) VALUES (?, ?, ?, ?)",
        ("wiki_page", "broken", 1, '{"id": "broken"}'),
    )
    await db.commit()

    loaded = await store.load(SourceType.WIKI_PAGE)
    assert [i.id for i in loaded] == ["wiki-1"]


@pytest.mark.asyncio
async def test_mistyped_row_skipped(db):
    store = SQLiteKnowledgeStore(db)
    stray = article("kb-1", "Filed under the wrong source")
    await db.execute(
        "INSERT INTO knowledge_items (source_type, id, position, document) VALUES (?, ?, ?, ?)",
        ("wiki_page", stray.id, 0, stray.model_dump_json()),
    )
    await db.commit()

    assert await store.load(SourceType.WIKI_PAGE) == []


@pytest.mark.asyncio
async def test_failed_save_keeps_previous_items(sqlite_store):
    await sqlite_store.save(SourceType.TICKET_SOLUTION, [ticket("MT-1", "VPN down")])

    duplicated = [ticket("MT-2", "Printer"), ticket("MT-2", "Printer again")]
    with pytest.raises(aiosqlite.IntegrityError):
        await sqlite_store.save(SourceType.TICKET_SOLUTION, duplicated)

    loaded = await sqlite_store.load(SourceType.TICKET_SOLUTION)
    assert [i.id for i in loaded] == ["MT-1"]


@pytest.mark.asyncio
async def test_concurrent_saves_are_complete(sqlite_store):
    tickets = [ticket(f"MT-{n}", f"Ticket {n}") for n in range(20)]
    pages = [wiki(f"wiki-{n}", f"Page {n}") for n in range(20)]

    await asyncio.gather(
        sqlite_store.save(SourceType.TICKET_SOLUTION, tickets),
        sqlite_store.save(SourceType.WIKI_PAGE, pages),
    )

    assert len(await sqlite_store.load(SourceType.TICKET_SOLUTION)) == 20
    assert len(await sqlite_store.load(SourceType.WIKI_PAGE)) == 20
