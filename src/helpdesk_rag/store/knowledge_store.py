"""KnowledgeStore contract and its SQLite implementation."""

import logging
from typing import Protocol, runtime_checkable

import aiosqlite
from pydantic import ValidationError

from helpdesk_rag.db.connection import write_transaction
from helpdesk_rag.models.item import KnowledgeItem, SourceType

logger = logging.getLogger(__name__)


@runtime_checkable
class KnowledgeStore(Protocol):
    """Bulk read/replace of one source's items. No partial updates."""

    async def load(self, source_type: SourceType) -> list[KnowledgeItem]:
        """Return every stored item of a source, in stored order."""
        ...

    async def save(self, source_type: SourceType, items: list[KnowledgeItem]) -> None:
        """Replace every stored item of a source."""
        ...


class SQLiteKnowledgeStore:
    """Stores each item as a JSON document, embedding included."""

    def __init__(self, db: aiosqlite.Connection):
        """Initialize with a database connection."""
        self.db = db

    async def load(self, source_type: SourceType) -> list[KnowledgeItem]:
        """Load a source. Rows that fail validation are skipped and logged."""
        cursor = await self.db.execute(
            "SELECT id, document FROM knowledge_items WHERE source_type = ? ORDER BY position",
            (source_type.value,),
        )
        rows = await cursor.fetchall()
        items: list[KnowledgeItem] = []
        for row in rows:
            try:
                item = KnowledgeItem.model_validate_json(row["document"])
            except ValidationError:
                logger.warning(
                    "Skipping malformed %s item %s", source_type.value, row["id"], exc_info=True
                )
                continue
            if item.source_type != source_type:
                logger.warning(
                    "Skipping item %s stored under %s but typed %s",
                    item.id,
                    source_type.value,
                    item.source_type.value,
                )
                continue
            items.append(item)
        return items

    async def save(self, source_type: SourceType, items: list[KnowledgeItem]) -> None:
        """Replace a source's items in a single transaction."""
        async with write_transaction(self.db):
            await self.db.execute(
                "DELETE FROM knowledge_items WHERE source_type = ?", (source_type.value,)
            )
            await self.db.executemany(
                "INSERT INTO knowledge_items (source_type, id, position, document)"
                " VALUES (?, ?, ?, ?)",
                [
                    (source_type.value, item.id, position, item.model_dump_json())
                    for position, item in enumerate(items)
                ],
            )
        logger.info("Saved %d %s items", len(items), source_type.value)
