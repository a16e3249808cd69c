"""Durable snapshots of the semantic cache and auto-learner state."""

import logging
from typing import TypeVar

import aiosqlite
from pydantic import BaseModel, ValidationError

from helpdesk_rag.db.connection import write_transaction
from helpdesk_rag.models.cache import CacheEntry
from helpdesk_rag.models.feedback import FailurePattern, FeedbackRecord, KeywordCounter

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class StateStore:
    """Flushes and reloads cache entries, feedback, patterns and counters."""

    def __init__(self, db: aiosqlite.Connection):
        """Initialize with a database connection."""
        self.db = db

    # -- Semantic cache --

    async def save_cache(self, entries: list[CacheEntry]) -> None:
        """Replace the persisted cache with ``entries``."""
        async with write_transaction(self.db):
            await self.db.execute("DELETE FROM cache_entries")
            await self.db.executemany(
                "INSERT INTO cache_entries (specialist, fingerprint, last_used_at, document)"
                " VALUES (?, ?, ?, ?)",
                [
                    (
                        e.specialist.value,
                        e.query_fingerprint,
                        e.last_used_at.isoformat(),
                        e.model_dump_json(),
                    )
                    for e in entries
                ],
            )

    async def load_cache(self) -> list[CacheEntry]:
        """Load cache entries, least recently used first."""
        cursor = await self.db.execute("SELECT document FROM cache_entries ORDER BY last_used_at")
        return self._parse(await cursor.fetchall(), CacheEntry)

    # -- Auto-learner --

    async def save_feedback(self, records: list[FeedbackRecord]) -> None:
        """Replace the persisted feedback records."""
        async with write_transaction(self.db):
            await self.db.execute("DELETE FROM feedback_records")
            await self.db.executemany(
                "INSERT INTO feedback_records (id, timestamp, document) VALUES (?, ?, ?)",
                [(r.id, r.timestamp.isoformat(), r.model_dump_json()) for r in records],
            )

    async def load_feedback(self) -> list[FeedbackRecord]:
        """Load feedback records, oldest first."""
        cursor = await self.db.execute("SELECT document FROM feedback_records ORDER BY timestamp")
        return self._parse(await cursor.fetchall(), FeedbackRecord)

    async def save_patterns(self, patterns: list[FailurePattern]) -> None:
        """Replace the persisted failure patterns."""
        async with write_transaction(self.db):
            await self.db.execute("DELETE FROM failure_patterns")
            await self.db.executemany(
                "INSERT INTO failure_patterns (id, document) VALUES (?, ?)",
                [(p.id, p.model_dump_json()) for p in patterns],
            )

    async def load_patterns(self) -> list[FailurePattern]:
        """Load failure patterns."""
        cursor = await self.db.execute("SELECT document FROM failure_patterns")
        return self._parse(await cursor.fetchall(), FailurePattern)

    async def save_counters(self, counters: list[KeywordCounter]) -> None:
        """Replace the persisted keyword counters."""
        async with write_transaction(self.db):
            await self.db.execute("DELETE FROM keyword_counters")
            await self.db.executemany(
                "INSERT INTO keyword_counters (item_id, keyword, document) VALUES (?, ?, ?)",
                [(c.item_id, c.keyword, c.model_dump_json()) for c in counters],
            )

    async def load_counters(self) -> list[KeywordCounter]:
        """Load keyword counters."""
        cursor = await self.db.execute("SELECT document FROM keyword_counters")
        return self._parse(await cursor.fetchall(), KeywordCounter)

    @staticmethod
    def _parse(rows: list[aiosqlite.Row], model: type[M]) -> list[M]:
        parsed: list[M] = []
        for row in rows:
            try:
                parsed.append(model.model_validate_json(row["document"]))
            except ValidationError:
                logger.warning("Skipping malformed %s row", model.__name__, exc_info=True)
        return parsed
