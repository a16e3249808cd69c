"""Database connection management."""

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from helpdesk_rag.config import get_db_path
from helpdesk_rag.db.schema import apply_schema

logger = logging.getLogger(__name__)

# One writer at a time per connection; stores share the lifespan connection
_write_locks: "weakref.WeakKeyDictionary[aiosqlite.Connection, asyncio.Lock]" = (
    weakref.WeakKeyDictionary()
)


async def create_connection(db_path: Path | str | None = None) -> aiosqlite.Connection:
    """Create and initialize a database connection.

    For in-memory databases, pass ":memory:".
    """
    db_path = str(db_path or get_db_path())

    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row

    # WAL lets searches read while a flush writes
    await conn.execute("PRAGMA journal_mode=WAL")

    await apply_schema(conn)
    logger.debug("Database ready at %s", db_path)
    return conn


@asynccontextmanager
async def write_transaction(db: aiosqlite.Connection) -> AsyncIterator[aiosqlite.Connection]:
    """Run a block of writes as one transaction.

    Commits when the block finishes, rolls back and re-raises when it fails.
    Writers on the same connection are serialized.
    """
    lock = _write_locks.setdefault(db, asyncio.Lock())
    async with lock:
        try:
            yield db
        except BaseException:
            await db.rollback()
            logger.warning("Write transaction rolled back")
            raise
        await db.commit()
