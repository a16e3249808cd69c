"""DDL for the knowledge and pipeline-state database."""

import aiosqlite

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS knowledge_items (
    source_type TEXT NOT NULL,
    id TEXT NOT NULL,
    position INTEGER NOT NULL,
    document TEXT NOT NULL,
    PRIMARY KEY (source_type, id)
);

CREATE INDEX IF NOT EXISTS idx_items_position ON knowledge_items(source_type, position);

CREATE TABLE IF NOT EXISTS cache_entries (
    specialist TEXT NOT NULL,
    fingerprint TEXT NOT NULL,
    last_used_at TEXT NOT NULL,
    document TEXT NOT NULL,
    PRIMARY KEY (specialist, fingerprint)
);

CREATE TABLE IF NOT EXISTS feedback_records (
    id TEXT PRIMARY KEY,
    timestamp TEXT NOT NULL,
    document TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_feedback_timestamp ON feedback_records(timestamp);

CREATE TABLE IF NOT EXISTS failure_patterns (
    id TEXT PRIMARY KEY,
    document TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS keyword_counters (
    item_id TEXT NOT NULL,
    keyword TEXT NOT NULL,
    document TEXT NOT NULL,
    PRIMARY KEY (item_id, keyword)
);
"""


async def apply_schema(db: aiosqlite.Connection) -> None:
    """Apply the database schema."""
    await db.executescript(SCHEMA_SQL)

    cursor = await db.execute("SELECT version FROM schema_version")
    row = await cursor.fetchone()
    if row is None:
        await db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

    await db.commit()
