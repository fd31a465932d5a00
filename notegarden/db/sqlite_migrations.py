"""Database schema creation and versioning.

All CREATE TABLE statements for notes and the backlink graph.
Uses IF NOT EXISTS for idempotent runs.
"""
from __future__ import annotations

import logging

import aiosqlite

logger = logging.getLogger("notegarden.db")

SCHEMA_VERSION = 2

_TABLES = """
-- ── Schema version tracking ────────────────────────────────────────
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- ── 1. Notes ───────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS notes (
    id          TEXT PRIMARY KEY,
    owner_id    TEXT NOT NULL,
    title       TEXT NOT NULL DEFAULT '',
    slug        TEXT NOT NULL,
    content     TEXT NOT NULL DEFAULT '',
    tags_json   TEXT NOT NULL DEFAULT '[]',
    is_public   INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_notes_owner_slug ON notes(owner_id, slug);
CREATE INDEX IF NOT EXISTS idx_notes_owner_created ON notes(owner_id, created_at, id);

-- ── 2. Backlink graph ──────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS note_links (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    source_note_id  TEXT NOT NULL REFERENCES notes(id) ON DELETE CASCADE,
    target_note_id  TEXT NOT NULL REFERENCES notes(id) ON DELETE CASCADE,
    created_at      TEXT NOT NULL,
    CHECK (source_note_id <> target_note_id)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_note_links_pair ON note_links(source_note_id, target_note_id);
CREATE INDEX IF NOT EXISTS idx_note_links_target ON note_links(target_note_id);
"""


async def _column_exists(db: aiosqlite.Connection, table: str, column: str) -> bool:
    async with db.execute(f"PRAGMA table_info({table})") as cur:
        rows = await cur.fetchall()
    return any(row[1] == column for row in rows)


async def _ensure_column(db: aiosqlite.Connection, table: str, column: str, definition: str) -> None:
    if await _column_exists(db, table, column):
        return
    await db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Create all tables. Idempotent."""
    # Check current schema version
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cur:
            row = await cur.fetchone()
            current_version = row[0] if row and row[0] else 0
    except Exception:
        current_version = 0

    if current_version >= SCHEMA_VERSION:
        logger.info(f"Schema is up to date (version {current_version})")
        return

    logger.info(f"Running migrations: {current_version} → {SCHEMA_VERSION}")

    # Execute all CREATE TABLE statements
    await db.executescript(_TABLES)

    # v2: remember which label produced each edge
    await _ensure_column(db, "note_links", "label", "TEXT NOT NULL DEFAULT ''")

    # Record schema version
    await db.execute(
        "INSERT INTO schema_version (version) VALUES (?)",
        (SCHEMA_VERSION,),
    )
    await db.commit()
    logger.info(f"Migrations complete, schema version {SCHEMA_VERSION}")
