"""PostgreSQL schema creation and versioning."""
from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger("notegarden.db")

SCHEMA_VERSION = 2

_TABLES = """
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS notes (
    id          TEXT PRIMARY KEY,
    owner_id    TEXT NOT NULL,
    title       TEXT NOT NULL DEFAULT '',
    slug        TEXT NOT NULL,
    content     TEXT NOT NULL DEFAULT '',
    tags_json   TEXT NOT NULL DEFAULT '[]',
    is_public   BOOLEAN NOT NULL DEFAULT FALSE,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_notes_owner_slug ON notes(owner_id, slug);
CREATE INDEX IF NOT EXISTS idx_notes_owner_created ON notes(owner_id, created_at, id);

CREATE TABLE IF NOT EXISTS note_links (
    id              BIGSERIAL PRIMARY KEY,
    source_note_id  TEXT NOT NULL REFERENCES notes(id) ON DELETE CASCADE,
    target_note_id  TEXT NOT NULL REFERENCES notes(id) ON DELETE CASCADE,
    created_at      TEXT NOT NULL,
    CHECK (source_note_id <> target_note_id)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_note_links_pair ON note_links(source_note_id, target_note_id);
CREATE INDEX IF NOT EXISTS idx_note_links_target ON note_links(target_note_id);

ALTER TABLE note_links ADD COLUMN IF NOT EXISTS label TEXT NOT NULL DEFAULT '';
"""


async def run_migrations(db: Any) -> None:
    """Create all tables on a Pool or Connection. Idempotent."""
    await db.execute(_TABLES)
    current_version = await db.fetchval("SELECT MAX(version) FROM schema_version") or 0
    if current_version >= SCHEMA_VERSION:
        logger.info(f"Schema is up to date (version {current_version})")
        return
    await db.execute("INSERT INTO schema_version (version) VALUES ($1)", SCHEMA_VERSION)
    logger.info(f"Migrations complete, schema version {SCHEMA_VERSION}")
