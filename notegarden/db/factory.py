"""Repository factory to abstract DB backend (SQLite vs Postgres)."""
from __future__ import annotations

from typing import Any
import aiosqlite

from notegarden.db.repositories.notes import SqliteNoteRepository
from notegarden.db.repositories.links import SqliteNoteLinkRepository


def get_note_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteNoteRepository(db)
    from notegarden.db.repositories.postgres.notes import PostgresNoteRepository
    return PostgresNoteRepository(db)


def get_note_link_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteNoteLinkRepository(db)
    from notegarden.db.repositories.postgres.links import PostgresNoteLinkRepository
    return PostgresNoteLinkRepository(db)
