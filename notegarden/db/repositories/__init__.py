"""Repository package for database access."""

from .notes import SqliteNoteRepository
from .links import SqliteNoteLinkRepository

__all__ = [
    "SqliteNoteRepository",
    "SqliteNoteLinkRepository",
]
