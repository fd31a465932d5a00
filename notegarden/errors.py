"""Exceptions raised by the backlink engine and translated at the router seam."""
from __future__ import annotations


class BacklinkError(Exception):
    """Base class for backlink engine failures."""

    code = "backlink_error"


class NoteNotFoundError(BacklinkError):
    code = "note_not_found"

    def __init__(self, note_id: str, owner_id: str = ""):
        self.note_id = note_id
        self.owner_id = owner_id
        scope = f" for owner {owner_id}" if owner_id else ""
        super().__init__(f"Note {note_id} not found{scope}")


class DuplicateSlugError(BacklinkError):
    code = "duplicate_slug"

    def __init__(self, slug: str, owner_id: str):
        self.slug = slug
        self.owner_id = owner_id
        super().__init__(f"A note with slug '{slug}' already exists")


class SyncStageError(BacklinkError):
    """A store failure during synchronization, tagged with the failing stage.

    Raised only when the edge replacement did not commit, so the stored edges
    for the note are exactly what they were before the call. Per-edge insert
    failures inside a committed replacement are reported on the sync result
    instead.
    """

    _CODES = {
        "directory": "directory_fetch_failed",
        "delete": "delete_failed",
        "insert": "insert_failed",
    }

    def __init__(self, stage: str, note_id: str, cause: BaseException | None = None):
        self.stage = stage
        self.note_id = note_id
        self.cause = cause
        self.code = self._CODES.get(stage, "sync_failed")
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Backlink sync for note {note_id} failed at stage '{stage}'{detail}")
