"""Backlink graph synchronization.

Recomputes a note's outgoing edges from its current content and swaps them in
as one atomic replacement. The resulting edge set depends only on the content
and the owner's directory, so repeating a call is harmless.
"""
from __future__ import annotations

import logging
import time
from typing import Any

from notegarden.db.factory import get_note_link_repository, get_note_repository
from notegarden.errors import BacklinkError, NoteNotFoundError, SyncStageError
from notegarden.models import (
    BacklinkSyncResult,
    BacklinkSyncStatus,
    FailedNoteEdge,
    NoteEdge,
    OwnerResyncResponse,
)
from notegarden.observability import (
    record_edge_insert_failure,
    record_sync,
    record_unresolved_references,
    start_span,
)
from notegarden.references import extract_references, resolve_references

logger = logging.getLogger("notegarden.sync")


class BacklinkSynchronizer:
    def __init__(self, db: Any, note_repo: Any = None, link_repo: Any = None):
        self.db = db
        self.note_repo = note_repo or get_note_repository(db)
        self.link_repo = link_repo or get_note_link_repository(db)

    async def synchronize(self, note_id: str, owner_id: str, content: str) -> BacklinkSyncResult:
        """Replace the outgoing edges of ``note_id`` with those its content references.

        Raises ``NoteNotFoundError`` when the note is not in the owner's
        directory and ``SyncStageError`` when the store fails before the
        replacement commits. Edges that fail individually are returned on the
        result with ``status="partial"``.
        """
        started = time.monotonic()
        with start_span("backlinks.synchronize", {"note.id": note_id, "owner.id": owner_id}):
            try:
                result = await self._synchronize(note_id, owner_id, content)
            except BacklinkError as exc:
                record_sync(getattr(exc, "code", "failed"), (time.monotonic() - started) * 1000, owner_id=owner_id)
                raise
        record_sync(result.status, (time.monotonic() - started) * 1000, owner_id=owner_id)
        return result

    async def _synchronize(self, note_id: str, owner_id: str, content: str) -> BacklinkSyncResult:
        labels = extract_references(content)

        try:
            directory = await self.note_repo.list_directory(owner_id)
        except Exception as exc:
            logger.error("Directory fetch failed for owner %s (note %s): %s", owner_id, note_id, exc)
            raise SyncStageError("directory", note_id, exc) from exc

        if not any(str(entry.get("id")) == note_id for entry in directory):
            raise NoteNotFoundError(note_id, owner_id)

        refs = resolve_references(labels, note_id, directory)
        for label in refs.unresolved:
            logger.info("No target note found for label '%s' (note %s)", label, note_id)
        record_unresolved_references(owner_id=owner_id, count=len(refs.unresolved))

        edges = [{"target_note_id": ref.target_note_id, "label": ref.label} for ref in refs.resolved]
        try:
            outcome = await self.link_repo.replace_outgoing(note_id, edges)
        except SyncStageError as exc:
            logger.error("Edge replacement failed for note %s at stage %s: %s", note_id, exc.stage, exc.cause)
            raise

        failed = [FailedNoteEdge(**row) for row in outcome.get("failed", [])]
        if failed:
            record_edge_insert_failure(owner_id=owner_id, count=len(failed))
            logger.error(
                "Backlink sync for note %s inserted %d of %d edges; failed targets: %s",
                note_id,
                len(outcome.get("inserted", [])),
                len(edges),
                ", ".join(edge.target_note_id for edge in failed),
            )
        else:
            logger.info("Backlink sync for note %s stored %d edges", note_id, len(edges))

        return BacklinkSyncResult(
            noteId=note_id,
            ownerId=owner_id,
            status="partial" if failed else "ok",
            insertedLinks=[NoteEdge(**row) for row in outcome.get("inserted", [])],
            failedLinks=failed,
            unresolved=refs.unresolved,
            selfReferences=refs.self_references,
        )

    async def synchronize_status(self, note_id: str, owner_id: str, content: str) -> BacklinkSyncStatus:
        """Run ``synchronize`` and fold any engine failure into a status record."""
        try:
            result = await self.synchronize(note_id, owner_id, content)
        except SyncStageError as exc:
            return BacklinkSyncStatus(noteId=note_id, status="failed", stage=exc.stage, error=exc.code)
        except NoteNotFoundError as exc:
            return BacklinkSyncStatus(noteId=note_id, status="failed", error=exc.code)
        return status_from_result(result)

    async def resync_owner(self, owner_id: str) -> OwnerResyncResponse:
        """Re-run synchronization for every note of ``owner_id`` from stored content."""
        notes = await self.note_repo.list_for_owner(owner_id)
        response = OwnerResyncResponse(ownerId=owner_id, total=len(notes))
        for note in notes:
            status = await self.synchronize_status(note["id"], owner_id, note.get("content", ""))
            if status.status == "ok":
                response.succeeded += 1
            response.results.append(status)
        logger.info("Resynced %d/%d notes for owner %s", response.succeeded, response.total, owner_id)
        return response


def status_from_result(result: BacklinkSyncResult) -> BacklinkSyncStatus:
    return BacklinkSyncStatus(
        noteId=result.noteId,
        status=result.status,
        stage="insert" if result.status == "partial" else None,
        error="insert_failed" if result.status == "partial" else None,
        insertedLinks=result.insertedLinks,
        failedLinks=result.failedLinks,
        unresolved=result.unresolved,
    )
