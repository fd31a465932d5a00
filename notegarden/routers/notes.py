"""Note store API. Saving a note also refreshes its backlinks."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from notegarden import config
from notegarden.db import connection
from notegarden.db.factory import get_note_repository
from notegarden.errors import DuplicateSlugError
from notegarden.models import (
    BacklinkSyncStatus,
    Note,
    NoteSaveRequest,
    NoteSaveResponse,
    NoteSummary,
    RenderedNote,
)
from notegarden.references import slugify_title
from notegarden.rendering import garden_href, render_note_content
from notegarden.services.backlink_sync import BacklinkSynchronizer

logger = logging.getLogger("notegarden.api")

notes_router = APIRouter(prefix="/api/notes", tags=["notes"])


def note_from_row(row: dict[str, Any]) -> Note:
    return Note(
        id=str(row["id"]),
        ownerId=str(row.get("owner_id") or ""),
        title=str(row.get("title") or ""),
        slug=str(row.get("slug") or ""),
        content=str(row.get("content") or ""),
        tags=[str(tag) for tag in row.get("tags") or []],
        isPublic=bool(row.get("is_public")),
        createdAt=str(row.get("created_at") or ""),
        updatedAt=str(row.get("updated_at") or ""),
    )


def note_summary(row: dict[str, Any]) -> NoteSummary:
    return NoteSummary(
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        slug=str(row.get("slug") or ""),
        tags=[str(tag) for tag in row.get("tags") or []],
        createdAt=str(row.get("created_at") or ""),
    )


def _note_data(payload: NoteSaveRequest) -> dict[str, Any]:
    return {
        "owner_id": payload.ownerId,
        "title": payload.title,
        "slug": slugify_title(payload.title),
        "content": payload.content,
        "tags": [tag.strip() for tag in payload.tags if tag.strip()],
        "is_public": payload.isPublic,
    }


async def _get_owned_note(repo: Any, note_id: str, owner_id: str) -> dict[str, Any]:
    row = await repo.get_by_id(note_id)
    if not row or row.get("owner_id") != owner_id:
        raise HTTPException(status_code=404, detail="Note not found")
    return row


async def _sync_after_save(db: Any, row: dict[str, Any]) -> BacklinkSyncStatus:
    if not config.SYNC_ON_SAVE:
        return BacklinkSyncStatus(noteId=row["id"], status="skipped")
    try:
        return await BacklinkSynchronizer(db).synchronize_status(row["id"], row["owner_id"], row.get("content", ""))
    except Exception:
        # The note itself is already saved; report the graph as stale instead of failing the request.
        logger.exception("Backlink sync after save failed for note %s", row["id"])
        return BacklinkSyncStatus(noteId=row["id"], status="failed", error="internal_error")


@notes_router.get("", response_model=list[Note])
async def list_notes(owner_id: str = Query(..., min_length=1)):
    db = await connection.get_connection()
    rows = await get_note_repository(db).list_for_owner(owner_id)
    return [note_from_row(row) for row in rows]


@notes_router.get("/recent", response_model=list[NoteSummary])
async def list_recent_notes(
    owner_id: str = Query(..., min_length=1),
    limit: int = Query(config.RECENT_NOTES_LIMIT, ge=1, le=config.TOP_REFERENCED_MAX_LIMIT),
):
    """Latest notes of an owner, for the dashboard."""
    db = await connection.get_connection()
    rows = await get_note_repository(db).list_for_owner(owner_id, limit=limit)
    return [note_summary(row) for row in rows]


@notes_router.post("", response_model=NoteSaveResponse)
async def create_note(payload: NoteSaveRequest):
    """Create a note, then synchronize its backlinks."""
    db = await connection.get_connection()
    repo = get_note_repository(db)
    data = _note_data(payload)
    if await repo.slug_taken(payload.ownerId, data["slug"]):
        raise HTTPException(status_code=409, detail="A note with this title already exists.")
    try:
        row = await repo.create(data)
    except DuplicateSlugError as exc:
        raise HTTPException(status_code=409, detail="A note with this title already exists.") from exc

    sync_status = await _sync_after_save(db, row)
    return NoteSaveResponse(note=note_from_row(row), backlinkSync=sync_status)


@notes_router.get("/{note_id}", response_model=Note)
async def get_note(note_id: str, owner_id: str = Query(..., min_length=1)):
    db = await connection.get_connection()
    row = await _get_owned_note(get_note_repository(db), note_id, owner_id)
    return note_from_row(row)


@notes_router.put("/{note_id}", response_model=NoteSaveResponse)
async def update_note(note_id: str, payload: NoteSaveRequest):
    """Update a note, then synchronize its backlinks."""
    db = await connection.get_connection()
    repo = get_note_repository(db)
    data = _note_data(payload)
    if await repo.slug_taken(payload.ownerId, data["slug"], exclude_note_id=note_id):
        raise HTTPException(status_code=409, detail="A note with this title already exists.")
    try:
        row = await repo.update(note_id, payload.ownerId, data)
    except DuplicateSlugError as exc:
        raise HTTPException(status_code=409, detail="A note with this title already exists.") from exc
    if not row:
        raise HTTPException(status_code=404, detail="Note not found")

    sync_status = await _sync_after_save(db, row)
    return NoteSaveResponse(note=note_from_row(row), backlinkSync=sync_status)


@notes_router.delete("/{note_id}")
async def delete_note(note_id: str, owner_id: str = Query(..., min_length=1)):
    """Delete a note and every backlink into or out of it."""
    db = await connection.get_connection()
    deleted = await get_note_repository(db).delete(note_id, owner_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Note not found")
    return {"status": "deleted", "noteId": note_id}


@notes_router.get("/{note_id}/rendered", response_model=RenderedNote)
async def get_rendered_note(note_id: str, owner_id: str = Query(..., min_length=1)):
    """Owner view of a note with references rewritten to editor links."""
    db = await connection.get_connection()
    repo = get_note_repository(db)
    row = await _get_owned_note(repo, note_id, owner_id)
    directory = await repo.list_directory(owner_id)
    rendered = render_note_content(
        row.get("content", ""),
        row["id"],
        directory,
        garden_href(owner_id, config.EDITOR_LINK_TEMPLATE),
    )
    return RenderedNote(note=note_from_row(row), content=rendered.content, linkedNotes=rendered.linked_notes)
