"""Public garden API: published notes with navigable references."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from notegarden import config
from notegarden.db import connection
from notegarden.db.factory import get_note_repository
from notegarden.models import NoteSummary, PaginatedResponse, RenderedNote
from notegarden.rendering import garden_href, render_note_content
from notegarden.routers.notes import note_from_row, note_summary

garden_router = APIRouter(prefix="/api/garden", tags=["garden"])


@garden_router.get("/{owner_id}", response_model=PaginatedResponse[NoteSummary])
async def list_public_notes(
    owner_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(config.GARDEN_PAGE_SIZE, ge=1, le=config.GARDEN_MAX_PAGE_SIZE),
    tag: str | None = Query(None, description="Only notes carrying this tag"),
):
    """Public notes of an owner, newest first, one page at a time."""
    db = await connection.get_connection()
    repo = get_note_repository(db)
    tag = (tag or "").strip() or None
    offset = (page - 1) * per_page
    rows = await repo.list_for_owner(owner_id, public_only=True, tag=tag, limit=per_page, offset=offset)
    total = await repo.count_for_owner(owner_id, public_only=True, tag=tag)
    return PaginatedResponse(
        items=[note_summary(row) for row in rows],
        total=total,
        offset=offset,
        limit=per_page,
    )


@garden_router.get("/{owner_id}/{slug}", response_model=RenderedNote)
async def get_public_note(owner_id: str, slug: str):
    db = await connection.get_connection()
    repo = get_note_repository(db)
    row = await repo.get_by_slug(owner_id, slug, public_only=True)
    if not row:
        raise HTTPException(status_code=404, detail="Note not found or not public")
    directory = await repo.list_directory(owner_id)
    rendered = render_note_content(
        row.get("content", ""),
        row["id"],
        directory,
        garden_href(owner_id, config.GARDEN_LINK_TEMPLATE),
    )
    return RenderedNote(note=note_from_row(row), content=rendered.content, linkedNotes=rendered.linked_notes)
