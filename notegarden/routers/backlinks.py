"""Backlink graph API: synchronization entry point and graph queries."""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from notegarden import config
from notegarden.db import connection
from notegarden.errors import NoteNotFoundError, SyncStageError
from notegarden.models import (
    FailedNoteEdge,
    GraphSnapshot,
    NoteEdge,
    OwnerResyncResponse,
    ReferencedNote,
)
from notegarden.services.backlink_sync import BacklinkSynchronizer
from notegarden.services.graph_queries import GraphQueryService

logger = logging.getLogger("notegarden.api")

backlinks_router = APIRouter(prefix="/api/backlinks", tags=["backlinks"])

_REQUIRED_FIELDS = ("note_id", "content", "owner_id")
# Older clients send the owner as ``user_id``.
_FIELD_ALIASES = {"user_id": "owner_id"}


class BacklinkParsePayload(BaseModel):
    note_id: str = Field(..., min_length=1)
    content: str
    owner_id: str = Field(..., min_length=1)


class BacklinkParseResponse(BaseModel):
    message: str = "Backlinks processed successfully"
    insertedLinks: list[NoteEdge] = Field(default_factory=list)
    unresolved: list[str] = Field(default_factory=list)


class BacklinkErrorResponse(BaseModel):
    """Error body of the parse endpoint; ``error`` is the machine-readable code."""
    error: str
    message: str
    stage: Optional[str] = None
    fields: Optional[list[str]] = None
    insertedLinks: Optional[list[NoteEdge]] = None
    failedLinks: Optional[list[FailedNoteEdge]] = None
    unresolved: Optional[list[str]] = None


_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": BacklinkErrorResponse} for status in (400, 404, 500, 502)
}


class BacklinkApiError(Exception):
    """A parse failure rendered as a top-level ``{"error": code, ...}`` body."""

    def __init__(self, status_code: int, code: str, message: str, **extra: Any):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.body = {"error": code, "message": message, **extra}

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.body)


def _parse_payload(body: bytes, content_type: str) -> BacklinkParsePayload:
    if not body or not body.strip():
        raise BacklinkApiError(400, "empty_body", "Request body is empty or missing")
    if "application/json" not in (content_type or "").lower():
        raise BacklinkApiError(400, "unsupported_media_type", "Content-Type must be application/json")
    try:
        raw = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise BacklinkApiError(400, "invalid_json", "Invalid JSON payload") from exc
    if not isinstance(raw, dict):
        raise BacklinkApiError(400, "invalid_payload", "Payload must be a JSON object")

    for alias, name in _FIELD_ALIASES.items():
        if name not in raw and alias in raw:
            raw[name] = raw[alias]

    missing = [name for name in _REQUIRED_FIELDS if raw.get(name) is None]
    if missing:
        raise BacklinkApiError(400, "missing_fields", f"Missing {', '.join(missing)}", fields=missing)
    wrong_type = [name for name in _REQUIRED_FIELDS if not isinstance(raw[name], str)]
    if wrong_type:
        raise BacklinkApiError(
            400, "invalid_field_type", f"Fields must be strings: {', '.join(wrong_type)}", fields=wrong_type,
        )
    empty = [name for name in ("note_id", "owner_id") if not raw[name].strip()]
    if empty:
        raise BacklinkApiError(400, "missing_fields", f"Missing {', '.join(empty)}", fields=empty)

    return BacklinkParsePayload(note_id=raw["note_id"], content=raw["content"], owner_id=raw["owner_id"])


async def _parse_backlinks(request: Request) -> BacklinkParseResponse:
    body = await request.body()
    payload = _parse_payload(body, request.headers.get("content-type", ""))

    try:
        db = await connection.get_connection()
        result = await BacklinkSynchronizer(db).synchronize(payload.note_id, payload.owner_id, payload.content)
    except NoteNotFoundError as exc:
        raise BacklinkApiError(404, exc.code, str(exc)) from exc
    except SyncStageError as exc:
        status_code = 500 if exc.stage == "insert" else 502
        raise BacklinkApiError(
            status_code, exc.code, f"Backlink sync failed at stage '{exc.stage}'", stage=exc.stage,
        ) from exc
    except Exception as exc:
        logger.exception("Unexpected error while parsing backlinks for note %s", payload.note_id)
        raise BacklinkApiError(500, "internal_error", "Internal server error") from exc

    if result.status == "partial":
        raise BacklinkApiError(
            500,
            "insert_failed",
            "Some backlinks could not be stored",
            stage="insert",
            insertedLinks=[edge.model_dump() for edge in result.insertedLinks],
            failedLinks=[edge.model_dump() for edge in result.failedLinks],
            unresolved=result.unresolved,
        )

    return BacklinkParseResponse(insertedLinks=result.insertedLinks, unresolved=result.unresolved)


@backlinks_router.post("/parse", response_model=BacklinkParseResponse, responses=_ERROR_RESPONSES)
async def parse_backlinks(request: Request):
    """Recompute the outgoing backlinks of one note from the submitted content.

    Failures answer with a top-level ``{"error": code, "message": ...}`` body.
    """
    try:
        return await _parse_backlinks(request)
    except BacklinkApiError as exc:
        return exc.to_response()


@backlinks_router.post("/resync", response_model=OwnerResyncResponse)
async def resync_owner_backlinks(owner_id: str = Query(..., min_length=1)):
    """Re-run synchronization for every note of an owner."""
    db = await connection.get_connection()
    return await BacklinkSynchronizer(db).resync_owner(owner_id)


@backlinks_router.get("/notes/{note_id}/outgoing", response_model=list[NoteEdge])
async def get_outgoing_links(note_id: str):
    db = await connection.get_connection()
    return await GraphQueryService(db).outgoing(note_id)


@backlinks_router.get("/notes/{note_id}/incoming", response_model=list[NoteEdge])
async def get_incoming_links(note_id: str):
    db = await connection.get_connection()
    return await GraphQueryService(db).incoming(note_id)


@backlinks_router.get("/top", response_model=list[ReferencedNote])
async def get_top_referenced(
    owner_id: str = Query(..., min_length=1),
    limit: int = Query(config.TOP_REFERENCED_LIMIT, ge=1, le=config.TOP_REFERENCED_MAX_LIMIT),
):
    """Most referenced notes of an owner, recomputed on every call."""
    db = await connection.get_connection()
    return await GraphQueryService(db).top_referenced(owner_id, limit)


@backlinks_router.get("/graph", response_model=GraphSnapshot)
async def get_graph(owner_id: str = Query(..., min_length=1)):
    db = await connection.get_connection()
    return await GraphQueryService(db).snapshot(owner_id)
