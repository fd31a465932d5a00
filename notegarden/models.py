"""Pydantic models shared by services and the HTTP API."""
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Generic, Literal, Optional, TypeVar

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    offset: int
    limit: int


# ── Graph edges ─────────────────────────────────────────────────────
# Edge records keep snake_case keys; they are the wire format of the
# backlink parse endpoint.

class NoteEdge(BaseModel):
    source_note_id: str
    target_note_id: str
    label: str = ""


class FailedNoteEdge(NoteEdge):
    error: str = ""


class BacklinkSyncResult(BaseModel):
    noteId: str
    ownerId: str
    status: Literal["ok", "partial"] = "ok"
    insertedLinks: list[NoteEdge] = Field(default_factory=list)
    failedLinks: list[FailedNoteEdge] = Field(default_factory=list)
    unresolved: list[str] = Field(default_factory=list)
    selfReferences: list[str] = Field(default_factory=list)


class BacklinkSyncStatus(BaseModel):
    """Outcome of the sync attempted after a note save or during a resync."""
    noteId: str
    status: Literal["ok", "partial", "failed", "skipped"]
    stage: Optional[str] = None
    error: Optional[str] = None
    insertedLinks: list[NoteEdge] = Field(default_factory=list)
    failedLinks: list[FailedNoteEdge] = Field(default_factory=list)
    unresolved: list[str] = Field(default_factory=list)


class OwnerResyncResponse(BaseModel):
    ownerId: str
    total: int = 0
    succeeded: int = 0
    results: list[BacklinkSyncStatus] = Field(default_factory=list)


# ── Graph queries ───────────────────────────────────────────────────

class ReferencedNote(BaseModel):
    id: str
    slug: str
    title: str = ""
    backlinks: int = 0


class GraphNode(BaseModel):
    id: str
    name: str
    slug: str = ""


class GraphLink(BaseModel):
    source: str
    target: str


class GraphSnapshot(BaseModel):
    nodes: list[GraphNode] = Field(default_factory=list)
    links: list[GraphLink] = Field(default_factory=list)


# ── Notes ───────────────────────────────────────────────────────────

class Note(BaseModel):
    id: str
    ownerId: str
    title: str = ""
    slug: str
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    isPublic: bool = False
    createdAt: str = ""
    updatedAt: str = ""


class NoteSummary(BaseModel):
    id: str
    title: str = ""
    slug: str
    tags: list[str] = Field(default_factory=list)
    createdAt: str = ""


class NoteSaveRequest(BaseModel):
    ownerId: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    isPublic: bool = False


class NoteSaveResponse(BaseModel):
    note: Note
    backlinkSync: BacklinkSyncStatus


class LinkedNote(BaseModel):
    label: str
    resolved: bool = False
    noteId: Optional[str] = None
    slug: Optional[str] = None
    href: Optional[str] = None


class RenderedNote(BaseModel):
    note: Note
    content: str
    linkedNotes: list[LinkedNote] = Field(default_factory=list)
