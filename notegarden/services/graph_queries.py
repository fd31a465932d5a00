"""Read-only queries over the stored backlink graph."""
from __future__ import annotations

from typing import Any

from notegarden.db.factory import get_note_link_repository, get_note_repository
from notegarden.models import GraphLink, GraphNode, GraphSnapshot, NoteEdge, ReferencedNote


class GraphQueryService:
    def __init__(self, db: Any, note_repo: Any = None, link_repo: Any = None):
        self.db = db
        self.note_repo = note_repo or get_note_repository(db)
        self.link_repo = link_repo or get_note_link_repository(db)

    async def outgoing(self, note_id: str) -> list[NoteEdge]:
        rows = await self.link_repo.list_outgoing(note_id)
        return [_edge(row) for row in rows]

    async def incoming(self, note_id: str) -> list[NoteEdge]:
        rows = await self.link_repo.list_incoming(note_id)
        return [_edge(row) for row in rows]

    async def top_referenced(self, owner_id: str, limit: int) -> list[ReferencedNote]:
        """Owner notes by incoming edge count; ties go to the older note."""
        if limit <= 0:
            return []
        rows = await self.link_repo.top_referenced(owner_id, limit)
        return [
            ReferencedNote(
                id=str(row["id"]),
                slug=str(row.get("slug") or ""),
                title=str(row.get("title") or ""),
                backlinks=int(row.get("backlinks") or 0),
            )
            for row in rows
        ]

    async def snapshot(self, owner_id: str) -> GraphSnapshot:
        notes = await self.note_repo.list_for_owner(owner_id)
        edges = await self.link_repo.list_for_owner(owner_id)
        return GraphSnapshot(
            nodes=[
                GraphNode(
                    id=str(note["id"]),
                    name=str(note.get("title") or note.get("slug") or ""),
                    slug=str(note.get("slug") or ""),
                )
                for note in notes
            ],
            links=[GraphLink(source=str(e["source_note_id"]), target=str(e["target_note_id"])) for e in edges],
        )


def _edge(row: dict) -> NoteEdge:
    return NoteEdge(
        source_note_id=str(row["source_note_id"]),
        target_note_id=str(row["target_note_id"]),
        label=str(row.get("label") or ""),
    )
