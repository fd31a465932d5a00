"""PostgreSQL implementation of NoteRepository."""
from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

import asyncpg

from notegarden.errors import DuplicateSlugError


def _row_to_note(row: Any) -> dict:
    note = dict(row)
    try:
        note["tags"] = json.loads(note.pop("tags_json", "[]") or "[]")
    except (TypeError, ValueError):
        note["tags"] = []
    note["is_public"] = bool(note.get("is_public"))
    return note


class PostgresNoteRepository:
    def __init__(self, db: asyncpg.Pool):
        self.db = db

    async def create(self, note_data: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        note_id = note_data.get("id") or uuid.uuid4().hex
        try:
            row = await self.db.fetchrow(
                """INSERT INTO notes (
                    id, owner_id, title, slug, content, tags_json, is_public,
                    created_at, updated_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING *""",
                note_id, note_data["owner_id"],
                note_data.get("title", ""), note_data["slug"],
                note_data.get("content", ""),
                json.dumps(note_data.get("tags", [])),
                bool(note_data.get("is_public")),
                note_data.get("created_at") or now, now,
            )
        except asyncpg.UniqueViolationError as exc:
            raise DuplicateSlugError(note_data["slug"], note_data["owner_id"]) from exc
        return _row_to_note(row)

    async def update(self, note_id: str, owner_id: str, note_data: dict) -> dict | None:
        now = datetime.now(timezone.utc).isoformat()
        try:
            row = await self.db.fetchrow(
                """UPDATE notes SET
                    title = $1, slug = $2, content = $3, tags_json = $4,
                    is_public = $5, updated_at = $6
                   WHERE id = $7 AND owner_id = $8
                   RETURNING *""",
                note_data.get("title", ""), note_data["slug"],
                note_data.get("content", ""),
                json.dumps(note_data.get("tags", [])),
                bool(note_data.get("is_public")),
                now, note_id, owner_id,
            )
        except asyncpg.UniqueViolationError as exc:
            raise DuplicateSlugError(note_data["slug"], owner_id) from exc
        return _row_to_note(row) if row else None

    async def get_by_id(self, note_id: str) -> dict | None:
        row = await self.db.fetchrow("SELECT * FROM notes WHERE id = $1", note_id)
        return _row_to_note(row) if row else None

    async def get_by_slug(self, owner_id: str, slug: str, public_only: bool = False) -> dict | None:
        query = "SELECT * FROM notes WHERE owner_id = $1 AND slug = $2"
        if public_only:
            query += " AND is_public"
        row = await self.db.fetchrow(query, owner_id, slug)
        return _row_to_note(row) if row else None

    async def slug_taken(self, owner_id: str, slug: str, exclude_note_id: str | None = None) -> bool:
        val = await self.db.fetchval(
            "SELECT id FROM notes WHERE owner_id = $1 AND slug = $2 AND id <> $3",
            owner_id, slug, exclude_note_id or "",
        )
        return val is not None

    def _owner_filter(self, owner_id: str, public_only: bool, tag: str | None) -> tuple[str, list[Any]]:
        where = "owner_id = $1"
        params: list[Any] = [owner_id]
        if public_only:
            where += " AND is_public"
        if tag:
            params.append(tag)
            where += f" AND tags_json::jsonb @> jsonb_build_array(${len(params)}::text)"
        return where, params

    async def list_for_owner(
        self,
        owner_id: str,
        public_only: bool = False,
        tag: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict]:
        where, params = self._owner_filter(owner_id, public_only, tag)
        query = f"SELECT * FROM notes WHERE {where} ORDER BY created_at DESC, id DESC"
        if limit is not None:
            params.extend([limit, max(0, offset)])
            query += f" LIMIT ${len(params) - 1} OFFSET ${len(params)}"
        rows = await self.db.fetch(query, *params)
        return [_row_to_note(r) for r in rows]

    async def count_for_owner(self, owner_id: str, public_only: bool = False, tag: str | None = None) -> int:
        where, params = self._owner_filter(owner_id, public_only, tag)
        return int(await self.db.fetchval(f"SELECT COUNT(*) FROM notes WHERE {where}", *params) or 0)

    async def list_directory(self, owner_id: str) -> list[dict]:
        rows = await self.db.fetch(
            "SELECT id, slug FROM notes WHERE owner_id = $1 ORDER BY created_at, id",
            owner_id,
        )
        return [dict(r) for r in rows]

    async def delete(self, note_id: str, owner_id: str) -> bool:
        async with self.db.acquire() as conn:
            async with conn.transaction():
                found = await conn.fetchval(
                    "SELECT id FROM notes WHERE id = $1 AND owner_id = $2 FOR UPDATE",
                    note_id, owner_id,
                )
                if found is None:
                    return False
                await conn.execute(
                    "DELETE FROM note_links WHERE source_note_id = $1 OR target_note_id = $1",
                    note_id,
                )
                await conn.execute("DELETE FROM notes WHERE id = $1", note_id)
        return True
