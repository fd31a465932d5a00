"""SQLite implementation of NoteRepository."""
from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from notegarden.db.connection import connection_lock
from notegarden.errors import DuplicateSlugError


def _row_to_note(row: Any) -> dict:
    note = dict(row)
    try:
        note["tags"] = json.loads(note.pop("tags_json", "[]") or "[]")
    except (TypeError, ValueError):
        note["tags"] = []
    note["is_public"] = bool(note.get("is_public"))
    return note


class SqliteNoteRepository:
    """Owner-scoped note storage; the directory feeds reference resolution."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def create(self, note_data: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        note_id = note_data.get("id") or uuid.uuid4().hex
        async with connection_lock(self.db):
            try:
                await self.db.execute(
                    """INSERT INTO notes (
                        id, owner_id, title, slug, content, tags_json, is_public,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        note_id, note_data["owner_id"],
                        note_data.get("title", ""), note_data["slug"],
                        note_data.get("content", ""),
                        json.dumps(note_data.get("tags", [])),
                        1 if note_data.get("is_public") else 0,
                        note_data.get("created_at") or now, now,
                    ),
                )
                await self.db.commit()
            except aiosqlite.IntegrityError as exc:
                await self.db.rollback()
                raise DuplicateSlugError(note_data["slug"], note_data["owner_id"]) from exc
        created = await self.get_by_id(note_id)
        return created or {}

    async def update(self, note_id: str, owner_id: str, note_data: dict) -> dict | None:
        now = datetime.now(timezone.utc).isoformat()
        async with connection_lock(self.db):
            try:
                async with self.db.execute(
                    """UPDATE notes SET
                        title = ?, slug = ?, content = ?, tags_json = ?,
                        is_public = ?, updated_at = ?
                       WHERE id = ? AND owner_id = ?""",
                    (
                        note_data.get("title", ""), note_data["slug"],
                        note_data.get("content", ""),
                        json.dumps(note_data.get("tags", [])),
                        1 if note_data.get("is_public") else 0,
                        now, note_id, owner_id,
                    ),
                ) as cur:
                    changed = cur.rowcount
                await self.db.commit()
            except aiosqlite.IntegrityError as exc:
                await self.db.rollback()
                raise DuplicateSlugError(note_data["slug"], owner_id) from exc
        if not changed:
            return None
        return await self.get_by_id(note_id)

    async def _fetch_one(self, query: str, params: tuple) -> Any:
        async with connection_lock(self.db):
            async with self.db.execute(query, params) as cur:
                return await cur.fetchone()

    async def _fetch_all(self, query: str, params: tuple) -> list[Any]:
        async with connection_lock(self.db):
            async with self.db.execute(query, params) as cur:
                return await cur.fetchall()

    async def get_by_id(self, note_id: str) -> dict | None:
        row = await self._fetch_one("SELECT * FROM notes WHERE id = ?", (note_id,))
        return _row_to_note(row) if row else None

    async def get_by_slug(self, owner_id: str, slug: str, public_only: bool = False) -> dict | None:
        query = "SELECT * FROM notes WHERE owner_id = ? AND slug = ?"
        if public_only:
            query += " AND is_public = 1"
        row = await self._fetch_one(query, (owner_id, slug))
        return _row_to_note(row) if row else None

    async def slug_taken(self, owner_id: str, slug: str, exclude_note_id: str | None = None) -> bool:
        row = await self._fetch_one(
            "SELECT id FROM notes WHERE owner_id = ? AND slug = ? AND id != ?",
            (owner_id, slug, exclude_note_id or ""),
        )
        return row is not None

    def _owner_filter(self, owner_id: str, public_only: bool, tag: str | None) -> tuple[str, list[Any]]:
        where = "owner_id = ?"
        params: list[Any] = [owner_id]
        if public_only:
            where += " AND is_public = 1"
        if tag:
            where += " AND EXISTS (SELECT 1 FROM json_each(notes.tags_json) WHERE json_each.value = ?)"
            params.append(tag)
        return where, params

    async def list_for_owner(
        self,
        owner_id: str,
        public_only: bool = False,
        tag: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict]:
        """Owner notes, newest first, optionally filtered by visibility and tag."""
        where, params = self._owner_filter(owner_id, public_only, tag)
        query = f"SELECT * FROM notes WHERE {where} ORDER BY created_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, max(0, offset)])
        rows = await self._fetch_all(query, tuple(params))
        return [_row_to_note(r) for r in rows]

    async def count_for_owner(self, owner_id: str, public_only: bool = False, tag: str | None = None) -> int:
        where, params = self._owner_filter(owner_id, public_only, tag)
        row = await self._fetch_one(f"SELECT COUNT(*) FROM notes WHERE {where}", tuple(params))
        return int(row[0]) if row else 0

    async def list_directory(self, owner_id: str) -> list[dict]:
        """(id, slug) pairs for one owner, oldest note first."""
        rows = await self._fetch_all(
            "SELECT id, slug FROM notes WHERE owner_id = ? ORDER BY created_at, id",
            (owner_id,),
        )
        return [dict(r) for r in rows]

    async def delete(self, note_id: str, owner_id: str) -> bool:
        """Delete a note together with every edge that starts or ends at it."""
        async with connection_lock(self.db):
            try:
                await self.db.execute("BEGIN")
                await self.db.execute(
                    "DELETE FROM note_links WHERE source_note_id = ? OR target_note_id = ?",
                    (note_id, note_id),
                )
                async with self.db.execute(
                    "DELETE FROM notes WHERE id = ? AND owner_id = ?",
                    (note_id, owner_id),
                ) as cur:
                    deleted = cur.rowcount
                if not deleted:
                    await self.db.rollback()
                    return False
                await self.db.commit()
            except BaseException:
                await self.db.rollback()
                raise
        return True
