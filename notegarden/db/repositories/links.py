"""SQLite implementation of NoteLinkRepository."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

import aiosqlite

from notegarden.db.connection import connection_lock
from notegarden.errors import SyncStageError

logger = logging.getLogger("notegarden.db")


class SqliteNoteLinkRepository:
    """Directed note edges with atomic per-source replacement."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def replace_outgoing(self, source_note_id: str, edges: list[dict]) -> dict:
        """Replace every outgoing edge of ``source_note_id`` in one transaction.

        Each insert runs in its own savepoint: a failing row is rolled back and
        reported under ``failed`` while the others still commit. A failed delete
        or commit rolls the whole replacement back.
        """
        now = datetime.now(timezone.utc).isoformat()
        inserted: list[dict] = []
        failed: list[dict] = []
        seen: set[str] = set()

        async with connection_lock(self.db):
            try:
                try:
                    await self.db.execute("BEGIN")
                    await self.db.execute(
                        "DELETE FROM note_links WHERE source_note_id = ?",
                        (source_note_id,),
                    )
                except aiosqlite.Error as exc:
                    raise SyncStageError("delete", source_note_id, exc) from exc

                for edge in edges:
                    target_id = edge["target_note_id"]
                    if target_id in seen:
                        continue
                    seen.add(target_id)
                    record = {
                        "source_note_id": source_note_id,
                        "target_note_id": target_id,
                        "label": edge.get("label", ""),
                    }
                    await self.db.execute("SAVEPOINT edge_insert")
                    try:
                        await self.db.execute(
                            """INSERT INTO note_links (source_note_id, target_note_id, label, created_at)
                               VALUES (?, ?, ?, ?)""",
                            (source_note_id, target_id, record["label"], now),
                        )
                    except aiosqlite.Error as exc:
                        await self.db.execute("ROLLBACK TO SAVEPOINT edge_insert")
                        logger.warning(
                            "Edge insert failed %s -> %s (label=%s): %s",
                            source_note_id, target_id, record["label"], exc,
                        )
                        failed.append({**record, "error": str(exc)})
                    else:
                        inserted.append(record)
                    await self.db.execute("RELEASE SAVEPOINT edge_insert")

                try:
                    await self.db.commit()
                except aiosqlite.Error as exc:
                    raise SyncStageError("insert", source_note_id, exc) from exc
            except BaseException:
                await self.db.rollback()
                raise

        return {"inserted": inserted, "failed": failed}

    async def _fetch_all(self, query: str, params: tuple) -> list[dict]:
        async with connection_lock(self.db):
            async with self.db.execute(query, params) as cur:
                return [dict(r) for r in await cur.fetchall()]

    async def list_outgoing(self, note_id: str) -> list[dict]:
        return await self._fetch_all(
            """SELECT source_note_id, target_note_id, label, created_at FROM note_links
               WHERE source_note_id = ? ORDER BY id""",
            (note_id,),
        )

    async def list_incoming(self, note_id: str) -> list[dict]:
        return await self._fetch_all(
            """SELECT source_note_id, target_note_id, label, created_at FROM note_links
               WHERE target_note_id = ? ORDER BY id""",
            (note_id,),
        )

    async def top_referenced(self, owner_id: str, limit: int) -> list[dict]:
        """Owner notes ranked by incoming edge count, from any source."""
        return await self._fetch_all(
            """SELECT n.id, n.slug, n.title, COUNT(l.id) AS backlinks
               FROM notes n
               JOIN note_links l ON l.target_note_id = n.id
               WHERE n.owner_id = ?
               GROUP BY n.id, n.slug, n.title, n.created_at
               ORDER BY backlinks DESC, n.created_at ASC, n.id ASC
               LIMIT ?""",
            (owner_id, limit),
        )

    async def list_for_owner(self, owner_id: str) -> list[dict]:
        """Every edge whose source note belongs to ``owner_id``."""
        return await self._fetch_all(
            """SELECT l.source_note_id, l.target_note_id, l.label, l.created_at
               FROM note_links l
               JOIN notes n ON n.id = l.source_note_id
               WHERE n.owner_id = ?
               ORDER BY l.source_note_id, l.id""",
            (owner_id,),
        )
