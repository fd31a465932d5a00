"""PostgreSQL implementation of NoteLinkRepository."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

import asyncpg

from notegarden.errors import SyncStageError

logger = logging.getLogger("notegarden.db")


class PostgresNoteLinkRepository:
    def __init__(self, db: asyncpg.Pool):
        self.db = db

    async def replace_outgoing(self, source_note_id: str, edges: list[dict]) -> dict:
        """Same contract as the SQLite repository; replacements of one note are serialized."""
        now = datetime.now(timezone.utc).isoformat()
        inserted: list[dict] = []
        failed: list[dict] = []
        seen: set[str] = set()

        async with self.db.acquire() as conn:
            try:
                async with conn.transaction():
                    try:
                        # Row lock on the source note: a second replacement for the
                        # same note waits here until this one commits or rolls back.
                        await conn.fetchval(
                            "SELECT id FROM notes WHERE id = $1 FOR UPDATE",
                            source_note_id,
                        )
                        await conn.execute(
                            "DELETE FROM note_links WHERE source_note_id = $1",
                            source_note_id,
                        )
                    except asyncpg.PostgresError as exc:
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
                        try:
                            # Nested transaction() is a savepoint.
                            async with conn.transaction():
                                await conn.execute(
                                    """INSERT INTO note_links (source_note_id, target_note_id, label, created_at)
                                       VALUES ($1, $2, $3, $4)""",
                                    source_note_id, target_id, record["label"], now,
                                )
                        except asyncpg.PostgresError as exc:
                            logger.warning(
                                "Edge insert failed %s -> %s (label=%s): %s",
                                source_note_id, target_id, record["label"], exc,
                            )
                            failed.append({**record, "error": str(exc)})
                        else:
                            inserted.append(record)
            except asyncpg.PostgresError as exc:
                raise SyncStageError("insert", source_note_id, exc) from exc

        return {"inserted": inserted, "failed": failed}

    async def list_outgoing(self, note_id: str) -> list[dict]:
        rows = await self.db.fetch(
            """SELECT source_note_id, target_note_id, label, created_at FROM note_links
               WHERE source_note_id = $1 ORDER BY id""",
            note_id,
        )
        return [dict(r) for r in rows]

    async def list_incoming(self, note_id: str) -> list[dict]:
        rows = await self.db.fetch(
            """SELECT source_note_id, target_note_id, label, created_at FROM note_links
               WHERE target_note_id = $1 ORDER BY id""",
            note_id,
        )
        return [dict(r) for r in rows]

    async def top_referenced(self, owner_id: str, limit: int) -> list[dict]:
        rows = await self.db.fetch(
            """SELECT n.id, n.slug, n.title, COUNT(l.id) AS backlinks
               FROM notes n
               JOIN note_links l ON l.target_note_id = n.id
               WHERE n.owner_id = $1
               GROUP BY n.id, n.slug, n.title, n.created_at
               ORDER BY backlinks DESC, n.created_at ASC, n.id ASC
               LIMIT $2""",
            owner_id, limit,
        )
        return [dict(r) for r in rows]

    async def list_for_owner(self, owner_id: str) -> list[dict]:
        rows = await self.db.fetch(
            """SELECT l.source_note_id, l.target_note_id, l.label, l.created_at
               FROM note_links l
               JOIN notes n ON n.id = l.source_note_id
               WHERE n.owner_id = $1
               ORDER BY l.source_note_id, l.id""",
            owner_id,
        )
        return [dict(r) for r in rows]
