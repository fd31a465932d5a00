import asyncio
import unittest

import asyncpg

from notegarden.db.repositories.postgres.links import PostgresNoteLinkRepository
from notegarden.errors import SyncStageError


class _FakeDatabase:
    """Committed edge rows plus per-note row locks, shared by every fake connection."""

    def __init__(self, edges=None, missing_targets=(), delete_error: Exception | None = None):
        self.edges: dict[str, list[str]] = {k: list(v) for k, v in (edges or {}).items()}
        self.missing_targets = set(missing_targets)
        self.delete_error = delete_error
        self.row_locks: dict[str, asyncio.Lock] = {}
        self.statements: list[str] = []

    def acquire(self):
        return _FakeAcquire(_FakeConnection(self))


class _FakeAcquire:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _FakeTransaction:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        conn = self.conn
        conn.snapshots.append(dict((k, list(v)) for k, v in conn.pending.items()))
        return self

    async def __aexit__(self, exc_type, exc, tb):
        conn = self.conn
        snapshot = conn.snapshots.pop()
        if exc_type is not None:
            conn.pending = snapshot
        if not conn.snapshots:
            if exc_type is None:
                conn.db.edges.update(conn.pending)
            conn.pending = {}
            for lock in conn.held_locks:
                lock.release()
            conn.held_locks = []
        return False


class _FakeConnection:
    def __init__(self, db: _FakeDatabase):
        self.db = db
        self.pending: dict[str, list[str]] = {}
        self.snapshots: list[dict] = []
        self.held_locks: list[asyncio.Lock] = []

    def transaction(self):
        return _FakeTransaction(self)

    async def fetchval(self, query, *args):
        self.db.statements.append(query.split()[0] + (" FOR UPDATE" if "FOR UPDATE" in query else ""))
        if "FOR UPDATE" in query:
            lock = self.db.row_locks.setdefault(args[0], asyncio.Lock())
            await lock.acquire()
            self.held_locks.append(lock)
            return args[0]
        return None

    async def execute(self, query, *args):
        verb = query.split()[0]
        self.db.statements.append(verb)
        await asyncio.sleep(0)
        source = args[0]
        if verb == "DELETE":
            if self.db.delete_error is not None:
                raise self.db.delete_error
            self.pending[source] = []
            return "DELETE"
        if verb == "INSERT":
            target = args[1]
            if target in self.db.missing_targets:
                raise asyncpg.exceptions.ForeignKeyViolationError(f"target {target} does not exist")
            current = self.pending.setdefault(source, list(self.db.edges.get(source, [])))
            if target in current or target in self.db.edges.get(source, []) and source not in self.pending:
                raise asyncpg.exceptions.UniqueViolationError("duplicate edge")
            current.append(target)
            return "INSERT 0 1"
        raise AssertionError(f"unexpected statement {query}")


class PostgresReplaceOutgoingTests(unittest.IsolatedAsyncioTestCase):
    async def test_source_row_is_locked_before_edges_are_deleted(self) -> None:
        db = _FakeDatabase(edges={"n1": ["old"]})

        outcome = await PostgresNoteLinkRepository(db).replace_outgoing(
            "n1", [{"target_note_id": "a", "label": "a"}, {"target_note_id": "b", "label": "b"}],
        )

        self.assertEqual(db.statements, ["SELECT FOR UPDATE", "DELETE", "INSERT", "INSERT"])
        self.assertEqual(db.edges["n1"], ["a", "b"])
        self.assertEqual([row["target_note_id"] for row in outcome["inserted"]], ["a", "b"])
        self.assertEqual(outcome["failed"], [])

    async def test_failed_insert_rolls_back_only_its_savepoint(self) -> None:
        db = _FakeDatabase(missing_targets={"ghost"})

        outcome = await PostgresNoteLinkRepository(db).replace_outgoing(
            "n1",
            [{"target_note_id": "a"}, {"target_note_id": "ghost"}, {"target_note_id": "b"}],
        )

        self.assertEqual(db.edges["n1"], ["a", "b"])
        self.assertEqual([row["target_note_id"] for row in outcome["failed"]], ["ghost"])
        self.assertIn("does not exist", outcome["failed"][0]["error"])

    async def test_delete_failure_leaves_committed_edges_untouched(self) -> None:
        db = _FakeDatabase(
            edges={"n1": ["old"]},
            delete_error=asyncpg.exceptions.LockNotAvailableError("lock timeout"),
        )

        with self.assertRaises(SyncStageError) as ctx:
            await PostgresNoteLinkRepository(db).replace_outgoing("n1", [{"target_note_id": "a"}])

        self.assertEqual(ctx.exception.stage, "delete")
        self.assertEqual(db.edges["n1"], ["old"])
        self.assertFalse(db.row_locks["n1"].locked())

    async def test_overlapping_replacements_commit_one_whole_edge_set(self) -> None:
        db = _FakeDatabase()
        repo = PostgresNoteLinkRepository(db)

        first, second = await asyncio.gather(
            repo.replace_outgoing("n1", [{"target_note_id": "x"}, {"target_note_id": "y"}]),
            repo.replace_outgoing("n1", [{"target_note_id": "y"}, {"target_note_id": "z"}]),
        )

        self.assertIn(db.edges["n1"], (["x", "y"], ["y", "z"]))
        self.assertEqual((first["failed"], second["failed"]), ([], []))


if __name__ == "__main__":
    unittest.main()
