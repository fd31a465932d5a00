import unittest

from notegarden.db.connection import open_sqlite
from notegarden.db.repositories.links import SqliteNoteLinkRepository
from notegarden.db.repositories.notes import SqliteNoteRepository
from notegarden.db.sqlite_migrations import run_migrations
from notegarden.services.graph_queries import GraphQueryService


class GraphQueryServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await open_sqlite(":memory:")
        await run_migrations(self.db)
        notes = SqliteNoteRepository(self.db)
        for note_id, title, day in (("1", "Intro", 1), ("2", "Advanced", 2), ("3", "Graphs", 3)):
            await notes.create({
                "id": note_id,
                "owner_id": "alice",
                "title": title,
                "slug": title.lower(),
                "created_at": f"2026-02-0{day}T00:00:00+00:00",
            })
        links = SqliteNoteLinkRepository(self.db)
        await links.replace_outgoing("2", [{"target_note_id": "1", "label": "intro"}])
        await links.replace_outgoing("3", [{"target_note_id": "1", "label": "intro"}, {"target_note_id": "2", "label": "advanced"}])
        self.service = GraphQueryService(self.db)

    async def asyncTearDown(self) -> None:
        await self.db.close()

    async def test_outgoing_and_incoming_edges(self) -> None:
        outgoing = await self.service.outgoing("3")
        incoming = await self.service.incoming("1")

        self.assertEqual([(e.target_note_id, e.label) for e in outgoing], [("1", "intro"), ("2", "advanced")])
        self.assertEqual(sorted(e.source_note_id for e in incoming), ["2", "3"])

    async def test_top_referenced_counts_and_limit(self) -> None:
        top = await self.service.top_referenced("alice", 5)

        self.assertEqual([(n.id, n.title, n.backlinks) for n in top], [("1", "Intro", 2), ("2", "Advanced", 1)])
        self.assertEqual(await self.service.top_referenced("alice", 0), [])

    async def test_snapshot_lists_nodes_and_links(self) -> None:
        snapshot = await self.service.snapshot("alice")

        self.assertEqual(sorted(node.id for node in snapshot.nodes), ["1", "2", "3"])
        self.assertEqual({node.name for node in snapshot.nodes}, {"Intro", "Advanced", "Graphs"})
        self.assertEqual(
            sorted((link.source, link.target) for link in snapshot.links),
            [("2", "1"), ("3", "1"), ("3", "2")],
        )

    async def test_snapshot_of_unknown_owner_is_empty(self) -> None:
        snapshot = await self.service.snapshot("nobody")

        self.assertEqual((snapshot.nodes, snapshot.links), ([], []))


if __name__ == "__main__":
    unittest.main()
