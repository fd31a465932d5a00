import unittest

from notegarden.rendering import garden_href, render_note_content


DIRECTORY = [
    {"id": "1", "slug": "intro"},
    {"id": "2", "slug": "advanced-"},
]


class RenderNoteContentTests(unittest.TestCase):
    def _render(self, content: str, note_id: str = "9"):
        return render_note_content(
            content,
            note_id,
            DIRECTORY,
            garden_href("alice", "/garden/{owner_id}/{slug}"),
        )

    def test_rewrites_resolved_references_to_target_slug_links(self) -> None:
        rendered = self._render("Read [[advanced]] after [[intro]].")

        self.assertEqual(
            rendered.content,
            "Read [advanced](/garden/alice/advanced-) after [intro](/garden/alice/intro).",
        )

    def test_unresolved_and_self_references_keep_their_markup(self) -> None:
        rendered = self._render("[[intro]] and [[missing]]", note_id="1")

        self.assertEqual(rendered.content, "[[intro]] and [[missing]]")
        self.assertEqual([link.resolved for link in rendered.linked_notes], [False, False])

    def test_linked_notes_are_distinct_labels_in_order(self) -> None:
        rendered = self._render("[[missing]] [[intro]] [[missing]] [[advanced]] [[intro]]")

        self.assertEqual([link.label for link in rendered.linked_notes], ["missing", "intro", "advanced"])
        intro = rendered.linked_notes[1]
        self.assertTrue(intro.resolved)
        self.assertEqual(intro.noteId, "1")
        self.assertEqual(intro.href, "/garden/alice/intro")
        self.assertIsNone(rendered.linked_notes[0].href)

    def test_editor_template_links_by_note_id(self) -> None:
        rendered = render_note_content("[[intro]]", "9", DIRECTORY, garden_href("alice", "/editor/{note_id}"))

        self.assertEqual(rendered.content, "[intro](/editor/1)")

    def test_empty_content_renders_empty(self) -> None:
        rendered = self._render("")

        self.assertEqual(rendered.content, "")
        self.assertEqual(rendered.linked_notes, [])


if __name__ == "__main__":
    unittest.main()
