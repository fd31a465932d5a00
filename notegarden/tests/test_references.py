import unittest

from notegarden.references import (
    extract_references,
    find_directory_entry,
    iter_references,
    resolve_reference,
    resolve_references,
    slugify_title,
    substitute_references,
)


DIRECTORY = [
    {"id": "1", "slug": "intro"},
    {"id": "2", "slug": "advanced-"},
    {"id": "3", "slug": "notes-on-graphs"},
]


class ReferenceExtractionTests(unittest.TestCase):
    def test_extracts_labels_in_order_with_duplicates(self) -> None:
        labels = extract_references("See [[intro]], then [[ advanced ]] and [[intro]] again.")

        self.assertEqual(labels, ["intro", "advanced", "intro"])

    def test_empty_and_none_content_yield_nothing(self) -> None:
        self.assertEqual(extract_references(""), [])
        self.assertEqual(extract_references(None), [])

    def test_malformed_and_blank_brackets_do_not_match(self) -> None:
        labels = extract_references("[[]] [[   ]] [[open] [single] [[unclosed")

        self.assertEqual(labels, [])

    def test_nested_brackets_are_not_recursed(self) -> None:
        # The label stops at the first closing bracket.
        self.assertEqual(extract_references("[[[[inner]]]]"), ["[[inner"])

    def test_matching_is_case_sensitive_and_keeps_inner_spacing(self) -> None:
        self.assertEqual(extract_references("[[Intro]] [[two words]]"), ["Intro", "two words"])

    def test_extraction_is_repeatable(self) -> None:
        content = "[[a]] text [[b]] [[a]]"

        self.assertEqual(extract_references(content), extract_references(content))
        self.assertEqual(list(iter_references(content)), list(iter_references(content)))

    def test_iter_references_is_lazy(self) -> None:
        labels = iter_references("[[a]] [[b]]")

        self.assertEqual(next(labels), "a")
        self.assertEqual(next(labels), "b")
        with self.assertRaises(StopIteration):
            next(labels)


class SlugResolutionTests(unittest.TestCase):
    def test_exact_slug_match(self) -> None:
        self.assertEqual(resolve_reference("intro", "9", DIRECTORY), "1")

    def test_label_finds_slug_with_trailing_hyphen(self) -> None:
        self.assertEqual(resolve_reference("advanced", "9", DIRECTORY), "2")

    def test_label_with_trailing_hyphen_finds_plain_slug(self) -> None:
        self.assertEqual(resolve_reference("intro-", "9", DIRECTORY), "1")
        self.assertEqual(resolve_reference("intro--", "9", DIRECTORY), "1")

    def test_unknown_label_resolves_to_none(self) -> None:
        self.assertIsNone(resolve_reference("missing", "9", DIRECTORY))

    def test_self_reference_resolves_to_none(self) -> None:
        self.assertIsNone(resolve_reference("intro", "1", DIRECTORY))

    def test_self_reference_does_not_fall_through_to_other_candidates(self) -> None:
        directory = [{"id": "1", "slug": "foo"}, {"id": "2", "slug": "foo-"}]

        self.assertIsNone(resolve_reference("foo", "1", directory))

    def test_exact_match_beats_earlier_tolerant_match(self) -> None:
        directory = [{"id": "1", "slug": "foo-"}, {"id": "2", "slug": "foo"}]

        self.assertEqual(find_directory_entry("foo", directory)["id"], "2")

    def test_resolution_is_deterministic_for_a_fixed_directory(self) -> None:
        results = {resolve_reference("advanced", "9", DIRECTORY) for _ in range(5)}

        self.assertEqual(results, {"2"})

    def test_hyphen_only_label_does_not_match_everything(self) -> None:
        directory = [{"id": "1", "slug": "-"}, {"id": "2", "slug": "foo"}]

        self.assertEqual(resolve_reference("-", "9", directory), "1")
        self.assertIsNone(resolve_reference("--", "9", [{"id": "2", "slug": "foo"}]))


class ResolveReferencesTests(unittest.TestCase):
    def test_collapses_repeated_targets_to_one_entry(self) -> None:
        refs = resolve_references(["intro", "intro", "intro-", "intro"], "9", DIRECTORY)

        self.assertEqual(refs.target_ids, ["1"])
        self.assertEqual(refs.resolved[0].label, "intro")
        self.assertEqual(refs.resolved[0].slug, "intro")

    def test_reports_unresolved_and_self_references_separately(self) -> None:
        refs = resolve_references(["advanced", "missing", "intro", "missing"], "1", DIRECTORY)

        self.assertEqual(refs.target_ids, ["2"])
        self.assertEqual(refs.unresolved, ["missing"])
        self.assertEqual(refs.self_references, ["intro"])

    def test_labels_are_stripped_like_single_resolution(self) -> None:
        refs = resolve_references(["  advanced ", " ", "missing\t"], "9", DIRECTORY)

        self.assertEqual(refs.target_ids, [resolve_reference("  advanced ", "9", DIRECTORY)])
        self.assertEqual(refs.resolved[0].label, "advanced")
        self.assertEqual(refs.unresolved, ["missing"])


class ReferenceHelpersTests(unittest.TestCase):
    def test_slugify_title_matches_editor_slug_rules(self) -> None:
        self.assertEqual(slugify_title("Notes on   Graphs"), "notes-on-graphs")
        self.assertEqual(slugify_title("Advanced "), "advanced-")

    def test_substitute_references_keeps_markup_when_replacement_is_none(self) -> None:
        rewritten = substitute_references(
            "[[intro]] and [[missing]]",
            lambda label: "<intro>" if label == "intro" else None,
        )

        self.assertEqual(rewritten, "<intro> and [[missing]]")


if __name__ == "__main__":
    unittest.main()
