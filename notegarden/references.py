"""Shared reference extraction and slug resolution.

Both the backlink synchronizer and display-time rendering go through these
helpers, so the persisted graph and rendered links always agree on which
``[[label]]`` points at which note.

Directory entries are plain mappings with ``id`` and ``slug`` keys, which is
what the note repositories return from ``list_directory``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional


_REFERENCE_PATTERN = re.compile(r"\[\[([^\]]+)\]\]")

DirectoryEntry = Mapping[str, Any]


def iter_references(content: str | None) -> Iterator[str]:
    """Yield reference labels in order of appearance.

    Every call starts a new scan, so the result can be re-created at will.
    Labels are stripped; a bracket pair holding only whitespace yields nothing.
    """
    if not content:
        return
    for match in _REFERENCE_PATTERN.finditer(content):
        label = match.group(1).strip()
        if label:
            yield label


def extract_references(content: str | None) -> list[str]:
    return list(iter_references(content))


def substitute_references(content: str | None, replace: Callable[[str], Optional[str]]) -> str:
    """Rewrite each ``[[label]]`` with ``replace(label)``; ``None`` keeps the markup."""
    if not content:
        return content or ""

    def _sub(match: re.Match) -> str:
        label = match.group(1).strip()
        if not label:
            return match.group(0)
        replacement = replace(label)
        return match.group(0) if replacement is None else replacement

    return _REFERENCE_PATTERN.sub(_sub, content)


def _entry_id(entry: DirectoryEntry) -> str:
    return str(entry.get("id") or "")


def _entry_slug(entry: DirectoryEntry) -> str:
    return str(entry.get("slug") or "")


def _match_exact(slug: str, label: str) -> bool:
    return slug == label


def _match_trailing_hyphen(slug: str, label: str) -> bool:
    return slug == label + "-"


def _match_stripped(slug: str, label: str) -> bool:
    stripped = label.rstrip("-")
    return bool(stripped) and slug.rstrip("-") == stripped


# Tried in this order across the whole directory; the first rule with any hit wins.
_MATCH_RULES = (_match_exact, _match_trailing_hyphen, _match_stripped)


def find_directory_entry(label: str, directory: Iterable[DirectoryEntry]) -> Optional[DirectoryEntry]:
    entries = list(directory)
    for rule in _MATCH_RULES:
        for entry in entries:
            if rule(_entry_slug(entry), label):
                return entry
    return None


def resolve_reference(
    label: str,
    source_note_id: str,
    directory: Iterable[DirectoryEntry],
) -> Optional[str]:
    """Resolve one label to a target note id within the owner's directory.

    Returns ``None`` when nothing matches or when the match is the source note
    itself; a self-reference never falls through to another candidate.
    """
    token = (label or "").strip()
    if not token:
        return None
    entry = find_directory_entry(token, directory)
    if entry is None:
        return None
    target_id = _entry_id(entry)
    if not target_id or target_id == source_note_id:
        return None
    return target_id


@dataclass
class ResolvedReference:
    label: str
    target_note_id: str
    slug: str


@dataclass
class ResolvedReferences:
    resolved: list[ResolvedReference] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    self_references: list[str] = field(default_factory=list)

    @property
    def target_ids(self) -> list[str]:
        return [ref.target_note_id for ref in self.resolved]


def resolve_references(
    labels: Iterable[str],
    source_note_id: str,
    directory: Iterable[DirectoryEntry],
) -> ResolvedReferences:
    """Resolve labels and collapse them to one entry per target note.

    Labels are stripped the same way ``resolve_reference`` strips them and
    blank ones are skipped. The first label that reaches a target is the one
    reported for it.
    """
    entries = list(directory)
    result = ResolvedReferences()
    seen_targets: set[str] = set()
    seen_misses: set[str] = set()

    for raw_label in labels:
        label = (raw_label or "").strip()
        if not label:
            continue
        entry = find_directory_entry(label, entries)
        if entry is None:
            if label not in seen_misses:
                seen_misses.add(label)
                result.unresolved.append(label)
            continue
        target_id = _entry_id(entry)
        if target_id == source_note_id:
            if label not in result.self_references:
                result.self_references.append(label)
            continue
        if not target_id or target_id in seen_targets:
            continue
        seen_targets.add(target_id)
        result.resolved.append(ResolvedReference(label=label, target_note_id=target_id, slug=_entry_slug(entry)))

    return result


def slugify_title(title: str) -> str:
    """Lower-case a title and turn each whitespace run into a hyphen.

    Trailing whitespace becomes a trailing hyphen, which is why resolution
    tolerates a trailing ``-`` on either side.
    """
    return re.sub(r"\s+", "-", (title or "").lower())
