"""Display-time reference rendering.

Works from the note's current content and the owner's directory only, never
from the stored edge set, so what a reader sees matches what is written even
when the persisted graph is stale.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable

from notegarden.models import LinkedNote
from notegarden.references import (
    DirectoryEntry,
    find_directory_entry,
    iter_references,
    substitute_references,
)


@dataclass
class RenderedContent:
    content: str
    linked_notes: list[LinkedNote] = field(default_factory=list)


def garden_href(owner_id: str, template: str) -> Callable[[dict], str]:
    """Build an ``href_for`` callable from a link template.

    The template may use ``{owner_id}``, ``{slug}`` and ``{note_id}``.
    """
    def _href(entry: dict) -> str:
        return template.format(owner_id=owner_id, slug=entry.get("slug", ""), note_id=entry.get("id", ""))
    return _href


def render_note_content(
    content: str | None,
    note_id: str,
    directory: Iterable[DirectoryEntry],
    href_for: Callable[[dict], str],
) -> RenderedContent:
    entries = list(directory)
    targets: dict[str, dict | None] = {}

    def _target(label: str) -> dict | None:
        if label not in targets:
            entry = find_directory_entry(label, entries)
            if entry is not None and str(entry.get("id") or "") == note_id:
                entry = None
            targets[label] = dict(entry) if entry is not None else None
        return targets[label]

    linked: list[LinkedNote] = []
    for label in iter_references(content):
        if label in targets:
            continue
        entry = _target(label)
        if entry is None:
            linked.append(LinkedNote(label=label))
            continue
        linked.append(
            LinkedNote(
                label=label,
                resolved=True,
                noteId=str(entry.get("id")),
                slug=str(entry.get("slug")),
                href=href_for(entry),
            )
        )

    def _link(label: str) -> str | None:
        entry = _target(label)
        if entry is None:
            return None
        return f"[{label}]({href_for(entry)})"

    return RenderedContent(content=substitute_references(content, _link), linked_notes=linked)
