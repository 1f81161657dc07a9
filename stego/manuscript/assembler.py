"""Compile an ordered document set into one manuscript.

Grouping values are inherited: a document without its own value for a level
keeps the previous document's value, so only boundary files need grouping
metadata. A level changes when its value differs from the previous
document's, or when any enclosing level changed at the same document.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ..config import Project
from ..models import Document, GroupingLevel, Inspection
from .grouping import format_group_heading, scalar_text

PAGE_BREAK = "\\newpage"
TOC_HEADING = "## Table of Contents"
MAX_HEADING_LEVEL = 6


@dataclass(frozen=True)
class GroupState:
    """Effective grouping for one level at one document."""

    level: GroupingLevel
    depth: int  # index of the level, 0 = outermost
    value: str | None
    title: str | None
    changed: bool


@dataclass(frozen=True)
class TocEntry:
    depth: int
    heading: str


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", value.lower()).strip()
    return re.sub(r"\s+", "-", slug)


def resolve_group_states(documents: list[Document], levels: list[GroupingLevel]) -> list[list[GroupState]]:
    """Effective grouping per document, one state per level."""
    previous_values: dict[str, str | None] = {}
    previous_titles: dict[str, str | None] = {}
    result: list[list[GroupState]] = []

    for document in documents:
        states: list[GroupState] = []
        for depth, level in enumerate(levels):
            previous = previous_values.get(level.key)
            value = document.group_values.get(level.key) or previous

            title = scalar_text(document.header.get(level.title_key)) if level.title_key else None
            title = title or previous_titles.get(level.key)

            parent_changed = depth > 0 and states[depth - 1].changed
            states.append(GroupState(level, depth, value, title, parent_changed or value != previous))

            previous_values[level.key] = value
            previous_titles[level.key] = title
        result.append(states)

    return result


def assemble_manuscript(
    documents: list[Document],
    levels: list[GroupingLevel],
    *,
    title: str,
    subtitle: str = "",
    author: str = "",
    generated_at: str | None = None,
) -> str:
    """Render the compiled manuscript text.

    ``documents`` must already be sorted; the caller guarantees there are no
    blocking issues.
    """
    generated_at = generated_at or datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    document_heading_level = min(MAX_HEADING_LEVEL, 2 + len(levels))
    toc: list[TocEntry] = []

    lines = [f"<!-- generated: {generated_at} -->", "", f"# {title}", ""]
    if subtitle:
        lines += [f"_{subtitle}_", ""]
    if author:
        lines += [f"Author: {author}", ""]
    lines += [f"Generated: {generated_at}", "", TOC_HEADING, ""]
    if not levels:
        lines.append(f"- [Manuscript](#{slugify('Manuscript')})")
    lines.append("")

    for index, (document, states) in enumerate(zip(documents, resolve_group_states(documents, levels))):
        page_broken = False
        for state in states:
            if not state.changed or not state.value:
                continue

            # One break per document even when several levels change.
            if state.level.page_break == "between-groups" and index > 0 and not page_broken:
                lines += [PAGE_BREAK, ""]
                page_broken = True

            if state.level.inject_heading:
                heading = format_group_heading(state.level, state.value, state.title)
                toc.append(TocEntry(state.depth, heading))
                lines += ["#" * min(MAX_HEADING_LEVEL, 2 + state.depth) + f" {heading}", ""]

        lines += [
            "#" * document_heading_level + f" {document.title}",
            "",
            f"<!-- source: {document.relative_path} | order: {document.order} | status: {document.status} -->",
            "",
            document.body.strip(),
            "",
        ]

    if toc:
        insert_at = lines.index(TOC_HEADING) + 2
        lines[insert_at:insert_at] = [f"{'  ' * e.depth}- [{e.heading}](#{slugify(e.heading)})" for e in toc]

    return "\n".join(lines) + "\n"


def build_manuscript(project: Project, inspection: Inspection, *, generated_at: str | None = None) -> Path:
    """Write ``<dist>/<project-id>.md``, replacing any previous build."""
    project.dist_dir.mkdir(parents=True, exist_ok=True)
    text = assemble_manuscript(
        inspection.documents,
        inspection.levels,
        title=project.title,
        subtitle=project.subtitle,
        author=project.author,
        generated_at=generated_at,
    )
    output_path = project.dist_dir / f"{project.id}.md"
    output_path.write_text(text, encoding="utf-8")
    return output_path
