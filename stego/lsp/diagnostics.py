"""
Convert manuscript issues to editor diagnostics.

Only the document being edited is parsed; the catalog notes files are read
so unknown references can be flagged, but other manuscript files are not.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from ..config import Project
from ..manuscript.catalog import find_unknown_references, read_catalog
from ..manuscript.inspector import parse_document, resolve_context
from ..models import Issue

logger = logging.getLogger(__name__)


@dataclass
class DocumentDiagnostic:
    """A single finding positioned for the editor (0-based line)."""

    line: int
    column: int
    length: int
    message: str
    severity: str  # "error" or "warning"
    category: str


def to_diagnostic(issue: Issue, lines: list[str]) -> DocumentDiagnostic:
    """Place an issue on its line, or on the first line when it has none."""
    line = max((issue.line or 1) - 1, 0)
    text = lines[line] if line < len(lines) else ""
    stripped = text.lstrip()
    column = len(text) - len(stripped)
    return DocumentDiagnostic(
        line=line,
        column=column,
        length=max(len(stripped.rstrip()), 1),
        message=issue.message,
        severity=issue.level,
        category=issue.category,
    )


def is_manuscript_file(path: Path, project: Project) -> bool:
    if path.suffix.lower() != ".md":
        return False
    try:
        path.resolve().relative_to(project.manuscript_dir.resolve())
    except ValueError:
        return False
    return True


def check_text(path: Path, project: Project, content: str | None = None) -> list[DocumentDiagnostic]:
    """
    Validate one manuscript file.

    Args:
        path: Path of the file being edited
        project: Project the file belongs to
        content: Unsaved editor text (if None, reads from disk)

    Returns:
        Diagnostics for this file. Project schema and catalog file
        issues belong to other files and are left to `stego validate`.
    """
    if content is None:
        content = path.read_text(encoding="utf-8", errors="replace")

    context, _ = resolve_context(project)
    document = parse_document(path, context, content)
    issues = [issue for issue in document.issues if issue.file == document.relative_path]

    catalog = read_catalog(project.spine_dir, context.catalog, project.root)
    issues.extend(find_unknown_references(document.references, catalog.ids, document.relative_path))

    logger.debug("Checked %s: %d issue(s)", document.relative_path, len(issues))
    lines = re.split(r"\r?\n", content)
    return [to_diagnostic(issue, lines) for issue in issues]


def identifier_at(line: str, column: int, project: Project) -> str | None:
    """The catalog identifier under the cursor, if any."""
    context, _ = resolve_context(project)
    pattern = context.catalog.inline_pattern
    if pattern is None:
        return None
    for match in pattern.finditer(line):
        if match.start() <= column <= match.end():
            return match.group(0)
    return None


def describe_identifier(identifier: str, project: Project) -> str:
    """Markdown hover text for a catalog identifier."""
    context, _ = resolve_context(project)
    for category in context.catalog.categories:
        if not category.matches(identifier):
            continue
        catalog = read_catalog(project.spine_dir, context.catalog, project.root)
        state = "defined" if identifier in catalog.ids else "**not defined**"
        return (
            f"**{identifier}**\n\n"
            f"Category: `{category.key}`\n\n"
            f"Notes file: `{project.config.spine_dir}/{category.notes_file}` ({state})"
        )
    return f"**{identifier}**\n\nNo catalog category matches this identifier."
