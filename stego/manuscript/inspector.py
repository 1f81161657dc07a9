"""Project inspection: parse every manuscript file and check the set as a whole."""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from ..config import Project
from ..models import (
    CatalogSchema,
    Document,
    GroupingLevel,
    HeaderMap,
    Inspection,
    Issue,
    error,
    warning,
)
from .body import check_body
from .catalog import (
    extract_references,
    find_inline_mentions,
    find_unknown_references,
    read_catalog,
    resolve_catalog_schema,
)
from .comments import parse_comment_appendix
from .fields import check_required_fields, check_status, resolve_required_fields
from .grouping import grouping_value, resolve_grouping_levels
from .header import parse_header

logger = logging.getLogger(__name__)

ORDER_PREFIX = re.compile(r"^(\d+)[-_]")


@dataclass(frozen=True)
class InspectionContext:
    """Resolved project schemas shared read-only by every document parse."""

    project_root: Path
    required_fields: tuple[str, ...] = ()
    allowed_statuses: tuple[str, ...] = ()
    catalog: CatalogSchema = CatalogSchema()
    levels: tuple[GroupingLevel, ...] = ()

    def relative(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.project_root.resolve()).as_posix()
        except ValueError:
            return str(path)


def resolve_context(project: Project) -> tuple[InspectionContext, list[Issue]]:
    """Resolve catalog, required-field and grouping schemas for a project.

    Schema errors are returned, never raised; an invalid declaration yields
    an empty schema for that concern.
    """
    source = project.relative(project.config_file)
    catalog, catalog_issues = resolve_catalog_schema(project.meta.get("spineCategories"), source)
    required, required_issues = resolve_required_fields(
        project.meta.get("requiredMetadata"), project.config.required_metadata, source
    )
    levels, level_issues = resolve_grouping_levels(project.meta.get("compileStructure"), source)

    context = InspectionContext(
        project_root=project.root,
        required_fields=tuple(required),
        allowed_statuses=tuple(project.config.allowed_statuses),
        catalog=catalog,
        levels=tuple(levels),
    )
    return context, catalog_issues + required_issues + level_issues


def derive_title(header: HeaderMap, path: Path) -> str:
    """Header title, else a display form of the filename."""
    if header.title:
        return header.title

    stem = path.stem
    normalized = re.sub(r"[-_]+", " ", re.sub(r"^\d+[-_]?", "", stem)).strip()
    if not normalized:
        return stem
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), normalized)


def order_from_filename(path: Path, file: str | None = None) -> tuple[int | None, list[Issue]]:
    """Order key from a mandatory numeric filename prefix."""
    match = ORDER_PREFIX.match(path.stem)
    if not match:
        return None, [
            error(
                "ordering",
                "Filename must start with a numeric prefix followed by '-' or '_' (for example '100-scene.md').",
                file,
            )
        ]

    digits = match.group(1)
    issues = []
    if len(digits) != 3:
        issues.append(
            warning(
                "ordering",
                f"Filename prefix '{digits}' is valid but non-standard. Use three digits like 100, 200, 300.",
                file,
            )
        )
    return int(digits), issues


def parse_document(path: Path, context: InspectionContext, text: str | None = None) -> Document:
    """Parse and validate one manuscript file in isolation."""
    file = context.relative(path)
    raw = path.read_text(encoding="utf-8", errors="replace") if text is None else text

    parsed = parse_header(raw, file)
    issues = list(parsed.issues)
    body, comments = parsed.body, []
    if not parsed.structural_failure:
        appendix = parse_comment_appendix(parsed.body, file, parsed.body_start_line)
        body, comments = appendix.body, appendix.comments
        issues.extend(appendix.issues)

    header = parsed.header
    issues.extend(check_required_fields(header, list(context.required_fields), file))

    if not header.is_blank("order"):
        issues.append(
            warning("metadata", "Metadata 'order' is ignored. Ordering is derived from filename prefix.", file)
        )

    order, order_issues = order_from_filename(path, file)
    issues.extend(order_issues)
    issues.extend(check_status(header, list(context.allowed_statuses), file))

    group_values: dict[str, str] = {}
    for level in context.levels:
        value, value_issues = grouping_value(header.get(level.key), level.key, file)
        issues.extend(value_issues)
        if value:
            group_values[level.key] = value
        if level.title_key:
            _, title_issues = grouping_value(header.get(level.title_key), level.title_key, file)
            issues.extend(title_issues)

    references, reference_issues = extract_references(header, context.catalog, file)
    issues.extend(reference_issues)
    issues.extend(find_inline_mentions(body, context.catalog, file, parsed.body_start_line))
    issues.extend(check_body(body, path, file, parsed.body_start_line))

    return Document(
        path=path,
        relative_path=file,
        title=derive_title(header, path),
        order=order,
        header=header,
        body=body,
        body_start_line=parsed.body_start_line,
        comments=comments,
        references=references,
        group_values=group_values,
        issues=issues,
    )


def select_documents(project: Project, only_file: str | None = None) -> tuple[list[Path], list[Issue]]:
    """Candidate manuscript paths: one named file or the whole manuscript directory."""
    only_file = (only_file or "").strip()
    if only_file:
        resolved = (project.root / only_file).resolve()
        root = project.root.resolve()
        if resolved == root or not resolved.is_relative_to(root):
            return [], [error("structure", f"Requested file is outside the project: {only_file}")]
        if not resolved.exists():
            return [], [error("structure", f"Requested file does not exist: {only_file}")]
        if not resolved.is_file() or resolved.suffix != ".md":
            return [], [error("structure", f"Requested file must be a markdown file: {only_file}")]
        if not resolved.is_relative_to(project.manuscript_dir.resolve()):
            return [], [
                error("structure", f"Requested file must be inside manuscript directory: {project.manuscript_dir}")
            ]
        return [resolved], []

    if not project.manuscript_dir.is_dir():
        return [], [error("structure", f"Missing manuscript directory: {project.manuscript_dir}")]

    paths = sorted(p for p in project.manuscript_dir.iterdir() if p.is_file() and p.name.endswith(".md"))
    if not paths:
        return [], [error("structure", f"No manuscript files found in {project.manuscript_dir}")]
    return paths, []


def find_duplicate_orders(documents: list[Document]) -> list[Issue]:
    """One error per document whose order key was already taken."""
    issues = []
    seen: dict[int, str] = {}
    for document in documents:
        if document.order is None:
            continue
        if document.order in seen:
            issues.append(
                error(
                    "ordering",
                    f"Duplicate filename order prefix '{document.order}' in "
                    f"{document.relative_path} and {seen[document.order]}",
                    document.relative_path,
                )
            )
            continue
        seen[document.order] = document.relative_path
    return issues


def sort_documents(documents: list[Document]) -> list[Document]:
    """Ascending order key; documents without one last, by path."""
    return sorted(
        documents,
        key=lambda d: (d.order is None, d.order if d.order is not None else 0, d.relative_path),
    )


def inspect_project(project: Project, *, only_file: str | None = None, workers: int = 1) -> Inspection:
    """Parse and validate a project's manuscript files.

    Every issue from every document is collected; nothing stops at the
    first fault.

    Args:
        project: Resolved project
        only_file: Project-relative path of a single manuscript file to check
        workers: Thread count for per-document parsing
    """
    context, issues = resolve_context(project)
    levels = list(context.levels)

    paths, selection_issues = select_documents(project, only_file)
    issues.extend(selection_issues)
    if selection_issues:
        return Inspection(documents=[], issues=issues, levels=levels)

    logger.debug("Parsing %d manuscript files with %d worker(s)", len(paths), workers)
    if workers > 1 and len(paths) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            documents = list(pool.map(lambda p: parse_document(p, context), paths))
    else:
        documents = [parse_document(p, context) for p in paths]

    for document in documents:
        issues.extend(document.issues)
    issues.extend(find_duplicate_orders(documents))

    documents = sort_documents(documents)

    catalog = read_catalog(project.spine_dir, context.catalog, project.root)
    issues.extend(catalog.issues)
    for document in documents:
        issues.extend(find_unknown_references(document.references, catalog.ids, document.relative_path))

    return Inspection(documents=documents, issues=issues, catalog=catalog, levels=levels)
