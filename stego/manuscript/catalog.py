"""Entity catalog schema, reference extraction and catalog file scanning."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from ..models import Catalog, CatalogSchema, EntityCategory, HeaderMap, Issue, error, warning
from .comments import COMMENT_PREFIX

CATEGORY_KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
CATEGORY_PREFIX_PATTERN = re.compile(r"^[A-Z][A-Z0-9-]*$")
NOTES_FILE_PATTERN = re.compile(r"^[A-Za-z0-9._-]+\.md$")


def identifier_pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(prefix)}-[A-Z0-9-]+$")


def build_inline_pattern(categories: list[EntityCategory] | tuple[EntityCategory, ...]) -> re.Pattern[str] | None:
    """Alternation of every category prefix, for scanning free text."""
    if not categories:
        return None
    prefixes = "|".join(re.escape(c.prefix) for c in categories)
    return re.compile(rf"\b(?:{prefixes})-[A-Z0-9-]+\b")


def _field(entry: dict[str, Any], name: str) -> str:
    value = entry.get(name)
    return value.strip() if isinstance(value, str) else ""


def resolve_catalog_schema(raw: Any, source: str | None = None) -> tuple[CatalogSchema, list[Issue]]:
    """Validate declared categories.

    Invalid entries are reported and skipped; a malformed list yields an
    empty schema so documents can still be checked.
    """
    issues: list[Issue] = []
    if raw is None:
        return CatalogSchema(), issues

    if not isinstance(raw, list):
        issues.append(error("metadata", "Project 'spineCategories' must be an array when defined.", source))
        return CatalogSchema(), issues

    categories: list[EntityCategory] = []
    keys: set[str] = set()
    prefixes: set[str] = set()
    notes_files: set[str] = set()

    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            issues.append(
                error(
                    "metadata",
                    f"Invalid spineCategories entry at index {index}. Expected object with key, prefix, notesFile.",
                    source,
                )
            )
            continue

        key = _field(entry, "key")
        prefix = _field(entry, "prefix")
        notes_file = _field(entry, "notesFile")

        if not CATEGORY_KEY_PATTERN.match(key):
            issues.append(
                error(
                    "metadata",
                    f"Invalid spine category key '{key or '<empty>'}'. "
                    "Use lowercase key names like 'cast' or 'incidents'.",
                    source,
                )
            )
            continue

        if not CATEGORY_PREFIX_PATTERN.match(prefix):
            issues.append(
                error(
                    "metadata",
                    f"Invalid spine category prefix '{prefix or '<empty>'}'. "
                    "Use uppercase prefixes like 'CHAR' or 'STATUTE'.",
                    source,
                )
            )
            continue

        if prefix == COMMENT_PREFIX:
            issues.append(
                error(
                    "metadata",
                    f"Invalid spine category prefix '{prefix}'. "
                    f"'{COMMENT_PREFIX}' is reserved for comment IDs (e.g. {COMMENT_PREFIX}-0001).",
                    source,
                )
            )
            continue

        if not NOTES_FILE_PATTERN.match(notes_file):
            issues.append(
                error(
                    "metadata",
                    f"Invalid notesFile '{notes_file or '<empty>'}'. "
                    "Use markdown filenames like 'characters.md' (resolved in spine/).",
                    source,
                )
            )
            continue

        duplicate = None
        if key in keys:
            duplicate = f"key '{key}'"
        elif prefix in prefixes:
            duplicate = f"prefix '{prefix}'"
        elif notes_file in notes_files:
            duplicate = f"notesFile '{notes_file}'"
        if duplicate:
            issues.append(error("metadata", f"Duplicate spine category {duplicate}.", source))
            continue

        keys.add(key)
        prefixes.add(prefix)
        notes_files.add(notes_file)
        categories.append(EntityCategory(key, prefix, notes_file, identifier_pattern(prefix)))

    return CatalogSchema(tuple(categories), build_inline_pattern(categories)), issues


def extract_references(
    header: HeaderMap, schema: CatalogSchema, file: str | None = None
) -> tuple[list[str], list[Issue]]:
    """Collect valid, deduplicated catalog identifiers from header fields."""
    issues: list[Issue] = []
    ids: dict[str, None] = {}

    for category in schema.categories:
        if header.is_blank(category.key):
            continue

        value = header[category.key]
        if not isinstance(value, list):
            issues.append(
                error(
                    "metadata",
                    f"Metadata '{category.key}' must be an array, for example: [\"{category.prefix}-...\"]",
                    file,
                )
            )
            continue

        for entry in value:
            if not isinstance(entry, str):
                issues.append(error("metadata", f"Metadata '{category.key}' entries must be strings.", file))
                continue

            identifier = entry.strip()
            if not category.matches(identifier):
                issues.append(
                    error(
                        "metadata",
                        f"Invalid {category.key} reference '{identifier}'. "
                        f"Expected pattern '{category.id_pattern.pattern}'.",
                        file,
                    )
                )
                continue
            ids[identifier] = None

    return list(ids), issues


def find_inline_mentions(
    body: str, schema: CatalogSchema, file: str | None = None, first_line: int = 1
) -> list[Issue]:
    """Report catalog identifiers written in prose instead of header fields."""
    if schema.inline_pattern is None:
        return []

    issues = []
    for index, line in enumerate(re.split(r"\r?\n", body)):
        for match in schema.inline_pattern.finditer(line):
            issues.append(
                error(
                    "continuity",
                    f"Inline ID '{match.group(0)}' found in prose. Move canon IDs to metadata fields only.",
                    file,
                    first_line + index,
                )
            )
    return issues


def read_catalog(catalog_dir: Path, schema: CatalogSchema, project_root: Path | None = None) -> Catalog:
    """Harvest known identifiers from each category's notes file."""
    catalog = Catalog()
    if not schema.categories:
        return catalog

    if not catalog_dir.is_dir():
        catalog.issues.append(warning("continuity", f"Missing spine directory: {catalog_dir}"))
        return catalog

    for category in schema.categories:
        notes_path = catalog_dir / category.notes_file
        shown = _display_path(notes_path, project_root)
        if not notes_path.is_file():
            catalog.issues.append(
                warning(
                    "continuity",
                    f"Missing spine file '{category.notes_file}' for category '{category.key}'.",
                    shown,
                )
            )
            continue

        text = notes_path.read_text(encoding="utf-8", errors="replace")
        if schema.inline_pattern is not None:
            catalog.ids.update(schema.inline_pattern.findall(text))

    return catalog


def find_unknown_references(references: list[str], known: set[str], file: str | None = None) -> list[Issue]:
    """Warn about references absent from every catalog notes file."""
    return [
        warning("continuity", f"Metadata reference '{ref}' does not exist in the spine files.", file)
        for ref in references
        if ref not in known
    ]


def _display_path(path: Path, root: Path | None) -> str:
    if root is not None:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            pass
    return str(path)
