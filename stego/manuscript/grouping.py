"""Grouping levels for compiled output, and per-document grouping values."""

from __future__ import annotations

import re
from typing import Any

from ..models import GroupingLevel, HeaderValue, Issue, error

LEVEL_KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
DEFAULT_HEADING_TEMPLATE = "{label} {value}: {title}"
PAGE_BREAK_MODES = ("none", "between-groups")


def _text(entry: dict[str, Any], name: str) -> str:
    value = entry.get(name)
    return value.strip() if isinstance(value, str) else ""


def resolve_grouping_levels(raw: Any, source: str | None = None) -> tuple[list[GroupingLevel], list[Issue]]:
    """Validate the ``compileStructure`` declaration.

    Returns the usable levels in declaration order. Invalid levels are
    reported and dropped.
    """
    issues: list[Issue] = []
    if raw is None:
        return [], issues

    if not isinstance(raw, dict):
        issues.append(error("metadata", "Project 'compileStructure' must be an object.", source))
        return [], issues

    raw_levels = raw.get("levels")
    if not isinstance(raw_levels, list):
        issues.append(error("metadata", "Project 'compileStructure.levels' must be an array.", source))
        return [], issues

    levels: list[GroupingLevel] = []
    seen: set[str] = set()

    for index, entry in enumerate(raw_levels):
        where = f"compileStructure.levels[{index}]"
        if not isinstance(entry, dict):
            issues.append(error("metadata", f"Invalid compileStructure level at index {index}. Expected object.", source))
            continue

        key = _text(entry, "key")
        label = _text(entry, "label")
        title_key = _text(entry, "titleKey")
        template = _text(entry, "headingTemplate")

        if not LEVEL_KEY_PATTERN.match(key):
            issues.append(error("metadata", f"{where}.key must match /^[a-z][a-z0-9_-]*$/.", source))
            continue

        if not label:
            issues.append(error("metadata", f"{where}.label is required.", source))
            continue

        if key in seen:
            issues.append(error("metadata", f"Duplicate compileStructure level key '{key}'.", source))
            continue

        if title_key and not LEVEL_KEY_PATTERN.match(title_key):
            issues.append(error("metadata", f"{where}.titleKey must match /^[a-z][a-z0-9_-]*$/.", source))
            continue

        page_break = entry.get("pageBreak")
        page_break = page_break.strip() if isinstance(page_break, str) else "none"
        if page_break not in PAGE_BREAK_MODES:
            issues.append(error("metadata", f"{where}.pageBreak must be 'none' or 'between-groups'.", source))
            continue

        inject = entry.get("injectHeading")
        seen.add(key)
        levels.append(
            GroupingLevel(
                key=key,
                label=label,
                title_key=title_key or None,
                inject_heading=inject if isinstance(inject, bool) else True,
                heading_template=template or DEFAULT_HEADING_TEMPLATE,
                page_break=page_break,  # type: ignore[arg-type]
            )
        )

    return levels, issues


def scalar_text(value: HeaderValue | None) -> str | None:
    """Trimmed string form of a scalar header value, or None."""
    if value is None or value == "" or isinstance(value, list):
        return None
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value).strip()
    return text or None


def grouping_value(value: HeaderValue | None, key: str, file: str | None = None) -> tuple[str | None, list[Issue]]:
    """Normalize a grouping field. Lists are reported and treated as absent."""
    if isinstance(value, list):
        return None, [error("metadata", f"Metadata '{key}' must be a scalar value.", file)]
    return scalar_text(value), []


def format_group_heading(level: GroupingLevel, value: str, title: str | None) -> str:
    """Fill a level's heading template."""
    resolved_title = title or ""
    if not resolved_title and level.heading_template == DEFAULT_HEADING_TEMPLATE:
        return f"{level.label} {value}"

    heading = (
        level.heading_template.replace("{label}", level.label)
        .replace("{value}", value)
        .replace("{title}", resolved_title)
    )
    heading = re.sub(r"\s+", " ", heading)
    heading = re.sub(r":\s*$", "", heading)
    return heading.strip()
