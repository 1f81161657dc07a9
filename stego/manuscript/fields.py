"""Required header fields and status validation."""

from __future__ import annotations

from typing import Any

from ..models import HeaderMap, Issue, error, warning


def resolve_required_fields(
    raw: Any, default: list[str], source: str | None = None
) -> tuple[list[str], list[Issue]]:
    """Resolve the project's required header keys.

    The project list replaces the workspace default when present.
    """
    issues: list[Issue] = []
    if raw is None:
        return list(default), issues

    if not isinstance(raw, list):
        issues.append(error("metadata", "Project 'requiredMetadata' must be an array of metadata keys.", source))
        return list(default), issues

    required: dict[str, None] = {}
    for index, entry in enumerate(raw):
        if not isinstance(entry, str):
            issues.append(
                error("metadata", f"Project 'requiredMetadata' entry at index {index} must be a string.", source)
            )
            continue
        key = entry.strip()
        if not key:
            issues.append(
                error("metadata", f"Project 'requiredMetadata' entry at index {index} cannot be empty.", source)
            )
            continue
        required[key] = None

    return list(required), issues


def check_required_fields(header: HeaderMap, required: list[str], file: str | None = None) -> list[Issue]:
    return [
        warning(
            "metadata",
            f"Missing required metadata key '{key}'. Validation and stage checks that depend on "
            f"'{key}' are skipped for this file.",
            file,
        )
        for key in required
        if header.is_blank(key)
    ]


def check_status(header: HeaderMap, allowed: list[str], file: str | None = None) -> list[Issue]:
    status = header.status
    if status and status not in allowed:
        return [error("metadata", f"Invalid file status '{status}'. Allowed: {', '.join(allowed)}.", file)]
    return []
