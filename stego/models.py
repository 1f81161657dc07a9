"""Data models for manuscript documents and project schemas."""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Union

IssueLevel = Literal["error", "warning"]

# Scalar or list value parsed from a header block
HeaderValue = Union[str, int, bool, list[str]]

PageBreakMode = Literal["none", "between-groups"]


@dataclass(frozen=True)
class Issue:
    """A single validation finding."""

    level: IssueLevel
    category: str  # structure, metadata, ordering, continuity, comments, ...
    message: str
    file: str | None = None
    line: int | None = None

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    def __str__(self) -> str:
        loc = ""
        if self.file:
            loc = f" {self.file}"
            if self.line:
                loc += f":{self.line}"
        return f"[{self.level.upper()}][{self.category}]{loc} {self.message}"


def error(category: str, message: str, file: str | None = None, line: int | None = None) -> Issue:
    return Issue("error", category, message, file, line)


def warning(category: str, message: str, file: str | None = None, line: int | None = None) -> Issue:
    return Issue("warning", category, message, file, line)


def has_errors(issues: list[Issue]) -> bool:
    """True if any issue blocks a build, export or stage gate."""
    return any(issue.is_error for issue in issues)


class HeaderMap(Mapping[str, HeaderValue]):
    """Ordered header fields of one document.

    Known fields get typed accessors; every other key is kept verbatim and
    exposed through ``other``.
    """

    KNOWN_KEYS = frozenset({"status", "title", "order"})

    def __init__(self, values: Mapping[str, HeaderValue] | None = None):
        self._values: dict[str, HeaderValue] = dict(values or {})

    def __getitem__(self, key: str) -> HeaderValue:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"HeaderMap({self._values!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HeaderMap):
            return self._values == other._values
        if isinstance(other, Mapping):
            return self._values == dict(other)
        return NotImplemented

    def is_blank(self, key: str) -> bool:
        """True if the key is absent or holds an empty string."""
        value = self._values.get(key)
        return value is None or value == ""

    @property
    def status(self) -> str:
        return str(self._values.get("status", "") or "").strip()

    @property
    def title(self) -> str | None:
        value = self._values.get("title")
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @property
    def other(self) -> dict[str, HeaderValue]:
        """Fields outside the known set, in document order."""
        return {k: v for k, v in self._values.items() if k not in self.KNOWN_KEYS}

    def to_dict(self) -> dict[str, HeaderValue]:
        return dict(self._values)


@dataclass(frozen=True)
class CommentMessage:
    """One message in a review thread."""

    timestamp: str
    author: str
    text: str


@dataclass
class CommentThread:
    """A review comment thread from a document's comment appendix."""

    id: str  # CMT-0001
    resolved: bool
    messages: list[CommentMessage] = field(default_factory=list)
    meta: dict = field(default_factory=dict)  # decoded meta64 payload

    @property
    def is_open(self) -> bool:
        return not self.resolved


@dataclass(frozen=True)
class EntityCategory:
    """A catalog category such as a cast list."""

    key: str  # header field name, e.g. "characters"
    prefix: str  # identifier prefix, e.g. "CHAR"
    notes_file: str  # resolved in the project's catalog directory
    id_pattern: re.Pattern[str]

    def matches(self, identifier: str) -> bool:
        return self.id_pattern.fullmatch(identifier) is not None


@dataclass(frozen=True)
class CatalogSchema:
    """Resolved catalog categories plus the combined prose-scan pattern."""

    categories: tuple[EntityCategory, ...] = ()
    inline_pattern: re.Pattern[str] | None = None


@dataclass(frozen=True)
class GroupingLevel:
    """One tier of the compiled output structure (part, chapter, ...)."""

    key: str
    label: str
    title_key: str | None = None
    inject_heading: bool = True
    heading_template: str = "{label} {value}: {title}"
    page_break: PageBreakMode = "none"


@dataclass
class Catalog:
    """Identifiers harvested from catalog notes files."""

    ids: set[str] = field(default_factory=set)
    issues: list[Issue] = field(default_factory=list)


@dataclass
class Document:
    """A parsed manuscript file."""

    path: Path
    relative_path: str  # project-relative, posix separators
    title: str
    order: int | None
    header: HeaderMap
    body: str  # comment appendix removed
    body_start_line: int = 1
    comments: list[CommentThread] = field(default_factory=list)
    references: list[str] = field(default_factory=list)
    group_values: dict[str, str] = field(default_factory=dict)
    issues: list[Issue] = field(default_factory=list)

    @property
    def status(self) -> str:
        return self.header.status

    @property
    def open_comments(self) -> list[CommentThread]:
        return [c for c in self.comments if c.is_open]


@dataclass
class Inspection:
    """Result of inspecting one project."""

    documents: list[Document] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    catalog: Catalog = field(default_factory=Catalog)
    levels: list[GroupingLevel] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return has_errors(self.issues)
