"""Header block parsing.

A header block opens at offset 0 with a ``---`` line and closes at the next
line that is exactly ``---``. In between sit ``key: value`` lines or a
``key:`` line followed by an indented ``- item`` list.

Lines are classified first, then fed through a small state machine:

- ``outside``: expecting ``key: value`` pairs
- ``pending``: saw ``key:`` with no value, waiting to see if a list follows
- ``in-list``: collecting indented ``- item`` lines for one key

Malformed lines are reported with their file line number and skipped so a
single pass reports every defect.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from ..models import HeaderMap, HeaderValue, Issue, error, warning

DELIMITER = "---"

INT_PATTERN = re.compile(r"^-?\d+$")

# Lines end at \n or \r\n only; other Unicode separators stay inside values.
LINE_BREAK = re.compile(r"(?<=\n)")


class LineKind(Enum):
    BLANK = "blank"
    COMMENT = "comment"
    LIST_ITEM = "list-item"
    PAIR = "pair"
    INVALID = "invalid"


class State(Enum):
    OUTSIDE = "outside"
    PENDING = "pending"
    IN_LIST = "in-list"


@dataclass(frozen=True)
class HeaderLine:
    """A classified header line."""

    number: int  # 1-based line number in the file
    kind: LineKind
    text: str  # stripped text
    indent: int = 0
    key: str = ""
    value: str = ""


@dataclass
class HeaderParseResult:
    """Header map, remaining body and issues for one document."""

    header: HeaderMap
    body: str
    body_start_line: int  # file line number of the body's first line
    issues: list[Issue] = field(default_factory=list)
    has_header: bool = False
    structural_failure: bool = False


def classify_line(raw: str, number: int) -> HeaderLine:
    """Classify one raw header line."""
    text = raw.strip()
    indent = len(raw) - len(raw.lstrip())
    if not text:
        return HeaderLine(number, LineKind.BLANK, text, indent)
    if text.startswith("#"):
        return HeaderLine(number, LineKind.COMMENT, text, indent)
    if indent > 0 and text.startswith("- "):
        return HeaderLine(number, LineKind.LIST_ITEM, text, indent, value=text[2:].strip())

    separator = text.find(":")
    if separator == -1:
        return HeaderLine(number, LineKind.INVALID, text, indent)
    return HeaderLine(
        number,
        LineKind.PAIR,
        text,
        indent,
        key=text[:separator].strip(),
        value=text[separator + 1 :].strip(),
    )


def _strip_quotes(value: str) -> str:
    return re.sub(r"^['\"]|['\"]$", "", value)


def coerce_value(value: str) -> HeaderValue:
    """Convert an inline header value to a scalar or list."""
    if not value:
        return ""

    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]

    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1].strip()
        if not inner:
            return []
        # Commas cannot be escaped inside inline lists.
        return [_strip_quotes(entry.strip()) for entry in inner.split(",")]

    if INT_PATTERN.match(value):
        return int(value)

    if value == "true":
        return True
    if value == "false":
        return False

    return value


def split_header_block(raw: str) -> tuple[list[str], str, int] | None:
    """Split raw text into header lines, body and body start line.

    Returns None when the text does not open with a header delimiter.
    Raises ValueError when the closing delimiter is missing.
    """
    lines = [line for line in LINE_BREAK.split(raw) if line]
    if not lines or lines[0] not in (DELIMITER + "\n", DELIMITER + "\r\n"):
        return None

    for index in range(1, len(lines)):
        if lines[index].rstrip("\r\n") == DELIMITER:
            header_lines = [line.rstrip("\r\n") for line in lines[1:index]]
            body = "".join(lines[index + 1 :])
            return header_lines, body, index + 2

    raise ValueError("closing delimiter is missing")


def parse_header_lines(lines: list[str], first_line: int = 2, file: str | None = None) -> tuple[HeaderMap, list[Issue]]:
    """Parse header block contents into a header map.

    Args:
        lines: Lines between the delimiters, without line endings
        first_line: File line number of ``lines[0]``
        file: Path used in issue reports
    """
    values: dict[str, HeaderValue] = {}
    issues: list[Issue] = []
    tokens = [classify_line(raw, first_line + i) for i, raw in enumerate(lines)]

    state = State.OUTSIDE
    list_key = ""
    items: list[str] = []

    def assign(key: str, value: HeaderValue, line: int) -> None:
        if key in values:
            issues.append(
                warning("metadata", f"Duplicate metadata key '{key}'. The last value is used.", file, line)
            )
        values[key] = value

    index = 0
    while index < len(tokens):
        token = tokens[index]

        if token.kind in (LineKind.BLANK, LineKind.COMMENT):
            index += 1
            continue

        if state is State.PENDING:
            if token.kind is LineKind.LIST_ITEM:
                state = State.IN_LIST
                items = []
            else:
                # Not a list after all: the key keeps its empty value.
                state = State.OUTSIDE
                continue

        if state is State.IN_LIST:
            if token.indent == 0:
                values[list_key] = items
                state = State.OUTSIDE
                continue
            if token.kind is LineKind.LIST_ITEM:
                items.append(_strip_quotes(token.value))
            else:
                issues.append(
                    error(
                        "metadata",
                        f"Unsupported metadata list line '{token.text}'. Expected '- value'.",
                        file,
                        token.number,
                    )
                )
            index += 1
            continue

        # State.OUTSIDE
        if token.kind in (LineKind.INVALID, LineKind.LIST_ITEM) and ":" not in token.text:
            issues.append(
                error(
                    "metadata",
                    f"Invalid metadata line '{token.text}'. Expected 'key: value' format.",
                    file,
                    token.number,
                )
            )
            index += 1
            continue

        key, value = token.key, token.value
        if token.kind is LineKind.LIST_ITEM:
            # "- a: b" outside a list is read as a plain pair
            separator = token.text.find(":")
            key, value = token.text[:separator].strip(), token.text[separator + 1 :].strip()

        assign(key, coerce_value(value), token.number)
        if not value:
            state = State.PENDING
            list_key = key
        index += 1

    if state is State.IN_LIST:
        values[list_key] = items

    return HeaderMap(values), issues


def parse_header(raw: str, file: str | None = None, required: bool = False) -> HeaderParseResult:
    """Split a document into its header map and body.

    Text without an opening delimiter is returned unchanged as body with an
    empty header; that is only an error when ``required`` is set.
    """
    try:
        split = split_header_block(raw)
    except ValueError:
        return HeaderParseResult(
            header=HeaderMap(),
            body=raw,
            body_start_line=1,
            issues=[
                error(
                    "metadata",
                    "Metadata opening delimiter found, but closing delimiter is missing.",
                    file,
                )
            ],
            has_header=False,
            structural_failure=True,
        )

    if split is None:
        issues = []
        if required:
            issues.append(error("metadata", "Missing metadata block at top of file.", file))
        return HeaderParseResult(HeaderMap(), raw, 1, issues)

    header_lines, body, body_start_line = split
    header, issues = parse_header_lines(header_lines, first_line=2, file=file)
    return HeaderParseResult(header, body, body_start_line, issues, has_header=True)


def _format_scalar(value: HeaderValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, list):
        return "[" + ", ".join(value) + "]"

    text = str(value)
    if text != text.strip() or coerce_value(text) != text:
        return f'"{text}"'
    return text


def format_header(values: dict[str, HeaderValue] | HeaderMap) -> str:
    """Render a header block, including both delimiter lines."""
    lines = [DELIMITER]
    for key, value in values.items():
        rendered = _format_scalar(value)
        lines.append(f"{key}: {rendered}" if rendered else f"{key}:")
    lines.append(DELIMITER)
    return "\n".join(lines) + "\n"
