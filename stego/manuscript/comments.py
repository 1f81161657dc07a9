"""Comment appendix parsing.

A document body may end with a machine-readable block of review threads::

    <!-- stego-comments:start -->
    ### CMT-0001
    <!-- meta64: <base64url(JSON)> -->
    > _2024-05-01T10:00:00Z | editor_
    >
    > Message text.
    <!-- stego-comments:end -->

Each thread carries exactly one metadata line and one message block. Replies
get a new identifier. Malformed threads are reported but still returned, so
stage checks can treat them as unresolved.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass, field
from enum import Enum

from ..models import CommentMessage, CommentThread, Issue, error

START_MARKER = "<!-- stego-comments:start -->"
END_MARKER = "<!-- stego-comments:end -->"

COMMENT_PREFIX = "CMT"
THREAD_HEADING = re.compile(r"^###\s+(CMT-\d{4})\s*$")
META64_LINE = re.compile(r"^<!--\s*meta64:\s*(\S+)\s*-->\s*$")
QUOTE_LINE = re.compile(r"^\s*>\s?(.*)$")
MESSAGE_HEADER = re.compile(r"^_(.+?)\s*\|\s*(.+?)_\s*$")

META_KEYS = frozenset({"status", "anchor", "paragraph_index", "signature", "excerpt"})


class RowKind(Enum):
    BLANK = "blank"
    META = "meta"
    QUOTE = "quote"
    OTHER = "other"


class ThreadState(Enum):
    AWAIT_META = "await-meta"
    AWAIT_HEADER = "in-thread-header"
    AWAIT_SEPARATOR = "await-separator"
    IN_BODY = "in-thread-body"
    CLOSED = "closed"


@dataclass(frozen=True)
class Row:
    """A classified line inside one thread."""

    number: int
    kind: RowKind
    text: str  # stripped line
    payload: str = ""  # meta64 payload or blockquote content


@dataclass
class AppendixResult:
    """Body with the appendix removed, plus the decoded threads."""

    body: str
    comments: list[CommentThread] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    found: bool = False


def classify_row(raw: str, number: int) -> Row:
    text = raw.strip()
    if not text:
        return Row(number, RowKind.BLANK, text)
    meta = META64_LINE.match(text)
    if meta:
        return Row(number, RowKind.META, text, meta.group(1))
    quote = QUOTE_LINE.match(raw)
    if quote:
        return Row(number, RowKind.QUOTE, text, quote.group(1))
    return Row(number, RowKind.OTHER, text)


def parse_message_header(value: str) -> tuple[str, str] | None:
    """Parse ``_timestamp | author_`` into its two parts."""
    match = MESSAGE_HEADER.match(value.strip())
    if not match:
        return None
    timestamp = match.group(1).strip()
    author = match.group(2).strip()
    if not timestamp or not author:
        return None
    return timestamp, author


def decode_meta64(encoded: str) -> dict:
    """Decode a base64url JSON payload. Raises ValueError on any defect."""
    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError) as exc:
        raise ValueError("expected base64url-encoded JSON") from exc

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid JSON") from exc

    if not isinstance(parsed, dict):
        raise ValueError("payload must be a JSON object")
    return parsed


def encode_meta64(meta: dict) -> str:
    raw = json.dumps(meta, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _read_thread_meta(
    row: Row, comment_id: str, file: str | None, issues: list[Issue]
) -> tuple[bool, dict]:
    """Return (resolved, meta). Any defect leaves the thread open."""
    try:
        meta = decode_meta64(row.payload)
    except ValueError as exc:
        issues.append(
            error("comments", f"Invalid meta64 payload for comment {comment_id}; {exc}.", file, row.number)
        )
        return False, {}

    for key in meta:
        if key not in META_KEYS:
            issues.append(
                error(
                    "comments",
                    f"meta64 for comment {comment_id} contains unsupported key '{key}'.",
                    file,
                    row.number,
                )
            )
            return False, {}

    status = meta.get("status")
    status = status.strip().lower() if isinstance(status, str) else ""
    if status not in ("open", "resolved"):
        issues.append(
            error(
                "comments",
                f"meta64 for comment {comment_id} must include status 'open' or 'resolved'.",
                file,
                row.number,
            )
        )
        return False, meta

    return status == "resolved", meta


def parse_thread(comment_id: str, rows: list[Row], file: str | None, issues: list[Issue]) -> CommentThread:
    """Parse the rows following one ``### CMT-NNNN`` heading."""
    state = ThreadState.AWAIT_META
    resolved = False
    meta: dict = {}
    saw_meta = False
    messages: list[CommentMessage] = []
    header: tuple[str, str] | None = None
    header_line = 0
    message_lines: list[str] = []

    def finish_message() -> None:
        while message_lines and not message_lines[-1].strip():
            message_lines.pop()
        if not message_lines:
            issues.append(
                error("comments", f"Thread entry for comment {comment_id} is missing message text.", file, header_line)
            )
            return
        timestamp, author = header
        messages.append(CommentMessage(timestamp, author, "\n".join(message_lines).strip()))

    index = 0
    while index < len(rows) and state is not ThreadState.CLOSED:
        row = rows[index]

        if state is ThreadState.IN_BODY:
            if row.kind is RowKind.BLANK:
                index += 1
                if message_lines:
                    finish_message()
                    state = ThreadState.AWAIT_HEADER
                continue
            if row.kind is not RowKind.QUOTE:
                issues.append(
                    error(
                        "comments",
                        f"Invalid thread line '{row.text}'. Expected blockquote content starting with '>'.",
                        file,
                        row.number,
                    )
                )
                index += 1
                if message_lines:
                    finish_message()
                    state = ThreadState.AWAIT_HEADER
                continue
            if parse_message_header(row.payload):
                # Re-dispatch this row as a new message header.
                finish_message()
                state = ThreadState.AWAIT_HEADER
                continue
            message_lines.append(row.payload)
            index += 1
            continue

        if row.kind is RowKind.BLANK:
            index += 1
            continue

        if state is ThreadState.AWAIT_META:
            if row.kind is not RowKind.META:
                issues.append(
                    error(
                        "comments",
                        f"Invalid comment metadata row '{row.text}'. Expected '<!-- meta64: <base64url-json> -->'.",
                        file,
                        row.number,
                    )
                )
                index += 1
                continue
            saw_meta = True
            resolved, meta = _read_thread_meta(row, comment_id, file, issues)
            state = ThreadState.AWAIT_HEADER
            index += 1
            continue

        if state is ThreadState.AWAIT_HEADER:
            if messages:
                issues.append(
                    error(
                        "comments",
                        f"Multiple message blocks found for {comment_id}. Create a new CMT id for each reply.",
                        file,
                        row.number,
                    )
                )
                state = ThreadState.CLOSED
                continue
            if row.kind is not RowKind.QUOTE:
                issues.append(
                    error(
                        "comments",
                        f"Invalid thread header '{row.text}'. Expected blockquote header like '> _timestamp | author_'.",
                        file,
                        row.number,
                    )
                )
                index += 1
                continue
            header = parse_message_header(row.payload)
            if header is None:
                issues.append(
                    error(
                        "comments",
                        f"Invalid thread header '{row.payload.strip()}'. Expected '> _timestamp | author_'.",
                        file,
                        row.number,
                    )
                )
                index += 1
                continue
            header_line = row.number
            message_lines = []
            state = ThreadState.AWAIT_SEPARATOR
            index += 1
            continue

        # ThreadState.AWAIT_SEPARATOR: an empty "> " line may follow the header
        if row.kind is RowKind.QUOTE and not row.payload.strip():
            index += 1
        state = ThreadState.IN_BODY

    if state in (ThreadState.IN_BODY, ThreadState.AWAIT_SEPARATOR):
        finish_message()

    if not saw_meta:
        issues.append(
            error(
                "comments",
                f"Comment {comment_id} is missing metadata row ('<!-- meta64: <base64url-json> -->').",
                file,
            )
        )
        resolved = False

    if not messages:
        issues.append(error("comments", f"Comment {comment_id} is missing valid blockquote thread entries.", file))

    return CommentThread(id=comment_id, resolved=resolved, messages=messages, meta=meta)


def parse_threads(lines: list[str], first_line: int, file: str | None, issues: list[Issue]) -> list[CommentThread]:
    """Parse the lines strictly between the appendix markers."""
    threads: list[CommentThread] = []
    index = 0
    while index < len(lines):
        text = lines[index].strip()
        if not text:
            index += 1
            continue

        heading = THREAD_HEADING.match(text)
        if not heading:
            issues.append(
                error(
                    "comments",
                    "Invalid comments appendix line. Expected heading like '### CMT-0001'.",
                    file,
                    first_line + index,
                )
            )
            index += 1
            continue

        index += 1
        rows: list[Row] = []
        while index < len(lines) and not THREAD_HEADING.match(lines[index].strip()):
            rows.append(classify_row(lines[index], first_line + index))
            index += 1

        threads.append(parse_thread(heading.group(1), rows, file, issues))

    return threads


def _marker_indexes(lines: list[str], marker: str) -> list[int]:
    return [i for i, line in enumerate(lines) if line.strip() == marker]


def parse_comment_appendix(body: str, file: str | None = None, first_line: int = 1) -> AppendixResult:
    """Locate, decode and remove the comment appendix from a body.

    Args:
        body: Document body (header already removed)
        file: Path used in issue reports
        first_line: File line number of the body's first line

    Any marker count other than zero or exactly one of each is an error and
    the body is returned untouched.
    """
    line_ending = "\r\n" if "\r\n" in body else "\n"
    lines = re.split(r"\r?\n", body)
    starts = _marker_indexes(lines, START_MARKER)
    ends = _marker_indexes(lines, END_MARKER)

    if not starts and not ends:
        return AppendixResult(body=body)

    issues: list[Issue] = []
    if len(starts) != 1 or len(ends) != 1:
        if len(starts) != 1:
            issues.append(error("comments", f"Expected exactly one '{START_MARKER}' marker.", file))
        if len(ends) != 1:
            issues.append(error("comments", f"Expected exactly one '{END_MARKER}' marker.", file))
        return AppendixResult(body=body, issues=issues, found=True)

    start, end = starts[0], ends[0]
    if end <= start:
        issues.append(
            error("comments", f"'{END_MARKER}' must appear after '{START_MARKER}'.", file, first_line + end)
        )
        return AppendixResult(body=body, issues=issues, found=True)

    comments = parse_threads(lines[start + 1 : end], first_line + start + 1, file, issues)

    remove_from = start
    if remove_from > 0 and not lines[remove_from - 1].strip():
        remove_from -= 1

    kept = lines[:remove_from] + lines[end + 1 :]
    while kept and not kept[-1].strip():
        kept.pop()

    return AppendixResult(body=line_ending.join(kept), comments=comments, issues=issues, found=True)


def strip_comment_appendix(text: str) -> str:
    """Return text with any well-formed comment appendix removed."""
    return parse_comment_appendix(text).body


def render_comment_appendix(threads: list[CommentThread]) -> str:
    """Render threads in appendix grammar, markers included."""
    lines = [START_MARKER, ""]
    for thread in threads:
        meta = dict(thread.meta)
        meta["status"] = "resolved" if thread.resolved else "open"
        lines.append(f"### {thread.id}")
        lines.append(f"<!-- meta64: {encode_meta64(meta)} -->")
        for message in thread.messages[:1]:
            lines.append(f"> _{message.timestamp} | {message.author}_")
            lines.append(">")
            lines.extend(f"> {line}" if line else ">" for line in message.text.split("\n"))
        lines.append("")
    lines.append(END_MARKER)
    return "\n".join(lines)


def attach_comment_appendix(body: str, appendix: str) -> str:
    """Append a rendered appendix to a body, separated by one blank line."""
    return f"{body.rstrip()}\n\n{appendix.strip()}\n"
