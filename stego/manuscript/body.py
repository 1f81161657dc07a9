"""Lightweight structural and style checks on document prose."""

from __future__ import annotations

import re
from pathlib import Path

from ..models import Issue, error, warning

FENCE_PATTERN = re.compile(r"^(```+|~~~+)")
HEADING_PATTERN = re.compile(r"^(#{1,6})\s+")
UNCLOSED_LINK_PATTERN = re.compile(r"\[[^\]]+\]\([^)]*$")
LINK_PATTERN = re.compile(r"!?\[[^\]]*\]\(([^)]+)\)")
EXTERNAL_PREFIXES = ("http://", "https://", "mailto:", "tel:")

LONG_PARAGRAPH_WORDS = 180
LONG_SENTENCE_WORDS = 45


def check_body(body: str, document_path: Path, file: str | None = None, first_line: int = 1) -> list[Issue]:
    """Run every body check and return the combined findings."""
    issues = check_structure(body, file, first_line)
    issues.extend(check_local_links(body, document_path, file))
    issues.extend(check_style(body, file))
    return issues


def check_structure(body: str, file: str | None = None, first_line: int = 1) -> list[Issue]:
    """Unclosed code fences, heading level jumps and half-written links."""
    issues: list[Issue] = []
    open_fence: tuple[str, int, int] | None = None  # marker, length, line
    previous_level = 0

    for index, line in enumerate(re.split(r"\r?\n", body)):
        number = first_line + index

        fence = FENCE_PATTERN.match(line)
        if fence:
            marker, length = fence.group(1)[0], len(fence.group(1))
            if open_fence is None:
                open_fence = (marker, length, number)
            elif open_fence[0] == marker and length >= open_fence[1]:
                open_fence = None
            continue
        if open_fence is not None:
            continue

        heading = HEADING_PATTERN.match(line)
        if heading:
            level = len(heading.group(1))
            if previous_level and level > previous_level + 1:
                issues.append(
                    warning("style", f"Heading level jumps from H{previous_level} to H{level}.", file, number)
                )
            previous_level = level

        if UNCLOSED_LINK_PATTERN.search(line.strip()):
            issues.append(error("structure", "Malformed markdown link, missing closing ')'.", file, number))

    if open_fence is not None:
        issues.append(
            error("structure", f"Unclosed code fence opened at line {open_fence[2]}.", file, open_fence[2])
        )

    return issues


def _link_target(raw: str) -> str:
    target = raw.strip()
    if target.startswith("<") and target.endswith(">"):
        target = target[1:-1].strip()
    # drop an optional link title
    target = re.split(r"\s+\"", target)[0]
    target = re.split(r"\s+'", target)[0]
    return target.strip()


def check_local_links(body: str, document_path: Path, file: str | None = None) -> list[Issue]:
    """Warn about relative links and images whose targets do not exist."""
    issues = []
    for match in LINK_PATTERN.finditer(body):
        target = _link_target(match.group(1))
        if not target or target.startswith("#") or target.startswith(EXTERNAL_PREFIXES):
            continue

        clean = target.split("#")[0]
        if not clean:
            continue

        if not (document_path.parent / clean).exists():
            issues.append(warning("links", f"Broken local link/image target '{clean}'.", file))
    return issues


def count_words(text: str) -> int:
    return len(text.split())


def check_style(body: str, file: str | None = None) -> list[Issue]:
    """Flag very long paragraphs and sentences."""
    prose = re.sub(r"```[\s\S]*?```", "", body)
    prose = re.sub(r"~~~[\s\S]*?~~~", "", prose)

    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", prose)]
    paragraphs = [p for p in paragraphs if p and not p.startswith("#") and not p.startswith("- ")]

    issues = []
    for paragraph in paragraphs:
        words = count_words(paragraph)
        if words > LONG_PARAGRAPH_WORDS:
            issues.append(warning("style", f"Long paragraph detected ({words} words).", file))

        for sentence in re.split(r"[.!?]+\s+", paragraph):
            sentence_words = count_words(sentence)
            if sentence_words > LONG_SENTENCE_WORDS:
                issues.append(warning("style", f"Long sentence detected ({sentence_words} words).", file))

    return issues
