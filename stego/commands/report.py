"""Shared issue rendering for command output."""

import json

from rich.console import Console
from rich.table import Table

from ..models import Document, Issue

LEVEL_STYLES = {"error": "bold red", "warning": "yellow"}


def count_levels(issues: list[Issue]) -> dict[str, int]:
    counts = {"error": 0, "warning": 0}
    for issue in issues:
        counts[issue.level] = counts.get(issue.level, 0) + 1
    return counts


def print_issues(console: Console, issues: list[Issue]) -> None:
    """Print one ``[LEVEL][category] file:line message`` line per issue."""
    for issue in issues:
        # Issue text is bracketed; keep rich from reading it as markup.
        console.print(
            str(issue),
            style=LEVEL_STYLES.get(issue.level, "dim"),
            markup=False,
            highlight=False,
            soft_wrap=True,
        )


def print_summary(console: Console, title: str, documents: list[Document], issues: list[Issue]) -> None:
    counts = count_levels(issues)

    table = Table(title=title, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Documents", str(len(documents)))
    table.add_row("Errors", str(counts["error"]))
    table.add_row("Warnings", str(counts["warning"]))
    console.print(table)


def issue_to_dict(issue: Issue) -> dict:
    return {
        "level": issue.level,
        "category": issue.category,
        "message": issue.message,
        "file": issue.file,
        "line": issue.line,
    }


def issues_to_json(project_id: str, documents: list[Document], issues: list[Issue]) -> str:
    counts = count_levels(issues)
    output = {
        "project": project_id,
        "errors": [issue_to_dict(i) for i in issues if i.level == "error"],
        "warnings": [issue_to_dict(i) for i in issues if i.level == "warning"],
        "summary": {
            "documents": len(documents),
            "errors": counts["error"],
            "warnings": counts["warning"],
        },
    }
    return json.dumps(output, indent=2)
