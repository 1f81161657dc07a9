"""Validate command implementation."""

from rich.console import Console

from ..config import Project
from ..manuscript import inspect_project
from ..models import has_errors
from .report import issues_to_json, print_issues, print_summary


def run_validate(
    project: Project,
    only_file: str | None = None,
    output_json: bool = False,
    workers: int = 1,
) -> int:
    """Inspect a project and report every issue.

    Args:
        project: Resolved project
        only_file: Project-relative path of one manuscript file to check
        output_json: Print a JSON report on stdout instead of text
        workers: Thread count for per-document parsing

    Returns:
        Exit code (0 = no errors, 1 = errors found)
    """
    console = Console(stderr=True)
    if not output_json:
        console.print(f"Validating project {project.id}...", style="dim")

    inspection = inspect_project(project, only_file=only_file, workers=workers)

    if output_json:
        print(issues_to_json(project.id, inspection.documents, inspection.issues))
    else:
        print_issues(console, inspection.issues)
        console.print()
        print_summary(console, f"Project {project.id}", inspection.documents, inspection.issues)

    if has_errors(inspection.issues):
        if not output_json:
            console.print("Validation failed.", style="bold red")
        return 1

    if not output_json:
        if only_file:
            console.print(f"Validation passed for '{only_file}'.", style="green")
        else:
            console.print(f"Validation passed for '{project.id}'.", style="green")
    return 0
