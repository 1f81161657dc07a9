"""Stage gate command implementation."""

from rich.console import Console

from ..config import Project
from ..models import has_errors
from ..stages import run_stage_check
from .report import print_issues, print_summary


def run_check_stage(project: Project, stage: str, only_file: str | None = None) -> int:
    """Check that a project (or one file) is ready for ``stage``.

    Returns:
        Exit code (0 = stage passed, 1 = blocking issues)
    """
    console = Console(stderr=True)
    console.print(f"Checking project {project.id} for stage '{stage}'...", style="dim")

    report = run_stage_check(project, stage, only_file)
    print_issues(console, report.issues)
    console.print()
    print_summary(console, f"Stage '{stage}'", report.documents, report.issues)

    if has_errors(report.issues):
        console.print(f"Stage check failed for '{stage}'.", style="bold red")
        return 1

    target = f"'{only_file}'" if only_file else f"'{project.id}'"
    console.print(f"Stage check passed for {target} at stage '{stage}'.", style="green")
    return 0
