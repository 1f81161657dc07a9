"""Build and export command implementations."""

from pathlib import Path

from rich.console import Console

from ..config import Project
from ..exporters import export_manuscript
from ..manuscript import build_manuscript, inspect_project
from ..models import has_errors
from .report import print_issues


def _build(project: Project, console: Console) -> Path | None:
    inspection = inspect_project(project)
    print_issues(console, inspection.issues)
    if has_errors(inspection.issues):
        console.print("Build aborted: validation reported errors.", style="bold red")
        return None

    output_path = build_manuscript(project, inspection)
    console.print(f"Build output: {output_path}", style="green", highlight=False)
    return output_path


def run_build(project: Project) -> int:
    """Compile the project's manuscript into ``<dist>/<id>.md``.

    Returns:
        Exit code (0 = built, 1 = validation errors)
    """
    console = Console(stderr=True)
    console.print(f"Building project {project.id}...", style="dim")
    return 0 if _build(project, console) is not None else 1


def run_export(project: Project, fmt: str, output: Path | None = None) -> int:
    """Build the manuscript, then convert it to ``fmt``.

    Raises:
        ExportError: Unknown format, missing converter or failed conversion
    """
    console = Console(stderr=True)
    console.print(f"Exporting project {project.id} as {fmt}...", style="dim")

    built = _build(project, console)
    if built is None:
        return 1

    target = export_manuscript(project, fmt, built, output)
    console.print(f"Export output: {target}", style="green", highlight=False)
    return 0
