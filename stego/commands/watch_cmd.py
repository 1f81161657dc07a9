"""Watch command - revalidate a project as its files change."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from rich.console import Console

from ..config import Project
from ..manuscript import inspect_project
from ..watcher import run_watch_loop, watched_directories
from .report import count_levels, print_issues


def run_watch(project: Project) -> None:
    """
    Watch a project and print validation results after every change.

    This is a blocking command that runs until interrupted (Ctrl+C).
    """
    console = Console(stderr=True)

    console.print(f"[bold]Watching[/bold] {project.id}")
    for directory in watched_directories(project):
        console.print(f"  {directory}", style="dim", highlight=False)
    console.print()
    console.print("[dim]Press Ctrl+C to stop watching[/dim]")
    console.print()

    runs = 0

    def on_change(paths: list[Path]) -> None:
        nonlocal runs
        runs += 1
        timestamp = datetime.now().strftime("%H:%M:%S")
        names = ", ".join(project.relative(p) for p in paths)
        console.print(f"[dim]{timestamp}[/dim] changed: {names}", highlight=False)

        inspection = inspect_project(project)
        print_issues(console, inspection.issues)
        counts = count_levels(inspection.issues)
        style = "bold red" if counts["error"] else "green"
        console.print(f"{counts['error']} error(s), {counts['warning']} warning(s)", style=style)

    try:
        run_watch_loop(project, on_change)
    except KeyboardInterrupt:
        console.print()
        console.print(f"[bold]Stopped.[/bold] Revalidated {runs} time(s).")
