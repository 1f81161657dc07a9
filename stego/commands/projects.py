"""Project listing and scaffolding commands."""

from rich.console import Console

from ..config import Workspace, project_ids
from ..scaffold import create_project


def run_list_projects(workspace: Workspace) -> int:
    console = Console()
    ids = project_ids(workspace)
    if not ids:
        console.print("[dim]No projects found.[/dim]")
        return 0

    for project_id in ids:
        console.print(f"- {project_id}", highlight=False)
    return 0


def run_new_project(workspace: Workspace, project_id: str, title: str | None = None) -> int:
    """Scaffold a project.

    Raises:
        ProjectError: Invalid or existing project id
    """
    console = Console(stderr=True)
    created = create_project(workspace, project_id, title)

    console.print(f"Created project: {created.root.relative_to(workspace.root).as_posix()}", style="green", highlight=False)
    for path in created.files:
        console.print(f"  {path.relative_to(workspace.root).as_posix()}", style="dim", highlight=False)
    return 0
