"""CLI entrypoint for stego."""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path

import click
from rich.logging import RichHandler

from . import __version__
from .config import STAGES, Project, Workspace, find_workspace, resolve_project
from .errors import StegoError
from .exporters import EXPORT_FORMATS


@contextmanager
def _command_errors():
    """Report configuration and export failures as click errors."""
    try:
        yield
    except StegoError as exc:
        raise click.ClickException(str(exc)) from exc


def _workspace(ctx: click.Context) -> Workspace:
    with _command_errors():
        return find_workspace(ctx.obj.get("root"))


def _project(ctx: click.Context, project_id: str | None) -> Project:
    workspace = _workspace(ctx)
    with _command_errors():
        return resolve_project(workspace, project_id)


project_option = click.option(
    "--project",
    "-p",
    "project_id",
    type=str,
    default=None,
    metavar="PROJECT_ID",
    help="Project id (defaults to $STEGO_PROJECT, the current directory, or the only project)",
)


@click.group()
@click.version_option(__version__, prog_name="stego")
@click.option(
    "--root",
    "-r",
    type=click.Path(exists=False, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Workspace root holding stego.config.json (defaults to searching upward from the current directory)",
)
@click.option("--verbose", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def cli(ctx: click.Context, root: Path | None, verbose: bool) -> None:
    """stego - Validate and compile manuscript projects.

    Check metadata, review comments and catalog references, gate editorial
    stages, and compile ordered manuscript files into one document.
    """
    ctx.ensure_object(dict)
    ctx.obj["root"] = root

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(show_path=False)],
        )


@cli.command("list-projects")
@click.pass_context
def list_projects(ctx: click.Context) -> None:
    """List projects in the workspace."""
    from .commands.projects import run_list_projects

    sys.exit(run_list_projects(_workspace(ctx)))


@cli.command("new-project")
@project_option
@click.option("--title", type=str, default=None, help="Display title (defaults to the id)")
@click.pass_context
def new_project(ctx: click.Context, project_id: str | None, title: str | None) -> None:
    """Scaffold a new project.

    Examples:

        stego new-project --project my-novel --title "My Novel"
    """
    from .commands.projects import run_new_project

    workspace = _workspace(ctx)
    with _command_errors():
        exit_code = run_new_project(workspace, project_id or "", title)
    sys.exit(exit_code)


@cli.command()
@project_option
@click.option("--file", "only_file", type=str, default=None, help="Validate one manuscript file (project-relative)")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.option("--workers", type=click.IntRange(min=1), default=1, show_default=True, help="Parser threads")
@click.pass_context
def validate(
    ctx: click.Context,
    project_id: str | None,
    only_file: str | None,
    output_json: bool,
    workers: int,
) -> None:
    """Validate manuscript metadata, comments, references and structure.

    Exits with status 1 when any error is reported.
    """
    from .commands.validate import run_validate

    project = _project(ctx, project_id)
    sys.exit(run_validate(project, only_file=only_file, output_json=output_json, workers=workers))


@cli.command()
@project_option
@click.pass_context
def build(ctx: click.Context, project_id: str | None) -> None:
    """Compile the manuscript into <dist>/<project-id>.md."""
    from .commands.build import run_build

    sys.exit(run_build(_project(ctx, project_id)))


@cli.command("check-stage")
@project_option
@click.option("--stage", type=click.Choice(STAGES), required=True, help="Target editorial stage")
@click.option("--file", "only_file", type=str, default=None, help="Check one manuscript file (project-relative)")
@click.pass_context
def check_stage(ctx: click.Context, project_id: str | None, stage: str, only_file: str | None) -> None:
    """Check that manuscript files meet a stage's requirements.

    Examples:

        stego check-stage --project my-novel --stage proof
    """
    from .commands.stage import run_check_stage

    project = _project(ctx, project_id)
    with _command_errors():
        exit_code = run_check_stage(project, stage, only_file)
    sys.exit(exit_code)


@cli.command()
@project_option
@click.option("--format", "fmt", type=click.Choice(EXPORT_FORMATS), default="md", show_default=True)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file (defaults to <dist>/exports/<project-id>.<format>)",
)
@click.pass_context
def export(ctx: click.Context, project_id: str | None, fmt: str, output: Path | None) -> None:
    """Build the manuscript and convert it (docx, pdf and epub need pandoc)."""
    from .commands.build import run_export

    project = _project(ctx, project_id)
    with _command_errors():
        exit_code = run_export(project, fmt, output)
    sys.exit(exit_code)


@cli.command()
@project_option
@click.pass_context
def watch(ctx: click.Context, project_id: str | None) -> None:
    """Revalidate the project whenever its files change."""
    from .commands.watch_cmd import run_watch

    run_watch(_project(ctx, project_id))


@cli.command("lsp")
@click.option(
    "--transport",
    type=click.Choice(["stdio", "tcp"]),
    default="stdio",
    show_default=True,
    help="Transport method (stdio for editors, tcp for debugging)",
)
@click.pass_context
def lsp(ctx: click.Context, transport: str) -> None:
    """Start the LSP server for live manuscript diagnostics.

    The LSP server provides:

    \b
    - Diagnostics on open, change and save
    - Hover info for catalog identifiers
    """
    from .lsp import start_server

    start_server(root=ctx.obj.get("root"), transport=transport)


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
