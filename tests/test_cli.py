"""CLI tests using click's test runner."""

import json
from pathlib import Path

from click.testing import CliRunner

from stego.cli import cli

from conftest import write_manuscript


def _invoke(workspace_root: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(cli, ["--root", str(workspace_root), *args], env={"STEGO_PROJECT": None})


def test_validate_passes(workspace_root, project) -> None:
    write_manuscript(project, "100-a.md", ["status: draft"], ["A."])

    result = _invoke(workspace_root, "validate", "--project", "novel")

    assert result.exit_code == 0, result.output


def test_validate_fails_on_duplicate_prefix(workspace_root, project) -> None:
    write_manuscript(project, "100-a.md", ["status: draft"], ["A."])
    write_manuscript(project, "100-b.md", ["status: draft"], ["B."])

    result = _invoke(workspace_root, "validate", "--project", "novel")

    assert result.exit_code == 1
    assert "Duplicate filename order prefix '100'" in result.output


def test_validate_json(workspace_root, project) -> None:
    write_manuscript(project, "100-a.md", ["pov: Ada"], ["A."])

    result = _invoke(workspace_root, "validate", "--project", "novel", "--json")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["project"] == "novel"
    assert data["summary"] == {"documents": 1, "errors": 0, "warnings": 1}
    assert data["warnings"][0]["file"] == "manuscript/100-a.md"


def test_build_writes_manuscript(workspace_root, project) -> None:
    write_manuscript(project, "100-a.md", ["status: draft"], ["A."])

    result = _invoke(workspace_root, "build", "--project", "novel")

    assert result.exit_code == 0, result.output
    assert (project.dist_dir / "novel.md").is_file()


def test_build_refuses_with_errors(workspace_root, project) -> None:
    write_manuscript(project, "a.md", ["status: draft"], ["A."])

    result = _invoke(workspace_root, "build", "--project", "novel")

    assert result.exit_code == 1
    assert not (project.dist_dir / "novel.md").exists()


def test_export_markdown(workspace_root, project) -> None:
    write_manuscript(project, "100-a.md", ["status: draft"], ["A."])

    result = _invoke(workspace_root, "export", "--project", "novel", "--format", "md")

    assert result.exit_code == 0, result.output
    assert (project.dist_dir / "exports" / "novel.md").is_file()


def test_check_stage(workspace_root, project, monkeypatch) -> None:
    monkeypatch.setattr("stego.tooling.resolve_command", lambda name, root: None)
    write_manuscript(project, "100-a.md", ["status: draft"], ["A."])

    assert _invoke(workspace_root, "check-stage", "--project", "novel", "--stage", "draft").exit_code == 0

    result = _invoke(workspace_root, "check-stage", "--project", "novel", "--stage", "revise")
    assert result.exit_code == 1
    assert "below required stage 'revise'" in result.output


def test_new_and_list_projects(workspace_root) -> None:
    created = _invoke(workspace_root, "new-project", "--project", "saga", "--title", "The Saga")
    assert created.exit_code == 0, created.output
    assert (workspace_root / "projects" / "saga" / "stego-project.json").is_file()

    listed = _invoke(workspace_root, "list-projects")
    assert listed.exit_code == 0
    assert "saga" in listed.output

    again = _invoke(workspace_root, "new-project", "--project", "saga")
    assert again.exit_code == 1
    assert "already exists" in again.output


def test_missing_workspace_is_click_error(tmp_path: Path) -> None:
    result = _invoke(tmp_path, "list-projects")

    assert result.exit_code == 1
    assert "No stego workspace found" in result.output


def test_unknown_project(workspace_root) -> None:
    result = _invoke(workspace_root, "validate", "--project", "ghost")

    assert result.exit_code == 1
    assert "Project not found" in result.output
