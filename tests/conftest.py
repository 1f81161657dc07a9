"""Pytest configuration and fixtures."""

import json
from pathlib import Path

import pytest

from stego.config import Project, Workspace, find_workspace, load_project


DEFAULT_PROJECT_META = {
    "id": "novel",
    "title": "The Novel",
    "requiredMetadata": ["status"],
    "spineCategories": [{"key": "characters", "prefix": "CHAR", "notesFile": "characters.md"}],
}


def write_manuscript(project: Project, name: str, header: list[str] | None, body: list[str]) -> Path:
    """Write a manuscript file from header lines (without delimiters) and body lines."""
    lines: list[str] = []
    if header is not None:
        lines += ["---", *header, "---"]
    lines += body
    path = project.manuscript_dir / name
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """An empty workspace with default configuration."""
    root = tmp_path / "workspace"
    (root / "projects").mkdir(parents=True)
    (root / "stego.config.json").write_text(json.dumps({"projectsDir": "projects"}), encoding="utf-8")
    return root


@pytest.fixture
def workspace(workspace_root: Path) -> Workspace:
    return find_workspace(workspace_root)


@pytest.fixture
def make_project(workspace: Workspace):
    """Factory creating a project with manuscript and spine directories."""

    def _make(project_id: str = "novel", meta: dict | None = None, characters: str | None = "# Characters\n") -> Project:
        root = workspace.projects_dir / project_id
        (root / "manuscript").mkdir(parents=True)
        (root / "spine").mkdir()
        data = dict(DEFAULT_PROJECT_META if meta is None else meta)
        data["id"] = project_id
        (root / "stego-project.json").write_text(json.dumps(data, indent=2), encoding="utf-8")
        if characters is not None:
            (root / "spine" / "characters.md").write_text(characters, encoding="utf-8")
        return load_project(workspace, project_id)

    return _make


@pytest.fixture
def project(make_project) -> Project:
    return make_project()
