import json
from pathlib import Path

import pytest

from stego.config import (
    STAGES,
    StagePolicy,
    Workspace,
    WorkspaceConfig,
    find_workspace,
    infer_project_id,
    resolve_project,
)
from stego.errors import ProjectError, WorkspaceError


def test_find_workspace_by_walking_up(workspace_root: Path) -> None:
    nested = workspace_root / "projects" / "novel" / "manuscript"
    nested.mkdir(parents=True)

    workspace = find_workspace(cwd=nested)

    assert workspace.root == workspace_root.resolve()
    assert workspace.config.projects_dir == "projects"


def test_explicit_root_without_config(tmp_path: Path) -> None:
    with pytest.raises(WorkspaceError, match="No stego workspace found"):
        find_workspace(tmp_path)


def test_legacy_config_gets_rename_hint(tmp_path: Path) -> None:
    (tmp_path / "writing.config.json").write_text("{}", encoding="utf-8")

    with pytest.raises(WorkspaceError, match="Rename it to 'stego.config.json'"):
        find_workspace(tmp_path)


def test_invalid_json(tmp_path: Path) -> None:
    (tmp_path / "stego.config.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(WorkspaceError, match="Invalid JSON"):
        find_workspace(tmp_path)


def test_config_defaults_and_overrides() -> None:
    config = WorkspaceConfig.from_dict(
        {
            "chapterDir": "chapters",
            "requiredMetadata": ["status", "pov"],
            "stagePolicies": {"draft": {"minimumChapterStatus": "revise", "requireSpine": True}},
        }
    )

    assert config.chapter_dir == "chapters"
    assert config.spine_dir == "spine"
    assert config.required_metadata == ["status", "pov"]
    assert config.allowed_statuses == list(STAGES)
    assert config.stage_policies["draft"] == StagePolicy("revise", require_spine=True)
    assert config.stage_policies["final"].require_resolved_comments is True


def test_unknown_stage_policy_is_rejected() -> None:
    with pytest.raises(WorkspaceError, match="Unknown stage 'polish'"):
        WorkspaceConfig.from_dict({"stagePolicies": {"polish": {}}})


def test_project_resolution_order(workspace: Workspace, make_project) -> None:
    make_project("alpha")
    make_project("beta")

    assert resolve_project(workspace, "beta", env={}).id == "beta"
    assert resolve_project(workspace, env={"STEGO_PROJECT": "alpha"}).id == "alpha"
    assert resolve_project(workspace, env={"WRITING_PROJECT": "beta"}).id == "beta"
    assert resolve_project(workspace, env={}, cwd=workspace.projects_dir / "alpha" / "manuscript").id == "alpha"

    with pytest.raises(ProjectError, match="Project id is required"):
        resolve_project(workspace, env={}, cwd=workspace.root)


def test_single_project_is_picked(workspace: Workspace, make_project) -> None:
    make_project("only")

    project = resolve_project(workspace, env={}, cwd=workspace.root)

    assert project.id == "only"
    assert project.title == "The Novel"
    assert project.manuscript_dir == workspace.projects_dir / "only" / "manuscript"


def test_unknown_project(workspace: Workspace) -> None:
    with pytest.raises(ProjectError, match="Project not found"):
        resolve_project(workspace, "ghost", env={})


def test_infer_project_id_outside_projects(workspace: Workspace) -> None:
    assert infer_project_id(workspace, workspace.root) is None


def test_project_meta_must_be_object(workspace: Workspace) -> None:
    root = workspace.projects_dir / "broken"
    root.mkdir()
    (root / "stego-project.json").write_text(json.dumps(["x"]), encoding="utf-8")

    with pytest.raises(ProjectError):
        resolve_project(workspace, "broken", env={})
