"""Workspace and project configuration.

A workspace is a directory holding ``stego.config.json``. Projects live in
``<projectsDir>/<id>/`` and are described by ``stego-project.json``.
Configuration is passed around as explicit ``Workspace`` and ``Project``
values.
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ProjectError, WorkspaceError

CONFIG_FILENAME = "stego.config.json"
LEGACY_CONFIG_FILENAME = "writing.config.json"
PROJECT_FILENAME = "stego-project.json"
PROJECT_ENV_VARS = ("STEGO_PROJECT", "WRITING_PROJECT")

STAGES = ("draft", "revise", "line-edit", "proof", "final")
STAGE_RANK = {name: rank for rank, name in enumerate(STAGES)}

PROJECT_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")


@dataclass(frozen=True)
class StagePolicy:
    """Checks a stage gate enforces."""

    minimum_status: str = "draft"
    require_spine: bool = False
    enforce_markdownlint: bool = False
    enforce_cspell: bool = False
    enforce_local_links: bool = False
    require_resolved_comments: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StagePolicy":
        minimum = str(data.get("minimumChapterStatus", "draft"))
        if minimum not in STAGE_RANK:
            raise WorkspaceError(f"Invalid minimumChapterStatus '{minimum}'. Allowed: {', '.join(STAGES)}.")
        return cls(
            minimum_status=minimum,
            require_spine=bool(data.get("requireSpine", False)),
            enforce_markdownlint=bool(data.get("enforceMarkdownlint", False)),
            enforce_cspell=bool(data.get("enforceCSpell", False)),
            enforce_local_links=bool(data.get("enforceLocalLinks", False)),
            require_resolved_comments=bool(data.get("requireResolvedComments", False)),
        )


def default_stage_policies() -> dict[str, StagePolicy]:
    return {
        "draft": StagePolicy("draft"),
        "revise": StagePolicy("revise", require_spine=True),
        "line-edit": StagePolicy("line-edit", require_spine=True, enforce_cspell=True),
        "proof": StagePolicy(
            "proof",
            require_spine=True,
            enforce_markdownlint=True,
            enforce_cspell=True,
            enforce_local_links=True,
            require_resolved_comments=True,
        ),
        "final": StagePolicy(
            "final",
            require_spine=True,
            enforce_markdownlint=True,
            enforce_cspell=True,
            enforce_local_links=True,
            require_resolved_comments=True,
        ),
    }


@dataclass
class WorkspaceConfig:
    """Contents of ``stego.config.json``."""

    projects_dir: str = "projects"
    chapter_dir: str = "manuscript"
    spine_dir: str = "spine"
    notes_dir: str = "notes"
    dist_dir: str = "dist"
    required_metadata: list[str] = field(default_factory=lambda: ["status"])
    allowed_statuses: list[str] = field(default_factory=lambda: list(STAGES))
    stage_policies: dict[str, StagePolicy] = field(default_factory=default_stage_policies)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WorkspaceConfig":
        config = cls()
        for attr, key in (
            ("projects_dir", "projectsDir"),
            ("chapter_dir", "chapterDir"),
            ("spine_dir", "spineDir"),
            ("notes_dir", "notesDir"),
            ("dist_dir", "distDir"),
        ):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                setattr(config, attr, value.strip())

        required = data.get("requiredMetadata")
        if isinstance(required, list):
            config.required_metadata = [str(k) for k in required]

        allowed = data.get("allowedStatuses")
        if isinstance(allowed, list):
            config.allowed_statuses = [str(s) for s in allowed if str(s) in STAGE_RANK]

        policies = data.get("stagePolicies")
        if isinstance(policies, dict):
            for stage, raw in policies.items():
                if stage not in STAGE_RANK:
                    raise WorkspaceError(f"Unknown stage '{stage}' in stagePolicies.")
                if isinstance(raw, dict):
                    config.stage_policies[stage] = StagePolicy.from_dict(raw)

        return config


@dataclass
class Workspace:
    root: Path
    config_path: Path
    config: WorkspaceConfig

    @property
    def projects_dir(self) -> Path:
        return self.root / self.config.projects_dir


@dataclass
class Project:
    """A resolved project and its raw ``stego-project.json`` contents."""

    id: str
    root: Path
    workspace: Workspace
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def config(self) -> WorkspaceConfig:
        return self.workspace.config

    @property
    def manuscript_dir(self) -> Path:
        return self.root / self.config.chapter_dir

    @property
    def spine_dir(self) -> Path:
        return self.root / self.config.spine_dir

    @property
    def notes_dir(self) -> Path:
        return self.root / self.config.notes_dir

    @property
    def dist_dir(self) -> Path:
        return self.root / self.config.dist_dir

    @property
    def config_file(self) -> Path:
        return self.root / PROJECT_FILENAME

    @property
    def title(self) -> str:
        return str(self.meta.get("title") or self.id)

    @property
    def subtitle(self) -> str:
        return str(self.meta.get("subtitle") or "")

    @property
    def author(self) -> str:
        return str(self.meta.get("author") or "")

    def relative(self, path: Path) -> str:
        """Project-relative posix path, or the absolute path when outside."""
        try:
            return path.resolve().relative_to(self.root.resolve()).as_posix()
        except ValueError:
            return str(path)


def read_json(path: Path) -> Any:
    if not path.exists():
        raise WorkspaceError(f"Missing JSON file: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise WorkspaceError(f"Invalid JSON at {path}: {exc}") from exc


def load_workspace(config_path: Path) -> Workspace:
    data = read_json(config_path)
    if not isinstance(data, dict):
        raise WorkspaceError(f"Workspace config must be a JSON object: {config_path}")
    return Workspace(config_path.parent, config_path, WorkspaceConfig.from_dict(data))


def _find_upward(start: Path, filename: str) -> Path | None:
    current = start.resolve()
    for directory in (current, *current.parents):
        candidate = directory / filename
        if candidate.is_file():
            return candidate
    return None


def find_workspace(root: Path | None = None, cwd: Path | None = None) -> Workspace:
    """Resolve the workspace from an explicit root or by walking up from cwd."""
    if root is not None:
        root = root.resolve()
        if not root.is_dir():
            raise WorkspaceError(f"Workspace root does not exist or is not a directory: {root}")
        config_path = root / CONFIG_FILENAME
        if not config_path.exists():
            if (root / LEGACY_CONFIG_FILENAME).exists():
                raise WorkspaceError(
                    f"Found legacy '{LEGACY_CONFIG_FILENAME}' at '{root}'. Rename it to '{CONFIG_FILENAME}'."
                )
            raise WorkspaceError(f"No stego workspace found at '{root}'. Expected '{CONFIG_FILENAME}'.")
        return load_workspace(config_path)

    start = cwd or Path.cwd()
    config_path = _find_upward(start, CONFIG_FILENAME)
    if config_path is None:
        legacy = _find_upward(start, LEGACY_CONFIG_FILENAME)
        if legacy is not None:
            raise WorkspaceError(
                f"Found legacy '{legacy.name}' at '{legacy.parent}'. Rename it to '{CONFIG_FILENAME}'."
            )
        raise WorkspaceError(f"No stego workspace found from '{start}'. Pass --root <path>.")
    return load_workspace(config_path)


def project_ids(workspace: Workspace) -> list[str]:
    projects_dir = workspace.projects_dir
    if not projects_dir.is_dir():
        return []
    return sorted(
        entry.name
        for entry in projects_dir.iterdir()
        if entry.is_dir() and (entry / PROJECT_FILENAME).is_file()
    )


def infer_project_id(workspace: Workspace, cwd: Path) -> str | None:
    """Project id from a working directory inside a project tree."""
    try:
        relative = cwd.resolve().relative_to(workspace.projects_dir.resolve())
    except ValueError:
        return None
    if not relative.parts:
        return None
    project_id = relative.parts[0]
    if not (workspace.projects_dir / project_id / PROJECT_FILENAME).is_file():
        return None
    return project_id


def load_project(workspace: Workspace, project_id: str) -> Project:
    root = workspace.projects_dir / project_id
    if not root.is_dir():
        raise ProjectError(f"Project not found: {root}")
    meta = read_json(root / PROJECT_FILENAME)
    if not isinstance(meta, dict):
        raise ProjectError(f"Project config must be a JSON object: {root / PROJECT_FILENAME}")
    return Project(id=project_id, root=root, workspace=workspace, meta=meta)


def resolve_project(
    workspace: Workspace,
    explicit_id: str | None = None,
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Project:
    """Pick a project: explicit id, environment, cwd, or the only project."""
    env = os.environ if env is None else env
    project_id = explicit_id
    for name in PROJECT_ENV_VARS:
        if project_id:
            break
        project_id = env.get(name)
    if not project_id:
        project_id = infer_project_id(workspace, cwd or Path.cwd())
    if not project_id:
        ids = project_ids(workspace)
        if len(ids) == 1:
            project_id = ids[0]
    if not project_id:
        raise ProjectError("Project id is required. Use --project <project-id>.")
    return load_project(workspace, project_id)
