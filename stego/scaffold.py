"""Project scaffolding."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from .config import PROJECT_FILENAME, PROJECT_ID_PATTERN, Workspace
from .errors import ProjectError


def display_title(value: str) -> str:
    return " ".join(part[:1].upper() + part[1:] for part in value.replace("_", "-").split("-") if part)


def default_project_config(project_id: str, title: str | None = None) -> dict:
    return {
        "id": project_id,
        "title": (title or "").strip() or display_title(project_id),
        "requiredMetadata": ["status"],
        "compileStructure": {
            "levels": [
                {
                    "key": "chapter",
                    "label": "Chapter",
                    "titleKey": "chapter_title",
                    "injectHeading": True,
                    "headingTemplate": "{label} {value}: {title}",
                    "pageBreak": "none",
                }
            ]
        },
        "spineCategories": [{"key": "characters", "prefix": "CHAR", "notesFile": "characters.md"}],
    }


@dataclass
class CreatedProject:
    root: Path
    files: list[Path] = field(default_factory=list)


def create_project(workspace: Workspace, project_id: str, title: str | None = None) -> CreatedProject:
    """Create the directory tree and default config for a new project."""
    project_id = (project_id or "").strip()
    if not project_id:
        raise ProjectError("Project id is required. Use --project <project-id>.")
    if not PROJECT_ID_PATTERN.match(project_id):
        raise ProjectError("Project id must match /^[a-z0-9][a-z0-9-]*$/.")

    config = workspace.config
    root = workspace.projects_dir / project_id
    if root.exists():
        raise ProjectError(f"Project already exists: {root}")

    for name in (config.chapter_dir, config.spine_dir, config.notes_dir, config.dist_dir):
        (root / name).mkdir(parents=True, exist_ok=True)

    project_file = root / PROJECT_FILENAME
    project_file.write_text(json.dumps(default_project_config(project_id, title), indent=2) + "\n", encoding="utf-8")

    characters = root / config.spine_dir / "characters.md"
    characters.write_text("# Characters\n\n", encoding="utf-8")

    return CreatedProject(root=root, files=[project_file, characters])
