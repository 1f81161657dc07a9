"""Wrappers around external markdown lint and spell-check executables.

Both tools run on temporary copies of the manuscript files with the comment
appendix removed, so review threads are never linted or spell-checked.
"""

from __future__ import annotations

import json
import os
import shutil
import subprocess
import tempfile
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from .config import Project
from .manuscript.comments import strip_comment_appendix
from .models import Issue, error, warning


def resolve_command(name: str, workspace_root: Path) -> str | None:
    """Find a tool in ``node_modules/.bin`` of the workspace, then on PATH."""
    executable = f"{name}.cmd" if os.name == "nt" else name
    local = workspace_root / "node_modules" / ".bin" / executable
    if local.exists():
        return str(local)
    return shutil.which(name)


def compact_output(stdout: str | None, stderr: str | None, limit: int = 4) -> str:
    text = f"{stdout or ''}\n{stderr or ''}".strip()
    if not text:
        return "No details provided by tool."
    return " | ".join([line for line in text.splitlines() if line][:limit])


def remap_paths(output: str, path_map: dict[Path, Path], root: Path) -> str:
    """Replace temporary file paths in tool output with the original paths."""
    for prepared, original in path_map.items():
        output = output.replace(str(prepared), str(original))
        try:
            prepared_rel = prepared.relative_to(root)
            original_rel = original.relative_to(root)
        except ValueError:
            continue
        output = output.replace(str(prepared_rel), str(original_rel))
        output = output.replace(prepared_rel.as_posix(), original_rel.as_posix())
    return output


@contextmanager
def prepared_files(files: list[Path], root: Path) -> Iterator[dict[Path, Path]]:
    """Yield a map of appendix-free temporary copies to original files."""
    if not files:
        yield {}
        return

    with tempfile.TemporaryDirectory(prefix=".stego-tooling-", dir=root) as temp_dir:
        path_map: dict[Path, Path] = {}
        for index, original in enumerate(files, start=1):
            text = strip_comment_appendix(original.read_text(encoding="utf-8", errors="replace"))
            if not text.endswith("\n"):
                text += "\n"
            try:
                relative = original.resolve().relative_to(root.resolve())
            except ValueError:
                relative = Path("external") / f"file-{index}-{original.name}"
            target = Path(temp_dir) / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
            path_map[target] = original
        yield path_map


def _run(command: list[str], cwd: Path) -> subprocess.CompletedProcess[str]:
    return subprocess.run(command, cwd=cwd, capture_output=True, text=True, check=False)


def run_markdownlint(project: Project, files: list[Path], required: bool) -> list[Issue]:
    root = project.workspace.root
    command = resolve_command("markdownlint", root)
    if command is None:
        if required:
            return [error("tooling", "markdownlint is required for this stage but not installed. Run 'npm i' in the repo root.")]
        return []

    config_path = project.root / ".markdownlint.json"
    if not config_path.exists():
        config_path = root / ".markdownlint.json"

    with prepared_files(files, root) as path_map:
        args = [command]
        if config_path.exists():
            args += ["--config", str(config_path)]
        result = _run(args + [str(p) for p in path_map], root)
        if result.returncode == 0:
            return []
        details = remap_paths(compact_output(result.stdout, result.stderr), path_map, root)

    make = error if required else warning
    return [make("lint", f"markdownlint reported issues. {details}")]


def catalog_words(ids: Iterable[str]) -> list[str]:
    """Words from catalog identifiers, for the spell-check allow list."""
    words = set()
    for identifier in ids:
        for part in identifier.split("-")[1:]:
            part = part.strip()
            if part and any(c.isalpha() for c in part):
                words.add(part.lower())
    return sorted(words)


def run_cspell(project: Project, files: list[Path], required: bool, extra_words: list[str] | None = None) -> list[Issue]:
    root = project.workspace.root
    command = resolve_command("cspell", root)
    if command is None:
        if required:
            return [error("tooling", "cspell is required for this stage but not installed. Run 'npm i' in the repo root.")]
        return []

    base_config_path = root / ".cspell.json"
    with tempfile.TemporaryDirectory(prefix="stego-cspell-") as config_dir, prepared_files(files, root) as path_map:
        config_path = base_config_path
        if extra_words:
            base: dict = {}
            if base_config_path.exists():
                base = json.loads(base_config_path.read_text(encoding="utf-8"))
            existing = [w for w in base.get("words", []) if isinstance(w, str)]
            base["words"] = sorted(set(existing) | set(extra_words))
            config_path = Path(config_dir) / "cspell.generated.json"
            config_path.write_text(json.dumps(base, indent=2) + "\n", encoding="utf-8")

        args = [command, "--no-progress", "--no-summary"]
        if config_path.exists():
            args += ["--config", str(config_path)]
        result = _run(args + [str(p) for p in path_map], root)
        if result.returncode == 0:
            return []
        details = remap_paths(compact_output(result.stdout, result.stderr), path_map, root)

    make = error if required else warning
    return [
        make(
            "spell",
            f"cspell reported issues. {details} Words from spine identifiers are auto-whitelisted. "
            "For additional terms, add them to '.cspell.json' under the 'words' array.",
        )
    ]
