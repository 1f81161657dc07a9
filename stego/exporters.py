"""Output converters for a compiled manuscript."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .config import Project
from .errors import ExportError

EXPORT_FORMATS = ("md", "docx", "pdf", "epub")


@dataclass(frozen=True)
class Capability:
    ok: bool
    reason: str | None = None


class Exporter(Protocol):
    id: str
    description: str

    def can_run(self) -> Capability: ...

    def run(self, input_path: Path, output_path: Path) -> Path: ...


class MarkdownExporter:
    """Copy the compiled markdown as-is."""

    id = "md"
    description = "Copy compiled manuscript markdown"

    def can_run(self) -> Capability:
        return Capability(True)

    def run(self, input_path: Path, output_path: Path) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(input_path, output_path)
        return output_path


class PandocExporter:
    """Convert with the ``pandoc`` executable."""

    def __init__(self, fmt: str, executable: str = "pandoc"):
        self.id = fmt
        self.description = f"Export {fmt.upper()} with pandoc"
        self.executable = executable

    def can_run(self) -> Capability:
        if shutil.which(self.executable) is None:
            return Capability(False, "pandoc is not installed. Install pandoc to enable docx/pdf exports.")
        return Capability(True)

    def run(self, input_path: Path, output_path: Path) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        result = subprocess.run(
            [self.executable, str(input_path), "-o", str(output_path)],
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            details = (result.stderr or "").strip() or (result.stdout or "").strip() or "Unknown pandoc error"
            raise ExportError(f"pandoc export failed: {details}")
        return output_path


def get_exporter(fmt: str) -> Exporter:
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise ExportError(f"Unsupported export format '{fmt}'. Use md, docx, pdf, or epub.")
    if fmt == "md":
        return MarkdownExporter()
    return PandocExporter(fmt)


def export_manuscript(project: Project, fmt: str, input_path: Path, output_path: Path | None = None) -> Path:
    """Convert a compiled manuscript; defaults to ``<dist>/exports/<id>.<fmt>``."""
    exporter = get_exporter(fmt)
    target = output_path or project.dist_dir / "exports" / f"{project.id}.{exporter.id}"
    if not target.is_absolute():
        target = project.workspace.root / target

    capability = exporter.can_run()
    if not capability.ok:
        raise ExportError(capability.reason or f"Exporter '{exporter.id}' cannot run.")
    return exporter.run(input_path, target.resolve())
