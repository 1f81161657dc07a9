"""
LSP server for live manuscript diagnostics.

Provides:
- Header, comment, reference and body diagnostics on open, change and save
- Hover info for catalog identifiers
"""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer

from .. import __version__
from ..config import Project, find_workspace, infer_project_id, load_project
from ..errors import StegoError
from .diagnostics import check_text, describe_identifier, identifier_at, is_manuscript_file

logger = logging.getLogger(__name__)

SEVERITY = {
    "error": lsp.DiagnosticSeverity.Error,
    "warning": lsp.DiagnosticSeverity.Warning,
}


class StegoLanguageServer(LanguageServer):
    """Language server for stego manuscript files."""

    def __init__(self, root: Path | None = None):
        super().__init__(name="stego-lsp", version=__version__)
        self.root = root
        self._projects: dict[Path, Project] = {}

    def project_for(self, path: Path) -> Project | None:
        """Resolve (and cache) the project containing a file."""
        directory = path.parent
        try:
            workspace = find_workspace(self.root, cwd=directory)
        except StegoError as exc:
            logger.debug("No workspace for %s: %s", path, exc)
            return None

        project_id = infer_project_id(workspace, directory)
        if project_id is None:
            return None

        key = workspace.projects_dir / project_id
        if key not in self._projects:
            try:
                self._projects[key] = load_project(workspace, project_id)
            except StegoError as exc:
                logger.warning("Failed to load project %s: %s", project_id, exc)
                return None
        return self._projects[key]

    def forget_projects(self) -> None:
        self._projects.clear()


def uri_to_path(uri: str) -> Path:
    """Convert a file URI to a Path."""
    parsed = urlparse(uri)
    path = unquote(parsed.path)
    if path.startswith("/") and len(path) > 2 and path[2] == ":":
        path = path[1:]  # Windows drive letter
    return Path(path)


def create_server(root: Path | None = None) -> StegoLanguageServer:
    """Create and configure the LSP server."""
    server = StegoLanguageServer(root)

    @server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
    def did_open(params: lsp.DidOpenTextDocumentParams) -> None:
        _validate_document(server, params.text_document.uri, params.text_document.text)

    @server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
    def did_change(params: lsp.DidChangeTextDocumentParams) -> None:
        document = server.workspace.get_text_document(params.text_document.uri)
        _validate_document(server, params.text_document.uri, document.source)

    @server.feature(lsp.TEXT_DOCUMENT_DID_SAVE)
    def did_save(params: lsp.DidSaveTextDocumentParams) -> None:
        # Project config may have changed alongside the file.
        server.forget_projects()
        document = server.workspace.get_text_document(params.text_document.uri)
        _validate_document(server, params.text_document.uri, document.source)

    @server.feature(lsp.TEXT_DOCUMENT_HOVER)
    def hover(params: lsp.HoverParams) -> lsp.Hover | None:
        path = uri_to_path(params.text_document.uri)
        project = server.project_for(path)
        if project is None:
            return None

        document = server.workspace.get_text_document(params.text_document.uri)
        lines = document.lines
        if params.position.line >= len(lines):
            return None

        identifier = identifier_at(lines[params.position.line], params.position.character, project)
        if identifier is None:
            return None
        return lsp.Hover(
            contents=lsp.MarkupContent(kind=lsp.MarkupKind.Markdown, value=describe_identifier(identifier, project))
        )

    return server


def _validate_document(server: StegoLanguageServer, uri: str, content: str) -> None:
    """Check a manuscript file and publish its diagnostics."""
    path = uri_to_path(uri)
    project = server.project_for(path)
    if project is None or not is_manuscript_file(path, project):
        return

    diagnostics = [
        lsp.Diagnostic(
            range=lsp.Range(
                start=lsp.Position(line=d.line, character=d.column),
                end=lsp.Position(line=d.line, character=d.column + d.length),
            ),
            message=d.message,
            severity=SEVERITY.get(d.severity, lsp.DiagnosticSeverity.Warning),
            source="stego",
            code=d.category,
        )
        for d in check_text(path, project, content)
    ]
    server.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics))


def start_server(root: Path | None = None, transport: str = "stdio") -> None:
    """Start the LSP server.

    Args:
        root: Workspace root; discovered from each file when omitted
        transport: Transport method ("stdio" or "tcp")
    """
    server = create_server(root)

    if transport == "stdio":
        server.start_io()
    else:
        server.start_tcp("localhost", 2087)
