from pathlib import Path

from watchdog.events import FileModifiedEvent, FileMovedEvent

from stego.lsp.diagnostics import check_text, describe_identifier, identifier_at, is_manuscript_file
from stego.lsp.server import create_server, uri_to_path
from stego.watcher import ManuscriptEventHandler, watched_directories

from conftest import DEFAULT_PROJECT_META, write_manuscript


def test_handler_debounces_and_filters() -> None:
    calls: list[list[Path]] = []
    handler = ManuscriptEventHandler(calls.append, debounce=1.0)

    handler.on_modified(FileModifiedEvent("/w/manuscript/100-a.md"))
    handler.on_modified(FileModifiedEvent("/w/manuscript/100-a.md"))
    handler.on_modified(FileModifiedEvent("/w/manuscript/image.png"))
    handler.on_modified(FileModifiedEvent("/w/.git/index.md"))
    handler.on_moved(FileMovedEvent("/w/manuscript/old.md", "/w/manuscript/200-b.md"))

    assert sorted(handler.pending) == ["/w/manuscript/100-a.md", "/w/manuscript/200-b.md", "/w/manuscript/old.md"]

    seen = max(handler.pending.values())
    assert handler.flush_pending(now=seen) == []
    assert calls == []

    flushed = handler.flush_pending(now=seen + 1.0)
    assert len(flushed) == 3
    assert calls == [flushed]
    assert handler.pending == {}


def test_watched_directories(project) -> None:
    directories = watched_directories(project)

    assert directories == [project.manuscript_dir, project.spine_dir, project.root]


def test_check_text_uses_unsaved_content(project) -> None:
    path = write_manuscript(project, "100-a.md", ["status: draft"], ["Saved text."])
    content = "---\nstatus: draft\nbroken line\n---\n\nCHAR-ADA appears.\n"

    diagnostics = check_text(path, project, content)

    by_line = {(d.line, d.severity) for d in diagnostics}
    # file lines 3 and 6 become 0-based lines 2 and 5
    assert (2, "error") in by_line
    assert (5, "error") in by_line
    inline = next(d for d in diagnostics if d.line == 5)
    assert inline.column == 0
    assert inline.length == len("CHAR-ADA appears.")


def test_check_text_reports_unknown_references(project) -> None:
    path = write_manuscript(project, "100-a.md", ["status: draft", "characters: [CHAR-ZED]"], ["Text."])

    diagnostics = check_text(path, project)

    assert [(d.line, d.severity, d.category) for d in diagnostics] == [(0, "warning", "continuity")]


def test_check_text_leaves_out_project_level_issues(make_project) -> None:
    meta = {**DEFAULT_PROJECT_META, "compileStructure": {"levels": [{"key": "part"}]}}
    project = make_project(meta=meta, characters=None)
    path = write_manuscript(project, "100-a.md", ["status: draft", "broken line"], ["Text."])

    diagnostics = check_text(path, project)

    assert [(d.line, d.severity, d.category) for d in diagnostics] == [(2, "error", "metadata")]


def test_manuscript_file_detection(project) -> None:
    assert is_manuscript_file(project.manuscript_dir / "100-a.md", project)
    assert not is_manuscript_file(project.spine_dir / "characters.md", project)
    assert not is_manuscript_file(project.manuscript_dir / "notes.txt", project)


def test_hover_helpers(project) -> None:
    (project.spine_dir / "characters.md").write_text("## CHAR-ADA\n", encoding="utf-8")

    assert identifier_at("characters: [CHAR-ADA]", 16, project) == "CHAR-ADA"
    assert identifier_at("characters: [CHAR-ADA]", 2, project) is None
    assert "(defined)" in describe_identifier("CHAR-ADA", project)
    assert "**not defined**" in describe_identifier("CHAR-ZED", project)


def test_uri_to_path() -> None:
    assert uri_to_path("file:///tmp/my%20novel/100-a.md") == Path("/tmp/my novel/100-a.md")


def test_create_server(workspace_root: Path) -> None:
    server = create_server(workspace_root)

    assert server.root == workspace_root
