from stego.manuscript.assembler import PAGE_BREAK, assemble_manuscript, build_manuscript, slugify
from stego.manuscript.inspector import inspect_project

from conftest import write_manuscript

GENERATED = "2024-05-01T00:00:00.000+00:00"

STRUCTURED_META = {
    "title": "Two Parts",
    "subtitle": "A Test",
    "author": "A. Writer",
    "compileStructure": {
        "levels": [
            {"key": "part", "label": "Part", "titleKey": "part_title", "pageBreak": "between-groups"},
            {"key": "chapter", "label": "Chapter", "titleKey": "chapter_title", "pageBreak": "between-groups"},
        ]
    },
}


def _structured_project(make_project):
    project = make_project(meta=STRUCTURED_META, characters=None)
    write_manuscript(
        project,
        "100-opening.md",
        ["status: draft", "part: 1", "part_title: Before", "chapter: 1", "chapter_title: Home"],
        ["Scene one."],
    )
    write_manuscript(project, "200-road.md", ["status: draft", "chapter: 2"], ["Scene two."])
    write_manuscript(
        project,
        "300-sea.md",
        ["status: draft", "part: 2", "part_title: After", "chapter: 3", "chapter_title: Sea"],
        ["Scene three."],
    )
    write_manuscript(project, "400-shore.md", ["status: draft"], ["Scene four."])
    return project


def test_structured_output(make_project) -> None:
    project = _structured_project(make_project)
    inspection = inspect_project(project)
    assert inspection.issues == []

    text = assemble_manuscript(
        inspection.documents,
        inspection.levels,
        title=project.title,
        subtitle=project.subtitle,
        author=project.author,
        generated_at=GENERATED,
    )
    lines = text.splitlines()

    assert lines[0] == f"<!-- generated: {GENERATED} -->"
    assert "# Two Parts" in lines
    assert "_A Test_" in lines
    assert "Author: A. Writer" in lines
    assert lines.count(PAGE_BREAK) == 2

    assert "## Part 1: Before" in lines
    assert "## Part 2: After" in lines
    assert "### Chapter 1: Home" in lines
    # Chapter 2 has no title of its own and inherits the previous one.
    assert "### Chapter 2: Home" in lines
    assert "### Chapter 3: Sea" in lines
    assert sum(1 for line in lines if line.startswith("#### ")) == 4

    toc_start = lines.index("## Table of Contents") + 2
    assert lines[toc_start : toc_start + 5] == [
        "- [Part 1: Before](#part-1-before)",
        "  - [Chapter 1: Home](#chapter-1-home)",
        "  - [Chapter 2: Home](#chapter-2-home)",
        "- [Part 2: After](#part-2-after)",
        "  - [Chapter 3: Sea](#chapter-3-sea)",
    ]


def test_page_break_never_precedes_first_document(make_project) -> None:
    project = _structured_project(make_project)
    inspection = inspect_project(project)

    text = assemble_manuscript(inspection.documents, inspection.levels, title="T", generated_at=GENERATED)
    lines = text.splitlines()

    first_heading = lines.index("## Part 1: Before")
    assert PAGE_BREAK not in lines[:first_heading]
    # Part 2 starts right after one break, not two.
    part_two = lines.index("## Part 2: After")
    assert lines[part_two - 2] == PAGE_BREAK
    assert lines[part_two - 4] != PAGE_BREAK


def test_provenance_and_document_order(project) -> None:
    write_manuscript(project, "200-b.md", ["status: revise"], ["Second body."])
    write_manuscript(project, "100-a.md", ["status: draft", "title: First"], ["First body."])
    inspection = inspect_project(project)

    text = assemble_manuscript(inspection.documents, inspection.levels, title="Flat", generated_at=GENERATED)
    lines = text.splitlines()

    assert "- [Manuscript](#manuscript)" in lines
    assert "## First" in lines
    assert "## B" in lines
    assert lines.index("## First") < lines.index("## B")
    assert "<!-- source: manuscript/100-a.md | order: 100 | status: draft -->" in lines
    assert "<!-- source: manuscript/200-b.md | order: 200 | status: revise -->" in lines
    assert PAGE_BREAK not in lines


def test_build_writes_dist_file(project) -> None:
    write_manuscript(project, "100-a.md", ["status: draft"], ["Body."])
    inspection = inspect_project(project)
    (project.dist_dir).mkdir(parents=True, exist_ok=True)
    (project.dist_dir / "novel.md").write_text("stale", encoding="utf-8")

    output = build_manuscript(project, inspection, generated_at=GENERATED)

    assert output == project.dist_dir / "novel.md"
    text = output.read_text(encoding="utf-8")
    assert "stale" not in text
    assert "# The Novel" in text
    assert text.endswith("\n")


def test_slugify() -> None:
    assert slugify("Chapter 1: The Arrival!") == "chapter-1-the-arrival"
