from pathlib import Path

from stego.manuscript.assembler import resolve_group_states
from stego.manuscript.fields import check_required_fields, check_status, resolve_required_fields
from stego.manuscript.grouping import format_group_heading, grouping_value, resolve_grouping_levels
from stego.manuscript.header import parse_header
from stego.models import Document, GroupingLevel


def _document(name: str, header: str) -> Document:
    parsed = parse_header(f"---\n{header}\n---\n")
    return Document(
        path=Path(name),
        relative_path=f"manuscript/{name}",
        title=name,
        order=None,
        header=parsed.header,
        body="",
        group_values={k: str(v) for k, v in parsed.header.items() if k in ("part", "chapter")},
    )


def test_levels_resolve_with_defaults() -> None:
    levels, issues = resolve_grouping_levels(
        {"levels": [{"key": "part", "label": "Part"}, {"key": "chapter", "label": "Chapter", "titleKey": "chapter_title"}]}
    )

    assert issues == []
    assert levels[0] == GroupingLevel(key="part", label="Part")
    assert levels[1].title_key == "chapter_title"
    assert levels[1].inject_heading is True
    assert levels[1].page_break == "none"


def test_invalid_levels_are_reported_and_dropped() -> None:
    levels, issues = resolve_grouping_levels(
        {
            "levels": [
                {"key": "part", "label": "Part", "pageBreak": "always"},
                {"key": "Chapter", "label": "Chapter"},
                {"key": "scene"},
                {"key": "chapter", "label": "Chapter"},
                {"key": "chapter", "label": "Again"},
            ]
        },
        "stego-project.json",
    )

    assert [level.key for level in levels] == ["chapter"]
    messages = [i.message for i in issues]
    assert "compileStructure.levels[0].pageBreak must be 'none' or 'between-groups'." in messages
    assert "Duplicate compileStructure level key 'chapter'." in messages
    assert len(issues) == 4


def test_levels_must_be_an_array() -> None:
    levels, issues = resolve_grouping_levels({"levels": "chapter"})

    assert levels == []
    assert len(issues) == 1


def test_list_grouping_value_is_error_and_absent() -> None:
    value, issues = grouping_value(["1", "2"], "chapter", "a.md")

    assert value is None
    assert issues[0].message == "Metadata 'chapter' must be a scalar value."
    assert grouping_value(3, "chapter") == ("3", [])


def test_heading_template() -> None:
    level = GroupingLevel(key="chapter", label="Chapter")

    assert format_group_heading(level, "1", "Arrival") == "Chapter 1: Arrival"
    assert format_group_heading(level, "1", None) == "Chapter 1"

    custom = GroupingLevel(key="part", label="Part", heading_template="{label} {value}:  {title}")
    assert format_group_heading(custom, "II", "") == "Part II"


def test_values_are_inherited_and_parent_change_propagates() -> None:
    levels = [GroupingLevel(key="part", label="Part"), GroupingLevel(key="chapter", label="Chapter")]
    documents = [
        _document("100-a.md", "part: 1\nchapter: 1"),
        _document("200-b.md", "status: draft"),
        _document("300-c.md", "part: 2"),
        _document("400-d.md", "chapter: 2"),
    ]

    states = resolve_group_states(documents, levels)

    assert [(s[0].value, s[1].value) for s in states] == [("1", "1"), ("1", "1"), ("2", "1"), ("2", "2")]
    assert [(s[0].changed, s[1].changed) for s in states] == [
        (True, True),
        (False, False),
        (True, True),
        (False, True),
    ]


def test_required_fields_override_and_dedupe() -> None:
    required, issues = resolve_required_fields(["status", " pov ", "status", 3, ""], ["status"])

    assert required == ["status", "pov"]
    assert len(issues) == 2

    default, issues = resolve_required_fields(None, ["status"])
    assert default == ["status"] and issues == []


def test_missing_required_field_is_warning() -> None:
    header = parse_header("---\nstatus: draft\npov:\n---\n").header

    issues = check_required_fields(header, ["status", "pov"], "a.md")

    assert [i.level for i in issues] == ["warning"]
    assert "'pov'" in issues[0].message


def test_status_must_be_allowed() -> None:
    header = parse_header("---\nstatus: polished\n---\n").header

    issues = check_status(header, ["draft", "final"], "a.md")

    assert [i.level for i in issues] == ["error"]
    assert check_status(parse_header("---\nstatus: final\n---\n").header, ["draft", "final"]) == []
