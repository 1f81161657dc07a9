from pathlib import Path

from stego.manuscript.catalog import (
    extract_references,
    find_inline_mentions,
    find_unknown_references,
    read_catalog,
    resolve_catalog_schema,
)
from stego.manuscript.header import parse_header

CATEGORIES = [
    {"key": "characters", "prefix": "CHAR", "notesFile": "characters.md"},
    {"key": "places", "prefix": "PLACE", "notesFile": "places.md"},
]


def test_resolves_valid_categories() -> None:
    schema, issues = resolve_catalog_schema(CATEGORIES, "stego-project.json")

    assert issues == []
    assert [c.prefix for c in schema.categories] == ["CHAR", "PLACE"]
    assert schema.inline_pattern is not None
    assert schema.inline_pattern.pattern == r"\b(?:CHAR|PLACE)-[A-Z0-9-]+\b"


def test_absent_categories_yield_empty_schema() -> None:
    schema, issues = resolve_catalog_schema(None)

    assert issues == []
    assert schema.categories == ()
    assert schema.inline_pattern is None


def test_non_list_categories_is_an_error() -> None:
    schema, issues = resolve_catalog_schema({"key": "characters"}, "stego-project.json")

    assert schema.categories == ()
    assert len(issues) == 1
    assert issues[0].file == "stego-project.json"


def test_invalid_entries_are_skipped() -> None:
    raw = [
        {"key": "Characters", "prefix": "CHAR", "notesFile": "characters.md"},
        {"key": "comments", "prefix": "CMT", "notesFile": "comments.md"},
        {"key": "places", "prefix": "place", "notesFile": "places.md"},
        {"key": "items", "prefix": "ITEM", "notesFile": "items.txt"},
        {"key": "cast", "prefix": "CHAR", "notesFile": "cast.md"},
        {"key": "characters", "prefix": "CHAR", "notesFile": "characters.md"},
        {"key": "crew", "prefix": "CHAR", "notesFile": "crew.md"},
        "not-an-object",
    ]
    schema, issues = resolve_catalog_schema(raw)

    assert [c.key for c in schema.categories] == ["cast"]
    assert len(issues) == 7
    assert any("reserved for comment IDs" in i.message for i in issues)
    assert any("Duplicate spine category prefix 'CHAR'" in i.message for i in issues)


def test_reference_extraction() -> None:
    schema, _ = resolve_catalog_schema(CATEGORIES)
    header = parse_header("---\ncharacters: [CHAR-ADA, char-x, CHAR-ADA]\nplaces: PLACE-SEA\n---\n").header

    ids, issues = extract_references(header, schema, "a.md")

    assert ids == ["CHAR-ADA"]
    messages = [i.message for i in issues]
    assert len(messages) == 2
    assert any("Invalid characters reference 'char-x'" in m for m in messages)
    assert any("Metadata 'places' must be an array" in m for m in messages)


def test_lowercase_suffix_is_rejected_uppercase_accepted() -> None:
    schema, _ = resolve_catalog_schema(CATEGORIES)
    header = parse_header("---\ncharacters: [CHAR-X, CHAR-x]\n---\n").header

    ids, issues = extract_references(header, schema)

    assert ids == ["CHAR-X"]
    assert len(issues) == 1


def test_inline_mention_reported_on_file_line() -> None:
    schema, _ = resolve_catalog_schema(CATEGORIES)
    body = "First line.\nThen CHAR-ADA walked in.\nNothing here; char-ada is fine.\n"

    issues = find_inline_mentions(body, schema, "a.md", first_line=5)

    assert len(issues) == 1
    assert issues[0].line == 6
    assert issues[0].category == "continuity"
    assert "CHAR-ADA" in issues[0].message


def test_read_catalog_harvests_ids_and_warns_on_missing_files(tmp_path: Path) -> None:
    schema, _ = resolve_catalog_schema(CATEGORIES)
    spine = tmp_path / "spine"
    spine.mkdir()
    (spine / "characters.md").write_text("# Characters\n\n## CHAR-ADA\n\nMentor of CHAR-BO.\n", encoding="utf-8")

    catalog = read_catalog(spine, schema, tmp_path)

    assert catalog.ids == {"CHAR-ADA", "CHAR-BO"}
    assert len(catalog.issues) == 1
    assert catalog.issues[0].level == "warning"
    assert catalog.issues[0].file == "spine/places.md"


def test_read_catalog_missing_directory(tmp_path: Path) -> None:
    schema, _ = resolve_catalog_schema(CATEGORIES)

    catalog = read_catalog(tmp_path / "spine", schema)

    assert catalog.ids == set()
    assert [i.level for i in catalog.issues] == ["warning"]


def test_unknown_references_are_warnings() -> None:
    issues = find_unknown_references(["CHAR-ADA", "CHAR-ZED"], {"CHAR-ADA"}, "a.md")

    assert len(issues) == 1
    assert issues[0].level == "warning"
    assert issues[0].message == "Metadata reference 'CHAR-ZED' does not exist in the spine files."
