"""Tests for the org outline parser."""

import os
from pathlib import Path

import pytest

from espresso_mcp.indexer.parser import (
    convert_to_pins,
    extract_preview,
    generate_pin_id,
    get_file_stats,
    is_pinned_headline,
    parse_org_file,
    parse_org_text,
    search_headlines,
    validate_org_file,
)


class TestHeadlines:
    def test_parses_level_todo_title_and_tags(self):
        headlines = parse_org_text("** TODO Buy milk :pinned:urgent:")

        assert len(headlines) == 1
        h = headlines[0]
        assert h.level == 2
        assert h.todo == "TODO"
        assert h.title == "Buy milk"
        assert h.tags == ["pinned", "urgent"]
        assert h.line_number == 1
        assert h.content == "** TODO Buy milk :pinned:urgent:"

    def test_all_todo_keywords(self):
        text = "\n".join(f"* {kw} Item" for kw in ("TODO", "NEXT", "DONE", "WAITING", "CANCELED"))
        todos = [h.todo for h in parse_org_text(text)]
        assert todos == ["TODO", "NEXT", "DONE", "WAITING", "CANCELED"]

    def test_keyword_prefix_is_part_of_title(self):
        h = parse_org_text("* TODOIST rules")[0]
        assert h.todo is None
        assert h.title == "TODOIST rules"

    def test_keyword_only_headline(self):
        h = parse_org_text("* DONE")[0]
        assert h.todo == "DONE"
        assert h.title == ""

    def test_keyword_with_tags_only(self):
        h = parse_org_text("* TODO :pinned:")[0]
        assert h.todo == "TODO"
        assert h.title == ""
        assert h.tags == ["pinned"]

    def test_tags_only_headline(self):
        h = parse_org_text("* :pinned:")[0]
        assert h.todo is None
        assert h.title == ""
        assert h.tags == ["pinned"]

    def test_stars_need_trailing_whitespace(self):
        assert parse_org_text("*bold* text\n**") == []

    def test_tags_need_leading_whitespace(self):
        h = parse_org_text("* Title:pinned:")[0]
        assert h.tags == []
        assert h.title == "Title:pinned:"

    def test_tags_with_special_characters(self):
        h = parse_org_text("* Call :@home:#q1:")[0]
        assert h.tags == ["@home", "#q1"]

    def test_line_numbers_are_one_based(self):
        text = "#+TITLE: Notes\n\n* First\nbody\n* Second"
        assert [h.line_number for h in parse_org_text(text)] == [3, 5]

    def test_carriage_returns_are_ignored(self):
        h = parse_org_text("* Task :pinned:\r\nBody\r\n")[0]
        assert h.tags == ["pinned"]
        assert h.content == "* Task :pinned:"
        assert h.detailed_content == "Body"


class TestBodiesAndDrawers:
    def test_body_collected_until_next_headline(self):
        text = "* One\nfirst line\n\nsecond line\n** Child\nchild body"
        one, child = parse_org_text(text)

        assert one.detailed_content == "first line\n\nsecond line"
        assert child.detailed_content == "child body"

    def test_empty_body_is_none(self):
        assert parse_org_text("* One\n\n* Two")[0].detailed_content is None

    def test_text_before_first_headline_is_ignored(self):
        h = parse_org_text("preamble\n* One")[0]
        assert h.detailed_content is None

    def test_properties_read_from_drawer(self):
        text = "* Task\n:PROPERTIES:\n:ID: 42\n:PINNED: yes\n:END:\nBody"
        h = parse_org_text(text)[0]

        assert h.properties == {"ID": "42", "PINNED": "yes"}
        assert h.detailed_content == "Body"

    def test_property_with_empty_value(self):
        h = parse_org_text("* Task\n:PROPERTIES:\n:PINNED:\n:END:")[0]
        assert h.properties == {"PINNED": ""}

    def test_property_outside_drawer_is_body_text(self):
        h = parse_org_text("* Task\n:PINNED: yes")[0]
        assert h.properties == {}
        assert h.detailed_content == ":PINNED: yes"

    def test_drawer_before_first_headline_is_ignored(self):
        text = ":PROPERTIES:\n:PINNED: t\n:END:\n* Task"
        h = parse_org_text(text)[0]
        assert h.properties == {}

    def test_unclosed_drawer_ends_at_next_headline(self):
        text = "* One\n:PROPERTIES:\n:ID: 1\n* Two\nbody"
        one, two = parse_org_text(text)

        assert one.properties == {"ID": "1"}
        assert two.detailed_content == "body"

    def test_timestamps_from_headline_and_body(self):
        text = "* Review <2024-03-01 Fri>\nDEADLINE: <2024-03-05 Tue>"
        h = parse_org_text(text)[0]

        texts = [(t.type, t.original_text) for t in h.timestamps]
        assert ("active", "<2024-03-01 Fri>") in texts
        assert ("deadline", "DEADLINE: <2024-03-05 Tue>") in texts


class TestIsPinnedHeadline:
    @pytest.mark.parametrize(
        "text",
        [
            "* Task :pinned:",
            "* Task :work:PINNED:",
            "* TODO :pinned:",
            "* :pinned:",
            "* Task\n:PROPERTIES:\n:PINNED: t\n:END:",
            "* Task\n:PROPERTIES:\n:Pinned:\n:END:",
        ],
    )
    def test_pinned(self, text: str):
        assert is_pinned_headline(parse_org_text(text)[0])

    @pytest.mark.parametrize(
        "text",
        [
            "* Task",
            "* Task :pinnedish:",
            "* Task pinned",
            "* Task\n:PINNED: t",
            "* Task\n:PROPERTIES:\n:PINNED_AT: today\n:END:",
        ],
    )
    def test_not_pinned(self, text: str):
        assert not is_pinned_headline(parse_org_text(text)[0])


class TestParseOrgFile:
    def test_selects_pinned_headlines(self, tmp_path: Path):
        path = tmp_path / "notes.org"
        path.write_text("* A :pinned:\n* B\n* C\n:PROPERTIES:\n:PINNED: t\n:END:\n")

        parsed = parse_org_file(path)

        assert parsed.file_path == str(path)
        assert len(parsed.headlines) == 3
        assert [h.title for h in parsed.pinned_headlines] == ["A", "C"]
        assert parsed.parse_time >= 0

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(OSError):
            parse_org_file(tmp_path / "missing.org")

    def test_invalid_utf8_raises(self, tmp_path: Path):
        path = tmp_path / "bad.org"
        path.write_bytes(b"* Bad \xff\xfe :pinned:\n")
        with pytest.raises(UnicodeDecodeError):
            parse_org_file(path)


class TestConvertToPins:
    def test_pin_fields(self, tmp_path: Path):
        path = tmp_path / "work.org"
        path.write_text("#+TITLE: Work\n* TODO Ship it :pinned:release:\nNotes <2024-05-01 Wed>\n")
        headlines = parse_org_file(path).pinned_headlines

        pins = convert_to_pins(path, headlines)

        assert len(pins) == 1
        pin = pins[0]
        assert pin.id == "org-work-2"
        assert pin.content == "Ship it"
        assert pin.timestamp == os.stat(path).st_mtime * 1000
        assert pin.file_path == str(path)
        assert pin.source_file == str(path)
        assert pin.line_number == 2
        assert pin.org_headline == "* TODO Ship it :pinned:release:"
        assert pin.tags == ["pinned", "release"]
        assert pin.detailed_content == "Notes <2024-05-01 Wed>"
        assert [t.type for t in pin.org_timestamps] == ["active"]
        assert pin.sort_order is None

    def test_generate_pin_id_uses_file_stem(self):
        assert generate_pin_id("/home/me/org/daily.notes.org", 12) == "org-daily.notes-12"


class TestHelpers:
    def test_extract_preview(self):
        h = parse_org_text("* NEXT Write report")[0]
        assert extract_preview(h) == "NEXT Write report"

    def test_extract_preview_truncates(self):
        h = parse_org_text("* " + "x" * 50)[0]
        preview = extract_preview(h, max_length=20)
        assert preview == "x" * 17 + "..."

    def test_get_file_stats(self, tmp_path: Path):
        path = tmp_path / "notes.org"
        path.write_text("* A :pinned:\nbody\n* B\n")

        stats = get_file_stats(path)

        assert stats["total_headlines"] == 2
        assert stats["pinned_headlines"] == 1
        assert stats["total_lines"] == 4
        assert stats["size"] == path.stat().st_size

    def test_validate_org_file_ok(self, tmp_path: Path):
        path = tmp_path / "notes.org"
        path.write_text("* A\n:PROPERTIES:\n:ID: 1\n:END:\n")
        assert validate_org_file(path) == {"is_valid": True, "errors": [], "warnings": []}

    def test_validate_org_file_problems(self, tmp_path: Path):
        path = tmp_path / "notes.org"
        path.write_text("no headlines\n:PROPERTIES:\n")

        result = validate_org_file(path)

        assert result["is_valid"] is False
        assert result["errors"] == ["Unclosed properties block found"]
        assert result["warnings"] == ["No headlines found in org file"]

    def test_validate_missing_file(self, tmp_path: Path):
        result = validate_org_file(tmp_path / "missing.org")
        assert result["is_valid"] is False
        assert result["errors"][0].startswith("Cannot read file")

    def test_search_headlines(self, tmp_path: Path):
        path = tmp_path / "notes.org"
        path.write_text("* Groceries :home:\n* Budget review\n* Garden :HOME:\n")

        assert [h.title for h in search_headlines(path, "home")] == ["Groceries", "Garden"]
        assert [h.title for h in search_headlines(path, "budget")] == ["Budget review"]

    def test_search_missing_file_returns_empty(self, tmp_path: Path):
        assert search_headlines(tmp_path / "missing.org", "x") == []
