from __future__ import annotations

import pytest

from core.markdowndb.lines import (
    LineKind,
    classify_line,
    header_label,
    iter_line_spans,
    normalize_label,
    strip_inline_comment,
)


@pytest.mark.parametrize(
    ("line", "kind", "name", "value"),
    [
        ("<JOB>", LineKind.TYPE_OPEN, "JOB", None),
        ("  <PROFILE>  ", LineKind.TYPE_OPEN, "PROFILE", None),
        ("</JOB>", LineKind.TYPE_CLOSE, "JOB", None),
        ("# REQUIRED SKILLS", LineKind.SECTION_HEADER, "REQUIRED SKILLS", None),
        ("# ABOUT_COMPANY: // optional", LineKind.SECTION_HEADER, "ABOUT_COMPANY", None),
        ("## EXP_1", LineKind.ENTRY_HEADER, "EXP_1", None),
        ("- Python", LineKind.LIST_ITEM, None, "Python"),
        ("TITLE: Engineer // senior role", LineKind.KEY_VALUE, "TITLE", "Engineer"),
        ("  TITLE:Engineer  ", LineKind.KEY_VALUE, "TITLE", "Engineer"),
        ("WEBSITE: https://example.com", LineKind.KEY_VALUE, "WEBSITE", "https://example.com"),
        ("BULLETS:", LineKind.KEY_VALUE, "BULLETS", ""),
    ],
)
def test_classify_line_recognizes_constructs(
    line: str, kind: LineKind, name: str | None, value: str | None
) -> None:
    classified = classify_line(line)

    assert classified.kind is kind
    assert classified.name == name
    assert classified.value == value


@pytest.mark.parametrize("line", ["", "   ", "// a comment", "   // indented comment"])
def test_classify_line_skips_blank_and_comment_lines(line: str) -> None:
    assert classify_line(line).kind is LineKind.SKIP


@pytest.mark.parametrize("line", ["Just some prose", "-", "# lowercase heading", "<job>"])
def test_classify_line_marks_everything_else_unrecognized(line: str) -> None:
    assert classify_line(line).kind is LineKind.UNRECOGNIZED


def test_strip_inline_comment_requires_leading_whitespace() -> None:
    assert strip_inline_comment(" REMOTE // twice a month") == "REMOTE"
    assert strip_inline_comment("// only a comment") == ""
    assert strip_inline_comment(" ftp://host/path ") == "ftp://host/path"


@pytest.mark.parametrize(
    "label", ["REQUIRED SKILLS", "REQUIRED_SKILLS", "REQUIRED  SKILLS", " REQUIRED _ SKILLS "]
)
def test_normalize_label_collapses_spaces_and_underscores(label: str) -> None:
    assert normalize_label(label) == "REQUIRED_SKILLS"


def test_iter_line_spans_keeps_offsets_and_strips_terminators() -> None:
    text = "a\r\nbb\n\nc"

    assert iter_line_spans(text) == [(0, 3, "a"), (3, 6, "bb"), (6, 7, ""), (7, 8, "c")]


def test_iter_line_spans_empty_text() -> None:
    assert iter_line_spans("") == []


@pytest.mark.parametrize(
    ("line", "label"),
    [
        ("# Skills", "Skills"),
        ("  # About company: // later", "About company"),
        ("# REQUIRED SKILLS", "REQUIRED SKILLS"),
        ("## EXP_1", None),
        ("#Skills", None),
        ("- # Skills", None),
    ],
)
def test_header_label_reads_any_case_heading(line: str, label: str | None) -> None:
    assert header_label(line) == label
