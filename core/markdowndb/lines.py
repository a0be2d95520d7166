"""Line classifier for the MarkdownDB text format.

Grammar (one construct per line):

    <JOB>                      type-open tag
    TITLE: Engineer // note    key/value, trailing comment stripped
    # REQUIRED SKILLS          section header
    ## EXP_1                   entry header (profiles)
    - Python                   list item
    </JOB>                     type-close tag

Blank lines and `//` comment lines are skipped. Any other line is
unrecognized and ignored by the parser.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

COMMENT_MARKER = "//"

_TYPE_OPEN_RE = re.compile(r"<([A-Z_]+)>")
_TYPE_CLOSE_RE = re.compile(r"</([A-Z_]+)>")
_SECTION_RE = re.compile(r"#\s+([A-Z_]+(?:[ _]+[A-Z_]+)*)\s*:?\s*(?://.*)?")
_ANY_CASE_SECTION_RE = re.compile(
    r"#\s+([A-Za-z_]+(?:[ _]+[A-Za-z_]+)*)\s*:?\s*(?://.*)?"
)
_ENTRY_RE = re.compile(r"##\s+([A-Za-z0-9_]+)\s*:?\s*(?://.*)?")
_LIST_ITEM_RE = re.compile(r"-\s+(.+)")
_KEY_VALUE_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*):(.*)")
_INLINE_COMMENT_RE = re.compile(r"(?:^|\s)//.*$")
_LABEL_SEPARATOR_RE = re.compile(r"[ _]+")


class LineKind(str, Enum):
    """Category assigned to a single source line."""

    SKIP = "skip"
    TYPE_OPEN = "type_open"
    TYPE_CLOSE = "type_close"
    SECTION_HEADER = "section_header"
    ENTRY_HEADER = "entry_header"
    LIST_ITEM = "list_item"
    KEY_VALUE = "key_value"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class ClassifiedLine:
    """Classification of one line plus its extracted payload.

    `name` holds the tag, section label, entry id or key; `value` holds the
    list item text or the key/value value.
    """

    kind: LineKind
    name: str | None = None
    value: str | None = None


_SKIP = ClassifiedLine(LineKind.SKIP)
_UNRECOGNIZED = ClassifiedLine(LineKind.UNRECOGNIZED)


def classify_line(line: str) -> ClassifiedLine:
    """Classify a single, untrimmed source line."""

    stripped = line.strip()
    if not stripped or stripped.startswith(COMMENT_MARKER):
        return _SKIP

    match = _TYPE_CLOSE_RE.fullmatch(stripped)
    if match:
        return ClassifiedLine(LineKind.TYPE_CLOSE, name=match.group(1))

    match = _TYPE_OPEN_RE.fullmatch(stripped)
    if match:
        return ClassifiedLine(LineKind.TYPE_OPEN, name=match.group(1))

    match = _SECTION_RE.fullmatch(stripped)
    if match:
        return ClassifiedLine(LineKind.SECTION_HEADER, name=match.group(1).strip())

    match = _ENTRY_RE.fullmatch(stripped)
    if match:
        return ClassifiedLine(LineKind.ENTRY_HEADER, name=match.group(1))

    match = _LIST_ITEM_RE.fullmatch(stripped)
    if match:
        return ClassifiedLine(LineKind.LIST_ITEM, value=match.group(1))

    match = _KEY_VALUE_RE.fullmatch(stripped)
    if match:
        return ClassifiedLine(
            LineKind.KEY_VALUE,
            name=match.group(1),
            value=strip_inline_comment(match.group(2)),
        )

    return _UNRECOGNIZED


def header_label(line: str) -> str | None:
    """Label of a `# Heading` line in any letter case, as written.

    The classifier only accepts uppercase labels; this lets callers spot
    headings such as `# Skills` that were meant to open a section.
    """

    match = _ANY_CASE_SECTION_RE.fullmatch(line.strip())
    return match.group(1).strip() if match else None


def strip_inline_comment(value: str) -> str:
    """Drop a trailing `// comment` and surrounding whitespace.

    The marker only counts at the start of the value or after whitespace, so
    `https://example.com` is kept intact.
    """

    return value[: inline_comment_start(value)].strip()


def inline_comment_start(value: str) -> int:
    """Index where a trailing inline comment begins, or len(value)."""

    match = _INLINE_COMMENT_RE.search(value)
    return match.start() if match else len(value)


def normalize_label(label: str) -> str:
    """Canonical section label: `REQUIRED SKILLS` -> `REQUIRED_SKILLS`."""

    return _LABEL_SEPARATOR_RE.sub("_", label.strip()).strip("_")


def iter_line_spans(text: str) -> list[tuple[int, int, str]]:
    """Split text into `(start, end, line)` spans.

    `end` includes the line terminator; `line` does not.
    """

    spans: list[tuple[int, int, str]] = []
    cursor = 0
    while cursor < len(text):
        newline = text.find("\n", cursor)
        end = len(text) if newline == -1 else newline + 1
        spans.append((cursor, end, text[cursor:end].rstrip("\r\n")))
        cursor = end
    return spans
