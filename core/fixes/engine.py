"""Fix engine: applies one validation fix as a minimal text patch.

Every fix becomes one or more non-overlapping edits `(start, end, replacement)`
on the raw text; all but the type rename use exactly one. The caller's cursor
is remapped against each edit:

- before the edit: unchanged
- inside the replaced span: moved to the span start
- at or after the span end: shifted by the length delta

A fix whose target no longer exists in the text is stale and yields the
original text and cursor with `applied=False`. Sections resolve to the last
header with a matching label, the one the parser keeps; entries resolve by id
and occurrence within that section.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.markdowndb.lines import (
    ClassifiedLine,
    LineKind,
    classify_line,
    header_label,
    inline_comment_start,
    iter_line_spans,
    normalize_label,
)
from core.utils.errors import FixChoiceError
from core.validation.models import (
    DeleteSection,
    Fix,
    InsertField,
    InsertTypeTag,
    RenameEntryId,
    RenameField,
    RenameSection,
    ReplaceEnumValue,
    ReplaceEnumValueMulti,
    ReplaceTypeTag,
)

logger = logging.getLogger("markdowndb.fixes")


@dataclass(frozen=True)
class FixResult:
    """Patched text, remapped cursor, and whether the patch happened."""

    text: str
    cursor: int
    applied: bool


@dataclass(frozen=True)
class _Line:
    start: int
    end: int
    content: str
    classified: ClassifiedLine

    @property
    def kind(self) -> LineKind:
        return self.classified.kind


@dataclass(frozen=True)
class _Edit:
    start: int
    end: int
    replacement: str


def apply_fix(
    text: str, fix: Fix, cursor: int = 0, *, choice: str | None = None
) -> FixResult:
    """Apply a single fix to raw text.

    Args:
        text: Current raw document text.
        fix: Fix taken from a validation report.
        cursor: Caller's cursor offset (string index) into text.
        choice: Selected value, required for ReplaceEnumValueMulti.

    Raises:
        FixChoiceError: choice missing or not allowed for a multi-value fix.
    """

    cursor = max(0, min(cursor, len(text)))

    if isinstance(fix, ReplaceEnumValueMulti):
        if choice is None:
            raise FixChoiceError(
                f"A value must be chosen for {fix.field}",
                field=fix.field,
                allowed_values=list(fix.allowed_values),
            )
        fix = fix.choose(choice)

    lines = _classify(text)
    edits: list[_Edit] | None
    if isinstance(fix, DeleteSection):
        edits = _single(_delete_section(text, lines, fix))
    elif isinstance(fix, InsertField):
        edits = _single(_insert_field(text, lines, fix))
    elif isinstance(fix, ReplaceEnumValue):
        edits = _single(_replace_value(lines, fix))
    elif isinstance(fix, InsertTypeTag):
        edits = _single(_insert_type_tag(lines, fix))
    elif isinstance(fix, ReplaceTypeTag):
        edits = _replace_type_tag(lines, fix)
    elif isinstance(fix, RenameField):
        edits = _single(_rename_field(lines, fix))
    elif isinstance(fix, RenameSection):
        edits = _single(_rename_section(lines, fix))
    elif isinstance(fix, RenameEntryId):
        edits = _single(_rename_entry_id(lines, fix))
    else:
        raise TypeError(f"Unsupported fix type: {type(fix).__name__}")

    if edits is None:
        logger.debug("stale fix skipped: %s", fix.describe())
        return FixResult(text=text, cursor=cursor, applied=False)

    patched = text
    # Right to left, so earlier offsets stay valid for both text and cursor.
    for edit in sorted(edits, key=lambda item: item.start, reverse=True):
        patched = patched[: edit.start] + edit.replacement + patched[edit.end :]
        cursor = _remap_cursor(cursor, edit)
    return FixResult(text=patched, cursor=cursor, applied=True)


def _single(edit: _Edit | None) -> list[_Edit] | None:
    return None if edit is None else [edit]


def _remap_cursor(cursor: int, edit: _Edit) -> int:
    if cursor < edit.start:
        return cursor
    if cursor < edit.end:
        return edit.start
    return cursor + len(edit.replacement) - (edit.end - edit.start)


def _classify(text: str) -> list[_Line]:
    return [
        _Line(start, end, content, classify_line(content))
        for start, end, content in iter_line_spans(text)
    ]


def _find_index(
    lines: list[_Line], start: int, stop: int, kinds: set[LineKind]
) -> int | None:
    for index in range(start, stop):
        if lines[index].kind in kinds:
            return index
    return None


def _find_section(lines: list[_Line], name: str) -> tuple[int, int] | None:
    """Return (header_index, boundary_index) for the last matching section.

    A repeated label replaces the earlier section when parsing, so the last
    header is the one validation reported on. The boundary is the next
    section header, a closing type tag, or len(lines).
    """

    target = normalize_label(name)
    header: int | None = None
    for index, line in enumerate(lines):
        if line.kind is not LineKind.SECTION_HEADER:
            continue
        if normalize_label(line.classified.name or "") == target:
            header = index
    if header is None:
        return None
    boundary = _find_index(
        lines, header + 1, len(lines), {LineKind.SECTION_HEADER, LineKind.TYPE_CLOSE}
    )
    return header, len(lines) if boundary is None else boundary


def _find_entry(
    lines: list[_Line], section: str, entry: str, occurrence: int = 0
) -> tuple[int, int] | None:
    """Locate the `occurrence`-th `## entry` block (0-based) in a section."""

    found = _find_section(lines, section)
    if found is None:
        return None
    header, section_end = found
    seen = 0
    for index in range(header + 1, section_end):
        line = lines[index]
        if line.kind is not LineKind.ENTRY_HEADER or line.classified.name != entry:
            continue
        if seen == occurrence:
            boundary = _find_index(lines, index + 1, section_end, {LineKind.ENTRY_HEADER})
            return index, section_end if boundary is None else boundary
        seen += 1
    return None


def _top_level_end(lines: list[_Line]) -> int:
    first_section = _find_index(lines, 0, len(lines), {LineKind.SECTION_HEADER})
    return len(lines) if first_section is None else first_section


def _delete_section(text: str, lines: list[_Line], fix: DeleteSection) -> _Edit | None:
    found = _find_section(lines, fix.name)
    if found is None:
        return None
    header, boundary = found

    start = lines[header].start
    end = lines[boundary].start if boundary < len(lines) else len(text)

    reaches_tail = boundary == len(lines) or lines[boundary].kind is LineKind.TYPE_CLOSE
    if reaches_tail and header > 0 and not lines[header - 1].content.strip():
        start = lines[header - 1].start

    if boundary == len(lines) and not text.endswith("\n") and start > 0:
        # Drop the line break that ended the previous line.
        start -= 2 if text[start - 2 : start] == "\r\n" else 1

    return _Edit(start=start, end=end, replacement="")


def _insert_field(text: str, lines: list[_Line], fix: InsertField) -> _Edit | None:
    if fix.entry is not None:
        anchor = _entry_field_anchor(lines, fix.section or "", fix.entry, fix.occurrence)
        if anchor is None:
            return None
    else:
        anchor = _top_level_field_anchor(lines)

    new_line = f"{fix.name}: {fix.value}"
    if anchor is None:
        return _Edit(start=0, end=0, replacement=new_line + "\n")

    line = lines[anchor]
    if line.end == len(text) and not text.endswith("\n"):
        return _Edit(start=line.end, end=line.end, replacement="\n" + new_line)
    return _Edit(start=line.end, end=line.end, replacement=new_line + "\n")


def _top_level_field_anchor(lines: list[_Line]) -> int | None:
    stop = _top_level_end(lines)
    fields = [index for index in range(stop) if lines[index].kind is LineKind.KEY_VALUE]
    if fields:
        return fields[-1]
    return _find_index(lines, 0, stop, {LineKind.TYPE_OPEN})


def _entry_field_anchor(
    lines: list[_Line], section: str, entry: str, occurrence: int
) -> int | None:
    found = _find_entry(lines, section, entry, occurrence)
    if found is None:
        return None
    header, boundary = found

    anchor = header
    for index in range(header + 1, boundary):
        line = lines[index]
        if line.kind is LineKind.LIST_ITEM:
            break
        if line.kind is not LineKind.KEY_VALUE:
            continue
        # An empty key directly labelling a bullet list (e.g. `BULLETS:`)
        # stays attached to its list.
        if not line.classified.value and _next_content_is_list(lines, index + 1, boundary):
            break
        anchor = index
    return anchor


def _next_content_is_list(lines: list[_Line], start: int, stop: int) -> bool:
    for index in range(start, stop):
        kind = lines[index].kind
        if kind is LineKind.SKIP:
            continue
        return kind is LineKind.LIST_ITEM
    return False


def _replace_value(lines: list[_Line], fix: ReplaceEnumValue) -> _Edit | None:
    if fix.entry is not None:
        found = _find_entry(lines, fix.section or "", fix.entry, fix.occurrence)
        if found is None:
            return None
        scope = range(found[0] + 1, found[1])
    else:
        scope = range(0, _top_level_end(lines))

    target: _Line | None = None
    for index in scope:
        line = lines[index]
        if line.kind is LineKind.KEY_VALUE and line.classified.name == fix.field:
            target = line
    if target is None:
        return None

    content = target.content
    value_offset = content.index(":") + 1
    after = content[value_offset:]
    body = after[: inline_comment_start(after)]

    if not body.strip():
        start = target.start + value_offset
        return _Edit(start=start, end=start + len(body), replacement=" " + fix.value)

    leading = len(body) - len(body.lstrip())
    start = target.start + value_offset + leading
    end = target.start + value_offset + len(body.rstrip())
    return _Edit(start=start, end=end, replacement=fix.value)


def _insert_type_tag(lines: list[_Line], fix: InsertTypeTag) -> _Edit | None:
    if _find_index(lines, 0, len(lines), {LineKind.TYPE_OPEN}) is not None:
        return None
    return _Edit(start=0, end=0, replacement=f"<{fix.tag}>\n")


def _replace_type_tag(lines: list[_Line], fix: ReplaceTypeTag) -> list[_Edit] | None:
    opening = _find_index(lines, 0, len(lines), {LineKind.TYPE_OPEN})
    if opening is None or lines[opening].classified.name != fix.current:
        return None

    edits = [_name_edit(lines[opening], "<", fix.current, fix.tag)]
    for index in range(opening + 1, len(lines)):
        line = lines[index]
        if line.kind is LineKind.TYPE_CLOSE and line.classified.name == fix.current:
            edits.append(_name_edit(line, "</", fix.current, fix.tag))
            break
    return edits


def _rename_field(lines: list[_Line], fix: RenameField) -> _Edit | None:
    target: _Line | None = None
    for index in range(_top_level_end(lines)):
        line = lines[index]
        if line.kind is LineKind.KEY_VALUE and line.classified.name == fix.name:
            target = line
    if target is None:
        return None
    start = target.start + len(target.content) - len(target.content.lstrip())
    return _Edit(start=start, end=start + len(fix.name), replacement=fix.new_name)


def _rename_section(lines: list[_Line], fix: RenameSection) -> _Edit | None:
    target: _Line | None = None
    for line in lines:
        if line.kind in {LineKind.SECTION_HEADER, LineKind.UNRECOGNIZED}:
            if header_label(line.content) == fix.name:
                target = line
    if target is None:
        return None
    return _name_edit(target, "#", fix.name, fix.new_name)


def _rename_entry_id(lines: list[_Line], fix: RenameEntryId) -> _Edit | None:
    found = _find_entry(lines, fix.section, fix.entry, fix.occurrence)
    if found is None:
        return None
    return _name_edit(lines[found[0]], "##", fix.entry, fix.new_id)


def _name_edit(line: _Line, marker: str, name: str, replacement: str) -> _Edit:
    """Replace the first `name` after `marker` on a line."""

    offset = line.content.index(name, line.content.index(marker) + len(marker))
    start = line.start + offset
    return _Edit(start=start, end=start + len(name), replacement=replacement)
