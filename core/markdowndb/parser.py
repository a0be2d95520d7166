"""Single-pass parser from raw MarkdownDB text to a ParsedDocument.

Parsing is total: unknown syntax is ignored and malformed input degrades to
missing structure. Validation is where problems get reported.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType

from core.markdowndb.lines import (
    LineKind,
    classify_line,
    header_label,
    iter_line_spans,
    normalize_label,
)
from core.markdowndb.models import Entry, ParsedDocument, Section, SectionMap


@dataclass
class _EntryBuilder:
    entry_id: str
    fields: dict[str, str] = field(default_factory=dict)
    bullets: list[str] = field(default_factory=list)

    def build(self) -> Entry:
        return Entry(
            entry_id=self.entry_id,
            fields=MappingProxyType(dict(self.fields)),
            bullets=tuple(self.bullets),
        )


@dataclass
class _SectionBuilder:
    items: list[str] = field(default_factory=list)
    fields: dict[str, str] | None = None
    entries: list[_EntryBuilder] = field(default_factory=list)

    def build(self) -> Section:
        return Section(
            items=tuple(self.items),
            fields=MappingProxyType(dict(self.fields)) if self.fields is not None else None,
            entries=tuple(entry.build() for entry in self.entries),
        )


def parse(text: str | None) -> ParsedDocument:
    """Parse raw document text.

    Rules:
    - The first type-open tag sets entity_type; later ones are ignored.
    - A repeated section label starts over and replaces the earlier section.
    - List items before any section header are dropped.
    - Top-level keys: last occurrence wins.
    - `# Heading` lines with a non-uppercase label are not sections; they
      are recorded in miscased_headers so validation can offer a rename.
    """

    if not text:
        return ParsedDocument()

    entity_type: str | None = None
    top_level_fields: dict[str, str] = {}
    sections: dict[str, _SectionBuilder] = {}
    current_section: _SectionBuilder | None = None
    current_entry: _EntryBuilder | None = None
    section_headers: list[str] = []
    miscased_headers: list[str] = []

    for _start, _end, line in iter_line_spans(text):
        classified = classify_line(line)
        kind = classified.kind

        if kind is LineKind.UNRECOGNIZED:
            heading = header_label(line)
            if heading is not None:
                miscased_headers.append(heading)
        elif kind is LineKind.TYPE_OPEN:
            if entity_type is None:
                entity_type = classified.name
        elif kind is LineKind.SECTION_HEADER:
            label = normalize_label(classified.name or "")
            section_headers.append(label)
            current_section = _SectionBuilder()
            current_entry = None
            sections[label] = current_section
        elif kind is LineKind.ENTRY_HEADER:
            if current_section is not None:
                current_entry = _EntryBuilder(entry_id=classified.name or "")
                current_section.entries.append(current_entry)
        elif kind is LineKind.LIST_ITEM:
            item = classified.value or ""
            if current_entry is not None:
                current_entry.bullets.append(item)
            elif current_section is not None:
                current_section.items.append(item)
        elif kind is LineKind.KEY_VALUE:
            key = classified.name or ""
            value = classified.value or ""
            if current_entry is not None:
                current_entry.fields[key] = value
            elif current_section is not None:
                if current_section.fields is None:
                    current_section.fields = {}
                current_section.fields[key] = value
            else:
                top_level_fields[key] = value

    return ParsedDocument(
        entity_type=entity_type,
        top_level_fields=MappingProxyType(top_level_fields),
        sections=SectionMap({label: builder.build() for label, builder in sections.items()}),
        section_headers=tuple(section_headers),
        miscased_headers=tuple(miscased_headers),
    )
