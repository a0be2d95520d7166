"""Read-model produced by the MarkdownDB parser."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from core.markdowndb.lines import normalize_label


def _empty_fields() -> Mapping[str, str]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Entry:
    """A `## ENTRY_ID` block inside a section."""

    entry_id: str
    fields: Mapping[str, str] = field(default_factory=_empty_fields)
    bullets: tuple[str, ...] = ()


@dataclass(frozen=True)
class Section:
    """A named group of list items, with rare nested fields and entries."""

    items: tuple[str, ...] = ()
    fields: Mapping[str, str] | None = None
    entries: tuple[Entry, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True when the section has no items, no nested fields and no entries.

        A section holding only `KEY: value` lines or `## ENTRY` blocks counts as
        content, so profile sections made of entries are never empty.
        """

        return not self.items and not self.fields and not self.entries


class SectionMap(Mapping[str, Section]):
    """Read-only ordered section mapping with label-insensitive lookup.

    Keys are stored normalized; lookups normalize too, so both
    `REQUIRED SKILLS` and `REQUIRED_SKILLS` resolve to the same section.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Section] | None = None) -> None:
        self._data: dict[str, Section] = {}
        for label, section in (data or {}).items():
            self._data[normalize_label(label)] = section

    def __getitem__(self, key: str) -> Section:
        return self._data[normalize_label(key)]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and normalize_label(key) in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SectionMap):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"SectionMap({self._data!r})"


@dataclass(frozen=True)
class ParsedDocument:
    """Structured view of a raw document. Derived, never persisted."""

    entity_type: str | None = None
    top_level_fields: Mapping[str, str] = field(default_factory=_empty_fields)
    sections: SectionMap = field(default_factory=SectionMap)
    # Normalized label of every section header in order, repeats included.
    section_headers: tuple[str, ...] = ()
    # `# Heading` lines ignored because the label is not uppercase, as written.
    miscased_headers: tuple[str, ...] = ()

    def get_field(self, name: str) -> str | None:
        return self.top_level_fields.get(name)

    def section_items(self, label: str) -> tuple[str, ...]:
        section = self.sections.get(label)
        return section.items if section is not None else ()

    def to_dict(self) -> dict[str, object]:
        """JSON-ready representation for CLI/API output."""

        return {
            "entity_type": self.entity_type,
            "top_level_fields": dict(self.top_level_fields),
            "sections": {
                label: {
                    "items": list(section.items),
                    "fields": dict(section.fields) if section.fields is not None else None,
                    "entries": [
                        {
                            "entry_id": entry.entry_id,
                            "fields": dict(entry.fields),
                            "bullets": list(entry.bullets),
                        }
                        for entry in section.entries
                    ],
                }
                for label, section in self.sections.items()
            },
        }
