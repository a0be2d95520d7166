"""Registry of the schemas shipped with the engine."""

from __future__ import annotations

from functools import lru_cache

from core.markdowndb.models import ParsedDocument
from core.utils.errors import UnknownEntityKindError
from core.validation.models import Schema
from core.validation.schema_loader import builtin_schema_path, load_schema

_SUPPORTED_KINDS: tuple[str, ...] = ("job", "profile")
DEFAULT_KIND = "job"


def list_entity_kinds() -> list[str]:
    """Return supported entity kinds in stable order."""

    return sorted(_SUPPORTED_KINDS)


def get_schema(kind: str) -> Schema:
    """Return the shipped schema for an entity kind (case-insensitive)."""

    normalized = kind.strip().lower()
    if normalized not in _SUPPORTED_KINDS:
        raise UnknownEntityKindError(
            f"Unsupported entity kind: {kind}",
            kind=kind,
            supported=list_entity_kinds(),
        )
    return _load_builtin(normalized)


def schema_for_document(document: ParsedDocument, default: str = DEFAULT_KIND) -> Schema:
    """Pick a shipped schema from the declared type, falling back to default."""

    declared = (document.entity_type or "").lower()
    if declared in _SUPPORTED_KINDS:
        return _load_builtin(declared)
    return get_schema(default)


@lru_cache(maxsize=None)
def _load_builtin(kind: str) -> Schema:
    return load_schema(builtin_schema_path(kind))


def _assert_builtin_alignment() -> None:
    """Fail fast when a shipped schema declares a different entity type."""

    for kind in _SUPPORTED_KINDS:
        schema = _load_builtin(kind)
        if schema.entity_type.lower() != kind:
            raise RuntimeError(
                f"Schema file for {kind!r} declares entity_type {schema.entity_type!r}"
            )


_assert_builtin_alignment()
