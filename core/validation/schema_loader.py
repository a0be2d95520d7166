"""Schema loading utilities for document validation."""

from __future__ import annotations

from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from core.utils.errors import SchemaLoadError
from core.validation.models import Schema

SCHEMA_DIR = Path(__file__).with_name("schemas")


def load_schema(path: Path) -> Schema:
    """Load and validate an entity schema from YAML."""

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SchemaLoadError(f"Schema file not found: {path}", path=path) from exc
    except yaml.YAMLError as exc:
        raise SchemaLoadError(f"Invalid YAML in schema file: {path}", path=path) from exc

    return schema_from_mapping(raw, source=str(path))


def load_schema_text(text: str, *, source: str = "<inline>") -> Schema:
    """Load a schema from YAML text (API uploads, tests)."""

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SchemaLoadError(f"Invalid YAML in schema: {source}") from exc

    return schema_from_mapping(raw, source=source)


def schema_from_mapping(raw: object, *, source: str) -> Schema:
    if not isinstance(raw, dict):
        raise SchemaLoadError(f"Schema must contain a mapping: {source}")

    try:
        return Schema.model_validate(raw)
    except ValidationError as exc:
        raise SchemaLoadError(f"Invalid schema definition: {source}") from exc


def builtin_schema_path(kind: str) -> Path:
    return SCHEMA_DIR / f"{kind.lower()}.yaml"
