"""Custom exceptions for core logic.

Parsing and validation never raise; these cover configuration and caller
mistakes only.
"""

from __future__ import annotations

from pathlib import Path


class SchemaLoadError(ValueError):
    """Raised when a schema file is missing, unreadable, or malformed."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class UnknownEntityKindError(ValueError):
    """Raised when no shipped schema matches the requested entity kind."""

    def __init__(self, message: str, *, kind: str, supported: list[str]) -> None:
        super().__init__(message)
        self.kind = kind
        self.supported = supported


class FixChoiceError(ValueError):
    """Raised when a multi-value fix is applied without a valid choice."""

    def __init__(self, message: str, *, field: str, allowed_values: list[str]) -> None:
        super().__init__(message)
        self.field = field
        self.allowed_values = allowed_values
