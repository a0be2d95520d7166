"""CLI I/O helpers for document reads and atomic output writing."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import IO, Any

import yaml  # type: ignore[import-untyped]


def read_document_text(path: Path) -> str:
    """Read a document verbatim; line endings are not translated."""

    with path.open("r", encoding="utf-8", newline="") as handle:
        return handle.read()


def write_text_atomic(path: Path, text: str) -> None:
    """Write document text atomically, keeping its line endings."""

    _atomic_write(path, lambda handle: handle.write(text))


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    """Write a JSON artifact atomically."""

    _atomic_write(
        path,
        lambda handle: json.dump(
            payload, handle, ensure_ascii=False, sort_keys=True, separators=(",", ":")
        ),
    )


def write_yaml_atomic(path: Path, payload: dict[str, Any]) -> None:
    """Write a YAML artifact atomically."""

    _atomic_write(
        path,
        lambda handle: yaml.safe_dump(payload, handle, allow_unicode=True, sort_keys=False),
    )


def _atomic_write(path: Path, write: Callable[[IO[str]], object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        with tmp_path.open("w", encoding="utf-8", newline="") as handle:
            write(handle)
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise
