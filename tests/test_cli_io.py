from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml  # type: ignore[import-untyped]

from apps.cli import io as cli_io
from apps.cli.io import read_document_text, write_json_atomic, write_text_atomic, write_yaml_atomic


def test_write_text_atomic_keeps_line_endings(tmp_path: Path) -> None:
    path = tmp_path / "job.mdb"

    write_text_atomic(path, "<JOB>\r\nTITLE: A\r\n")

    assert path.read_bytes() == b"<JOB>\r\nTITLE: A\r\n"
    assert read_document_text(path) == "<JOB>\r\nTITLE: A\r\n"
    assert list(tmp_path.glob("job.mdb.*.tmp")) == []


def test_write_json_atomic_creates_parent_dirs(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "report.json"

    write_json_atomic(path, {"valid": True, "title": "Ingénieur"})

    assert json.loads(path.read_text(encoding="utf-8")) == {"valid": True, "title": "Ingénieur"}
    assert path.read_text(encoding="utf-8") == '{"title":"Ingénieur","valid":true}'


def test_write_yaml_atomic_round_trips(tmp_path: Path) -> None:
    path = tmp_path / "schema.yaml"

    write_yaml_atomic(path, {"entity_type": "JOB", "required_top_level_fields": ["TITLE"]})

    assert yaml.safe_load(path.read_text(encoding="utf-8")) == {
        "entity_type": "JOB",
        "required_top_level_fields": ["TITLE"],
    }


def test_atomic_write_cleans_tmp_on_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "report.json"

    def broken_dump(*_: object, **__: object) -> None:
        raise RuntimeError("dump failed")

    monkeypatch.setattr(cli_io.json, "dump", broken_dump)

    with pytest.raises(RuntimeError, match="dump failed"):
        write_json_atomic(path, {"valid": True})

    assert not path.exists()
    assert list(tmp_path.glob("report.json.*.tmp")) == []


def test_existing_file_is_replaced_not_appended(tmp_path: Path) -> None:
    path = tmp_path / "job.mdb"
    path.write_text("old content that is longer\n", encoding="utf-8")

    write_text_atomic(path, "new\n")

    assert path.read_text(encoding="utf-8") == "new\n"
