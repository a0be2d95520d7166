from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path


def test_log_summarizer_json_output(tmp_path: Path) -> None:
    log_path = tmp_path / "app.log"
    log_path.write_text(
        "\n".join(
            [
                json.dumps({"event": "start", "endpoint": "validate", "request_id": "a"}),
                json.dumps(
                    {
                        "event": "done",
                        "endpoint": "validate",
                        "request_id": "a",
                        "valid": False,
                        "total_ms": 12,
                    }
                ),
                json.dumps(
                    {
                        "event": "done",
                        "endpoint": "fix",
                        "request_id": "b",
                        "applied": False,
                        "total_ms": 40,
                    }
                ),
                json.dumps(
                    {
                        "event": "error",
                        "request_id": "c",
                        "error_code": "TEXT_TOO_LARGE",
                        "status_code": 413,
                        "failure_stage": "validate_inputs",
                    }
                ),
                "not-json-line",
            ]
        ),
        encoding="utf-8",
    )

    result = subprocess.run(
        [sys.executable, "scripts/summarize_logs.py", "--json", str(log_path)],
        cwd=Path(__file__).resolve().parents[1],
        check=False,
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0

    payload = json.loads(result.stdout)
    assert payload["parse_errors"] == 1
    assert payload["event_counts"] == {"done": 2, "error": 1, "start": 1}
    assert payload["endpoint_counts"] == {"fix": 1, "validate": 1}
    assert payload["error_code_counts"] == {"TEXT_TOO_LARGE": 1}
    assert payload["http_status_counts"] == {"413": 1}
    assert payload["invalid_documents"] == 1
    assert payload["fixes_not_applied"] == 1
    assert payload["total_ms_p95"] == 40
    assert payload["endpoint_total_ms_p95"] == {"fix": 40, "validate": 12}


def test_log_summarizer_human_output(tmp_path: Path) -> None:
    log_path = tmp_path / "app.log"
    log_path.write_text(json.dumps({"event": "done", "total_ms": 5}) + "\n", encoding="utf-8")

    result = subprocess.run(
        [sys.executable, "scripts/summarize_logs.py", str(log_path)],
        cwd=Path(__file__).resolve().parents[1],
        check=False,
        capture_output=True,
        text=True,
    )

    assert result.returncode == 0
    assert result.stdout.splitlines()[0] == "MarkdownDB Log Summary"
    assert "total_ms_p50=5" in result.stdout
