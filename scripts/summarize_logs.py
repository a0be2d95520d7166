#!/usr/bin/env python3
"""Summarize markdowndb API JSON line logs for ops/CI usage."""

from __future__ import annotations

import argparse
import json
import math
from collections import Counter, defaultdict
from pathlib import Path
from typing import Any

_TEXT_KEYS = (
    "lines_total",
    "parse_errors",
    "event_counts",
    "endpoint_counts",
    "error_code_counts",
    "http_status_counts",
    "invalid_documents",
    "fixes_not_applied",
    "total_ms_p50",
    "total_ms_p95",
    "endpoint_total_ms_p95",
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Summarize markdowndb API event logs.")
    parser.add_argument("files", nargs="+", type=Path, help="JSONL log files to read.")
    parser.add_argument("--json", action="store_true", help="Print the summary as JSON.")
    return parser


def _percentile(values: list[int], p: float) -> int | None:
    """Nearest-rank percentile; None for no samples."""

    if not values:
        return None
    ranked = sorted(values)
    rank = math.ceil(p / 100 * len(ranked))
    return ranked[min(len(ranked), max(rank, 1)) - 1]


def _iter_events(path: Path, counters: Counter[str]) -> list[dict[str, Any]]:
    try:
        raw_lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError):
        counters["parse_errors"] += 1
        return []

    events: list[dict[str, Any]] = []
    for raw_line in raw_lines:
        counters["lines_total"] += 1
        text = raw_line.strip()
        if not text:
            continue
        try:
            event = json.loads(text)
        except json.JSONDecodeError:
            counters["parse_errors"] += 1
            continue
        if isinstance(event, dict):
            events.append(event)
        else:
            counters["parse_errors"] += 1
    return events


def summarize_log_files(paths: list[Path]) -> dict[str, Any]:
    counters: Counter[str] = Counter()
    events_by_name: Counter[str] = Counter()
    done_by_endpoint: Counter[str] = Counter()
    error_codes: Counter[str] = Counter()
    http_statuses: Counter[str] = Counter()
    durations: list[int] = []
    durations_by_endpoint: defaultdict[str, list[int]] = defaultdict(list)

    for path in paths:
        for event in _iter_events(path, counters):
            name = event.get("event")
            endpoint = event.get("endpoint")
            if isinstance(name, str):
                events_by_name[name] += 1
            if name == "done" and isinstance(endpoint, str):
                done_by_endpoint[endpoint] += 1
            if isinstance(event.get("error_code"), str):
                error_codes[event["error_code"]] += 1
            if "status_code" in event:
                http_statuses[str(event["status_code"])] += 1
            if event.get("valid") is False:
                counters["invalid_documents"] += 1
            if event.get("applied") is False:
                counters["fixes_not_applied"] += 1

            elapsed = event.get("total_ms")
            if isinstance(elapsed, int | float) and not isinstance(elapsed, bool):
                durations.append(int(elapsed))
                if isinstance(endpoint, str):
                    durations_by_endpoint[endpoint].append(int(elapsed))

    return {
        "files": [str(path) for path in paths],
        "lines_total": counters["lines_total"],
        "parse_errors": counters["parse_errors"],
        "event_counts": dict(sorted(events_by_name.items())),
        "endpoint_counts": dict(sorted(done_by_endpoint.items())),
        "error_code_counts": dict(sorted(error_codes.items())),
        "http_status_counts": dict(sorted(http_statuses.items())),
        "invalid_documents": counters["invalid_documents"],
        "fixes_not_applied": counters["fixes_not_applied"],
        "total_ms_p50": _percentile(durations, 50),
        "total_ms_p95": _percentile(durations, 95),
        "endpoint_total_ms_p95": {
            endpoint: _percentile(values, 95)
            for endpoint, values in sorted(durations_by_endpoint.items())
        },
    }


def main() -> None:
    args = _build_parser().parse_args()
    summary = summarize_log_files([path.expanduser() for path in args.files])

    if args.json:
        print(json.dumps(summary, ensure_ascii=False, indent=2, sort_keys=True))
        return

    print("MarkdownDB Log Summary")
    print(f"files={len(summary['files'])}")
    for key in _TEXT_KEYS:
        print(f"{key}={summary[key]}")


if __name__ == "__main__":
    main()
