"""Human-readable validation summary rendering for CLI output."""

from __future__ import annotations

from collections import Counter

from core.validation.models import ReplaceEnumValueMulti, ValidationReport
from core.validation.validator import summarize_report


def render_validation_summary(
    report: ValidationReport,
    *,
    title: str,
    command_base: str,
) -> str:
    """Render one-screen validation summary with numbered fixes."""

    lines: list[str] = [summarize_report(report, title=title), ""]
    lines.append(f"result={'VALID' if report.valid else 'INVALID'}")

    kind_counter: Counter[str] = Counter(
        finding.kind for finding in [*report.errors, *report.warnings]
    )
    if kind_counter:
        top_items = sorted(kind_counter.items(), key=lambda item: (-item[1], item[0]))[:5]
        lines.append("issues: " + ", ".join(f"{kind}={count}" for kind, count in top_items))
    else:
        lines.append("issues: none")

    fixes = report.fixes
    if not fixes:
        lines.append("fixes: none")
        lines.append("next_cmd: none")
        return "\n".join(lines)

    lines.append(f"fixes: {len(fixes)}")
    for index, fix in enumerate(fixes):
        lines.append(f"  [{index}] {fix.describe()}")
    lines.append(f"next_cmd: {_build_next_cmd(report, command_base)}")
    return "\n".join(lines)


def _build_next_cmd(report: ValidationReport, command_base: str) -> str:
    first = report.fixes[0]
    command = f"{command_base} --index 0"
    if isinstance(first, ReplaceEnumValueMulti):
        command += f" --choice {first.allowed_values[0]}"
    return command
