"""Typer CLI entrypoint for MarkdownDB."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any, Literal, cast

import typer

from apps.cli.format_human import render_validation_summary
from apps.cli.io import read_document_text, write_json_atomic, write_text_atomic, write_yaml_atomic
from core.markdowndb.parser import parse
from core.orchestrator.pipeline import apply_fix_and_revalidate, run_document
from core.utils.errors import FixChoiceError, SchemaLoadError, UnknownEntityKindError
from core.validation.models import Schema
from core.validation.registry import get_schema, list_entity_kinds
from core.validation.schema_loader import load_schema

app = typer.Typer(help="MarkdownDB document CLI", rich_markup_mode=None)
ReportMode = Literal["human", "json", "both"]

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID = 2
EXIT_NOT_APPLIED = 3


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep subcommands explicit."""


@app.command("parse")
def parse_command(
    file: Annotated[Path, typer.Argument(help="MarkdownDB document to parse.")],
    out: Annotated[
        Path | None, typer.Option("--out", help="Write the parsed JSON here instead of stdout.")
    ] = None,
) -> None:
    """Parse a document and print its structure as JSON."""

    text = _read_or_exit(file)
    payload = parse(text).to_dict()
    if out is not None:
        write_json_atomic(out, payload)
        typer.echo(f"INFO: wrote parsed document to {out}")
    else:
        typer.echo(_dump_json(payload))
    raise typer.Exit(code=EXIT_OK)


@app.command("validate")
def validate_command(
    file: Annotated[Path, typer.Argument(help="MarkdownDB document to validate.")],
    kind: Annotated[
        str | None, typer.Option("--kind", help="Shipped schema to use (job, profile).")
    ] = None,
    schema: Annotated[
        Path | None, typer.Option("--schema", help="Schema YAML file; overrides --kind.")
    ] = None,
    report: Annotated[str, typer.Option("--report")] = "human",
    out: Annotated[
        Path | None, typer.Option("--out", help="Write the JSON report to this path.")
    ] = None,
) -> None:
    """Validate a document. Exit 0 when valid, 2 when errors were found."""

    normalized_report = report.lower().strip()
    if normalized_report not in {"human", "json", "both"}:
        typer.echo("ERROR: --report must be one of: human, json, both.")
        raise typer.Exit(code=EXIT_ERROR)
    report_mode = cast(ReportMode, normalized_report)

    text = _read_or_exit(file)
    explicit_schema = _resolve_schema_or_exit(kind, schema)
    output = run_document(text, explicit_schema)
    payload = output.report.model_dump(mode="json")

    if report_mode in {"human", "both"}:
        typer.echo(
            render_validation_summary(
                output.report,
                title=file.name,
                command_base=_fix_command_base(file, kind, schema),
            )
        )
    if out is not None:
        write_json_atomic(out, payload)
        typer.echo(f"INFO: wrote report to {out}")
    elif report_mode in {"json", "both"}:
        typer.echo(_dump_json(payload))

    raise typer.Exit(code=EXIT_OK if output.report.valid else EXIT_INVALID)


@app.command("fix")
def fix_command(
    file: Annotated[Path, typer.Argument(help="MarkdownDB document to patch.")],
    index: Annotated[int, typer.Option("--index", help="Fix number from `validate` output.")],
    choice: Annotated[
        str | None, typer.Option("--choice", help="Value for fixes offering several choices.")
    ] = None,
    cursor: Annotated[int, typer.Option("--cursor", help="Cursor offset to remap.")] = 0,
    kind: Annotated[str | None, typer.Option("--kind")] = None,
    schema: Annotated[Path | None, typer.Option("--schema")] = None,
    out: Annotated[
        Path | None, typer.Option("--out", help="Write patched text here instead of in place.")
    ] = None,
) -> None:
    """Apply one fix from the validation report. Exit 3 when nothing changed."""

    text = _read_or_exit(file)
    explicit_schema = _resolve_schema_or_exit(kind, schema)
    output = run_document(text, explicit_schema)

    fixes = output.report.fixes
    if index < 0 or index >= len(fixes):
        typer.echo(f"ERROR: no fix at index {index} ({len(fixes)} available)")
        raise typer.Exit(code=EXIT_NOT_APPLIED)
    fix = fixes[index]

    try:
        outcome = apply_fix_and_revalidate(
            text, fix, output.schema, cursor=cursor, choice=choice
        )
    except FixChoiceError as exc:
        typer.echo(f"ERROR: {exc}")
        typer.echo(f"INFO: allowed values: {', '.join(exc.allowed_values)}")
        raise typer.Exit(code=EXIT_ERROR) from None

    if not outcome.result.applied:
        typer.echo(f"INFO: fix no longer applies: {fix.describe()}")
        raise typer.Exit(code=EXIT_NOT_APPLIED)

    target = out if out is not None else file
    try:
        write_text_atomic(target, outcome.result.text)
    except OSError as exc:
        typer.echo(f"ERROR: write failed: {exc}")
        raise typer.Exit(code=EXIT_ERROR) from None

    remaining = outcome.output.report
    typer.echo(f"INFO: applied: {fix.describe()}")
    typer.echo(f"INFO: wrote {target}")
    typer.echo(f"INFO: cursor={outcome.result.cursor}")
    typer.echo(
        f"INFO: remaining errors={len(remaining.errors)} warnings={len(remaining.warnings)}"
    )
    raise typer.Exit(code=EXIT_OK)


@app.command("kinds")
def kinds_command() -> None:
    """List the shipped entity kinds."""

    for kind in list_entity_kinds():
        typer.echo(kind)


@app.command("export-schema")
def export_schema_command(
    kind: Annotated[str, typer.Argument(help="Shipped schema to export.")],
    out: Annotated[Path, typer.Option("--out", help="Destination YAML path.")],
) -> None:
    """Write a shipped schema to YAML as a starting point for --schema."""

    try:
        schema = get_schema(kind)
    except UnknownEntityKindError as exc:
        typer.echo(f"ERROR: {exc} (supported: {', '.join(exc.supported)})")
        raise typer.Exit(code=EXIT_ERROR) from None

    write_yaml_atomic(out, _schema_payload(schema))
    typer.echo(f"INFO: wrote {kind.lower()} schema to {out}")


def _read_or_exit(path: Path) -> str:
    try:
        return read_document_text(path)
    except (OSError, UnicodeDecodeError) as exc:
        typer.echo(f"ERROR: cannot read {path}: {exc}")
        raise typer.Exit(code=EXIT_ERROR) from None


def _resolve_schema_or_exit(kind: str | None, schema_path: Path | None) -> Schema | None:
    try:
        if schema_path is not None:
            return load_schema(schema_path)
        if kind is not None:
            return get_schema(kind)
    except SchemaLoadError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_ERROR) from None
    except UnknownEntityKindError as exc:
        typer.echo(f"ERROR: {exc} (supported: {', '.join(exc.supported)})")
        raise typer.Exit(code=EXIT_ERROR) from None
    return None


def _fix_command_base(file: Path, kind: str | None, schema: Path | None) -> str:
    parts = ["markdowndb", "fix", str(file)]
    if schema is not None:
        parts.extend(["--schema", str(schema)])
    elif kind is not None:
        parts.extend(["--kind", kind])
    return " ".join(parts)


def _schema_payload(schema: Schema) -> dict[str, Any]:
    return schema.model_dump(mode="json", exclude_defaults=True)


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True)


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
