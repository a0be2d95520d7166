"""Orchestration pipeline: parse -> validate, and fix -> re-validate."""

from __future__ import annotations

from dataclasses import dataclass

from core.cache.parse_cache import ParseCache
from core.fixes.engine import FixResult, apply_fix
from core.markdowndb.models import ParsedDocument
from core.markdowndb.parser import parse
from core.validation.models import Fix, Schema, ValidationReport
from core.validation.registry import schema_for_document
from core.validation.validator import validate


@dataclass(frozen=True)
class PipelineOutput:
    document: ParsedDocument
    report: ValidationReport
    schema: Schema


@dataclass(frozen=True)
class FixOutcome:
    result: FixResult
    output: PipelineOutput


def run_document(
    text: str,
    schema: Schema | None = None,
    *,
    cache: ParseCache | None = None,
    entity_id: str | None = None,
) -> PipelineOutput:
    """Parse and validate one document.

    The cache is consulted only when both `cache` and `entity_id` are given.
    Without an explicit schema, the shipped schema matching the declared
    type is used (job when the type is missing or unknown).
    """

    if cache is not None and entity_id is not None:
        document = cache.get_or_parse(entity_id, text)
    else:
        document = parse(text)

    effective_schema = schema if schema is not None else schema_for_document(document)
    report = validate(document, effective_schema)
    return PipelineOutput(document=document, report=report, schema=effective_schema)


def apply_fix_and_revalidate(
    text: str,
    fix: Fix,
    schema: Schema,
    *,
    cursor: int = 0,
    choice: str | None = None,
) -> FixOutcome:
    """Apply one fix, then re-parse and re-validate the patched text."""

    result = apply_fix(text, fix, cursor, choice=choice)
    return FixOutcome(result=result, output=run_document(result.text, schema))
