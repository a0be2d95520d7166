from __future__ import annotations

from core.cache.parse_cache import ParseCache
from core.orchestrator.pipeline import apply_fix_and_revalidate, run_document
from core.validation.models import DeleteSection
from core.validation.registry import get_schema

REFERENCE_JOB = "<JOB>\nTITLE: Engineer\n# REQUIRED_SKILLS\n- Go\n</JOB>"


def test_run_document_picks_schema_from_declared_type() -> None:
    output = run_document("<PROFILE>\nNAME: Ada\n")

    assert output.schema.entity_type == "PROFILE"
    assert output.report.valid is True


def test_run_document_defaults_to_job_schema() -> None:
    output = run_document("TITLE: Engineer\n")

    assert output.schema.entity_type == "JOB"
    assert [finding.kind for finding in output.report.errors] == [
        "missing_type",
        "missing_required_field",
        "missing_required_section",
    ]


def test_run_document_explicit_schema_wins() -> None:
    output = run_document("<JOB>\nNAME: Ada\n", get_schema("profile"))

    assert output.schema.entity_type == "PROFILE"
    assert output.report.warnings[0].kind == "unexpected_type"


def test_run_document_uses_cache_only_with_entity_id() -> None:
    cache = ParseCache()

    run_document(REFERENCE_JOB, cache=cache)
    assert len(cache) == 0

    first = run_document(REFERENCE_JOB, cache=cache, entity_id="job-1")
    second = run_document(REFERENCE_JOB, cache=cache, entity_id="job-1")

    assert second.document is first.document
    assert cache.stats.hits == 1


def test_fix_loop_reaches_valid_document() -> None:
    text = REFERENCE_JOB
    output = run_document(text)
    assert output.report.valid is False

    fix = output.report.fixes[0].model_copy(update={"value": "Acme"})
    outcome = apply_fix_and_revalidate(text, fix, output.schema, cursor=len(text))

    assert outcome.result.applied is True
    assert outcome.output.report.valid is True
    assert outcome.output.document.get_field("COMPANY") == "Acme"
    assert outcome.result.cursor == len(outcome.result.text)


def test_fixing_every_warning_converges() -> None:
    text = (
        "<JOB>\nTITLE: Engineer\nCOMPANY: Acme\nREMOTE_TYPE: sometimes\n"
        "# REQUIRED SKILLS\n- Go\n# PERKS\n# DESCRIPTION\n</JOB>\n"
    )
    schema = get_schema("job")

    output = run_document(text, schema)
    assert [finding.kind for finding in output.report.warnings] == [
        "invalid_enum_value",
        "empty_section",
    ]

    enum_outcome = apply_fix_and_revalidate(text, output.report.fixes[0], schema, choice="ONSITE")
    delete_outcome = apply_fix_and_revalidate(
        enum_outcome.result.text, DeleteSection(name="DESCRIPTION"), schema
    )

    report = delete_outcome.output.report
    assert report.valid is True
    assert report.warnings == []
    assert report.custom_sections == ["PERKS"]
    assert delete_outcome.result.text.endswith("# PERKS\n</JOB>\n")
