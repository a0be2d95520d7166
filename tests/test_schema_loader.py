from __future__ import annotations

from pathlib import Path

import pytest

from core.utils.errors import SchemaLoadError
from core.validation.models import EntryRule, SectionRule
from core.validation.schema_loader import builtin_schema_path, load_schema, load_schema_text


def test_load_builtin_job_schema() -> None:
    schema = load_schema(builtin_schema_path("job"))

    assert schema.entity_type == "JOB"
    assert schema.required_top_level_fields == ["TITLE", "COMPANY"]
    assert list(schema.sections) == [
        "REQUIRED_SKILLS",
        "DESCRIPTION",
        "PREFERRED_SKILLS",
        "ABOUT_COMPANY",
    ]
    assert schema.sections["REQUIRED_SKILLS"].required is True
    assert schema.enumerated_fields["REMOTE_TYPE"] == ["ONSITE", "REMOTE", "HYBRID"]


def test_load_builtin_profile_schema_has_entry_rules() -> None:
    schema = load_schema(builtin_schema_path("PROFILE"))

    assert schema.entity_type == "PROFILE"
    assert schema.sections["EDUCATION"].entry == EntryRule(required_fields=["DEGREE", "SCHOOL"])
    experience = schema.sections["EXPERIENCE"].entry
    assert experience is not None
    assert experience.enumerated_fields == {"TYPE": ["PROFESSIONAL", "PROJECT", "VOLUNTEER"]}


def test_known_fields_include_required_and_enumerated_fields() -> None:
    schema = load_schema_text(
        """
entity_type: JOB
required_top_level_fields: [TITLE]
known_fields: [ADDRESS]
enumerated_fields:
  REMOTE_TYPE: [ONSITE, REMOTE]
"""
    )

    assert schema.known_fields == ["ADDRESS", "TITLE", "REMOTE_TYPE"]


def test_section_names_are_normalized_and_null_rules_allowed() -> None:
    schema = load_schema_text(
        """
entity_type: JOB
sections:
  ABOUT COMPANY:
  REQUIRED  SKILLS:
    required: true
"""
    )

    assert schema.sections == {
        "ABOUT_COMPANY": SectionRule(),
        "REQUIRED_SKILLS": SectionRule(required=True),
    }


def test_load_schema_raises_for_missing_file(tmp_path: Path) -> None:
    with pytest.raises(SchemaLoadError, match="Schema file not found"):
        load_schema(tmp_path / "missing.yaml")


def test_load_schema_raises_for_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "schema.yaml"
    path.write_text("entity_type: [unclosed\n", encoding="utf-8")

    with pytest.raises(SchemaLoadError, match="Invalid YAML in schema file") as exc_info:
        load_schema(path)

    assert exc_info.value.path == path


def test_load_schema_raises_for_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "schema.yaml"
    path.write_text("- JOB\n- PROFILE\n", encoding="utf-8")

    with pytest.raises(SchemaLoadError, match="Schema must contain a mapping"):
        load_schema(path)


def test_load_schema_rejects_unknown_keys() -> None:
    with pytest.raises(ValueError, match="Invalid schema definition"):
        load_schema_text("entity_type: JOB\nforbidden_fields: [SALARY]\n")


def test_load_schema_requires_entity_type() -> None:
    with pytest.raises(SchemaLoadError, match="Invalid schema definition"):
        load_schema_text("required_top_level_fields: [TITLE]\n")
