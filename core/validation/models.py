"""Data models for schemas, findings, fixes, and validation reports."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.markdowndb.lines import normalize_label
from core.utils.errors import FixChoiceError

Severity = Literal["error", "warning", "info"]


class EntryRule(BaseModel):
    """Rules applied to every `## ENTRY` block of a section."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    required_fields: list[str] = Field(default_factory=list)
    enumerated_fields: dict[str, list[str]] = Field(default_factory=dict)


class SectionRule(BaseModel):
    """Per-section rule. All sections in scope are list sections."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    required: bool = False
    entry: EntryRule | None = None


class Schema(BaseModel):
    """Static validation rules for one entity kind.

    Rules:
    - The schema only asserts what must exist, never what must not.
    - Section names are normalized, so `ABOUT COMPANY` and `ABOUT_COMPANY`
      are the same section.
    - known_fields always includes required and enumerated fields.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    entity_type: str
    required_top_level_fields: list[str] = Field(default_factory=list)
    known_fields: list[str] = Field(default_factory=list)
    sections: dict[str, SectionRule] = Field(default_factory=dict)
    enumerated_fields: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("sections", mode="before")
    @classmethod
    def _normalize_section_names(cls, value: object) -> object:
        if not isinstance(value, dict):
            return value
        return {
            normalize_label(str(name)): ({} if rule is None else rule)
            for name, rule in value.items()
        }

    @model_validator(mode="before")
    @classmethod
    def _include_rule_fields_in_known(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        known = list(data.get("known_fields") or [])
        rule_fields = [
            *(data.get("required_top_level_fields") or []),
            *(data.get("enumerated_fields") or {}),
        ]
        for name in rule_fields:
            if name not in known:
                known.append(name)
        return {**data, "known_fields": known}


class DeleteSection(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["delete_section"] = "delete_section"
    name: str

    def describe(self) -> str:
        return f'Delete empty section "{self.name}"'


class InsertField(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["insert_field"] = "insert_field"
    name: str
    value: str = ""
    section: str | None = None
    entry: str | None = None
    occurrence: int = Field(default=0, ge=0)

    def describe(self) -> str:
        if self.entry is not None:
            return f"Insert {self.name} field in {self.section}.{self.entry}"
        return f"Insert {self.name} field"


class ReplaceEnumValue(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["replace_enum_value"] = "replace_enum_value"
    field: str
    value: str
    section: str | None = None
    entry: str | None = None
    occurrence: int = Field(default=0, ge=0)

    def describe(self) -> str:
        return f"Set {self.field} to {self.value}"


class ReplaceEnumValueMulti(BaseModel):
    """Enum replacement where the caller picks one of allowed_values."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["replace_enum_value_multi"] = "replace_enum_value_multi"
    field: str
    allowed_values: list[str]
    current_value: str | None = None
    section: str | None = None
    entry: str | None = None
    occurrence: int = Field(default=0, ge=0)

    def choose(self, value: str) -> ReplaceEnumValue:
        """Resolve to a single replacement. Raises FixChoiceError for unknown values."""

        if value not in self.allowed_values:
            allowed = ", ".join(self.allowed_values)
            raise FixChoiceError(
                f"{value!r} is not an allowed value for {self.field} ({allowed})",
                field=self.field,
                allowed_values=list(self.allowed_values),
            )
        return ReplaceEnumValue(
            field=self.field,
            value=value,
            section=self.section,
            entry=self.entry,
            occurrence=self.occurrence,
        )

    def describe(self) -> str:
        return f"Replace {self.field} with one of: {', '.join(self.allowed_values)}"


class InsertTypeTag(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["insert_type_tag"] = "insert_type_tag"
    tag: str

    def describe(self) -> str:
        return f"Insert <{self.tag}> declaration"


class ReplaceTypeTag(BaseModel):
    """Rename the declared type; the matching close tag follows along."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["replace_type"] = "replace_type"
    current: str
    tag: str

    def describe(self) -> str:
        return f"Replace <{self.current}> with <{self.tag}>"


class RenameField(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["rename_field"] = "rename_field"
    name: str
    new_name: str

    def describe(self) -> str:
        return f'Rename "{self.name}" to "{self.new_name}"'


class RenameSection(BaseModel):
    """Rewrite a section heading label; `name` is the label as written."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["rename_section"] = "rename_section"
    name: str
    new_name: str

    def describe(self) -> str:
        return f'Rename section "{self.name}" to "{self.new_name}"'


class RenameEntryId(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["rename_entry_id"] = "rename_entry_id"
    section: str
    entry: str
    new_id: str
    occurrence: int = Field(default=0, ge=0)

    def describe(self) -> str:
        return f'Rename duplicate entry ID "{self.entry}" to "{self.new_id}"'


Fix = Annotated[
    Union[
        DeleteSection,
        InsertField,
        ReplaceEnumValue,
        ReplaceEnumValueMulti,
        InsertTypeTag,
        ReplaceTypeTag,
        RenameField,
        RenameSection,
        RenameEntryId,
    ],
    Field(discriminator="type"),
]


class Finding(BaseModel):
    """Single validation observation."""

    model_config = ConfigDict(extra="forbid")

    kind: str
    severity: Severity
    message: str
    field: str | None = None
    section: str | None = None
    entry: str | None = None
    value: str | None = None
    allowed_values: list[str] | None = None
    fix: Fix | None = None


class ValidationReport(BaseModel):
    """Validation outcome.

    Rules:
    - valid == (no error findings)
    - warnings and info never affect valid
    """

    model_config = ConfigDict(extra="forbid")

    valid: bool
    errors: list[Finding] = Field(default_factory=list)
    warnings: list[Finding] = Field(default_factory=list)
    info: list[Finding] = Field(default_factory=list)
    custom_fields: list[str] = Field(default_factory=list)
    custom_sections: list[str] = Field(default_factory=list)

    @property
    def fixes(self) -> list[Fix]:
        return [
            finding.fix
            for finding in [*self.errors, *self.warnings, *self.info]
            if finding.fix is not None
        ]

    @classmethod
    def from_findings(
        cls,
        findings: list[Finding],
        *,
        custom_fields: list[str] | None = None,
        custom_sections: list[str] | None = None,
    ) -> ValidationReport:
        errors = [finding for finding in findings if finding.severity == "error"]
        return cls(
            valid=not errors,
            errors=errors,
            warnings=[finding for finding in findings if finding.severity == "warning"],
            info=[finding for finding in findings if finding.severity == "info"],
            custom_fields=list(custom_fields or []),
            custom_sections=list(custom_sections or []),
        )
