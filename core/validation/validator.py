"""Schema-driven validator for parsed MarkdownDB documents."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Mapping

from core.markdowndb.models import Entry, ParsedDocument, Section
from core.validation.models import (
    DeleteSection,
    EntryRule,
    Finding,
    InsertField,
    InsertTypeTag,
    RenameEntryId,
    RenameField,
    RenameSection,
    ReplaceEnumValueMulti,
    ReplaceTypeTag,
    Schema,
    ValidationReport,
)

_ENTRY_PREFIX_RE = re.compile(r"([A-Z]+_)")
_SECTION_ENTRY_PREFIXES = {"EDUCATION": "EDU_", "EXPERIENCE": "EXP_"}
_DEFAULT_ENTRY_PREFIX = "ENTRY_"


def validate(document: ParsedDocument, schema: Schema) -> ValidationReport:
    """Validate a parsed document against a schema.

    Notes:
    - Pure function: no I/O, no memory of earlier calls.
    - Unknown fields and sections are reported as info only.
    - Enum membership is an exact, case-sensitive match; empty values are
      not checked.
    - Entry-scoped fixes carry the entry's occurrence, so a fix for the
      second `## EXP_1` never lands on the first.
    """

    findings: list[Finding] = []
    findings.extend(_check_type(document, schema))
    findings.extend(_check_required_fields(document, schema))
    findings.extend(_check_key_case(document))
    findings.extend(_check_enumerated_fields(document.top_level_fields, schema.enumerated_fields))

    custom_sections: list[str] = []
    findings.extend(_check_required_sections(document, schema))
    findings.extend(_check_duplicate_sections(document))
    findings.extend(_check_miscased_sections(document))
    entry_ids = _EntryIdAllocator(document)
    for label, section in document.sections.items():
        rule = schema.sections.get(label)
        if rule is None:
            custom_sections.append(label)
            continue
        if section.is_empty and not rule.required:
            findings.append(_empty_section_finding(label, required=False))
        if rule.entry is not None:
            findings.extend(_check_entries(label, section, rule.entry, entry_ids))

    custom_fields = [name for name in document.top_level_fields if name not in schema.known_fields]
    for name in custom_fields:
        findings.append(
            Finding(
                kind="custom_field",
                severity="info",
                message=f'Custom field "{name}"',
                field=name,
            )
        )
    for label in custom_sections:
        findings.append(
            Finding(
                kind="custom_section",
                severity="info",
                message=f'Custom section "{label}"',
                section=label,
            )
        )

    return ValidationReport.from_findings(
        findings, custom_fields=custom_fields, custom_sections=custom_sections
    )


def _check_type(document: ParsedDocument, schema: Schema) -> list[Finding]:
    if document.entity_type is None:
        return [
            Finding(
                kind="missing_type",
                severity="error",
                message=f"Missing <{schema.entity_type}> type declaration at the start",
                fix=InsertTypeTag(tag=schema.entity_type),
            )
        ]
    if document.entity_type != schema.entity_type:
        return [
            Finding(
                kind="unexpected_type",
                severity="warning",
                message=f"Expected <{schema.entity_type}> but found <{document.entity_type}>",
                value=document.entity_type,
                fix=ReplaceTypeTag(current=document.entity_type, tag=schema.entity_type),
            )
        ]
    return []


def _check_required_fields(document: ParsedDocument, schema: Schema) -> list[Finding]:
    return _missing_fields(document.top_level_fields, schema.required_top_level_fields)


def _check_key_case(document: ParsedDocument) -> list[Finding]:
    findings: list[Finding] = []
    for name in document.top_level_fields:
        upper = name.upper()
        if name == upper:
            continue
        findings.append(
            Finding(
                kind="lowercase_key",
                severity="warning",
                message=f'Field "{name}" should be uppercase',
                field=name,
                value=upper,
                fix=RenameField(name=name, new_name=upper),
            )
        )
    return findings


def _missing_fields(
    fields: Mapping[str, str],
    required: list[str],
    *,
    section: str | None = None,
    entry: str | None = None,
    occurrence: int = 0,
) -> list[Finding]:
    findings: list[Finding] = []
    for name in required:
        value = fields.get(name)
        if value is not None and value.strip():
            continue
        where = f" in {section}.{entry}" if entry is not None else ""
        fix = None
        # A present-but-blank line is left for the user to fill in.
        if value is None:
            fix = InsertField(name=name, section=section, entry=entry, occurrence=occurrence)
        findings.append(
            Finding(
                kind="missing_required_field",
                severity="error",
                message=f'Missing required field "{name}"{where}',
                field=name,
                section=section,
                entry=entry,
                fix=fix,
            )
        )
    return findings


def _check_enumerated_fields(
    fields: Mapping[str, str],
    enumerated: Mapping[str, list[str]],
    *,
    section: str | None = None,
    entry: str | None = None,
    occurrence: int = 0,
) -> list[Finding]:
    findings: list[Finding] = []
    for name, allowed in enumerated.items():
        value = fields.get(name)
        if not value or value in allowed:
            continue
        findings.append(
            Finding(
                kind="invalid_enum_value",
                severity="warning",
                message=(
                    f'Invalid value "{value}" for {name}. '
                    f"Allowed values: {', '.join(allowed)}"
                ),
                field=name,
                section=section,
                entry=entry,
                value=value,
                allowed_values=list(allowed),
                fix=ReplaceEnumValueMulti(
                    field=name,
                    allowed_values=list(allowed),
                    current_value=value,
                    section=section,
                    entry=entry,
                    occurrence=occurrence,
                ),
            )
        )
    return findings


def _check_required_sections(document: ParsedDocument, schema: Schema) -> list[Finding]:
    findings: list[Finding] = []
    for label, rule in schema.sections.items():
        if not rule.required:
            continue
        section = document.sections.get(label)
        if section is None:
            findings.append(
                Finding(
                    kind="missing_required_section",
                    severity="error",
                    message=f'Required section "{label}" is missing',
                    section=label,
                )
            )
        elif section.is_empty:
            findings.append(_empty_section_finding(label, required=True))
    return findings


def _check_duplicate_sections(document: ParsedDocument) -> list[Finding]:
    counts = Counter(document.section_headers)
    return [
        Finding(
            kind="duplicate_section",
            severity="warning",
            message=(
                f'Duplicate section "{label}" ({count} headers); '
                "only the last one is read, consider merging"
            ),
            section=label,
        )
        for label, count in counts.items()
        if count > 1
    ]


def _check_miscased_sections(document: ParsedDocument) -> list[Finding]:
    findings: list[Finding] = []
    for heading in dict.fromkeys(document.miscased_headers):
        upper = heading.upper()
        findings.append(
            Finding(
                kind="lowercase_section",
                severity="warning",
                message=f'Section "{heading}" should be uppercase; it is ignored until renamed',
                section=heading,
                value=upper,
                fix=RenameSection(name=heading, new_name=upper),
            )
        )
    return findings


def _empty_section_finding(label: str, *, required: bool) -> Finding:
    prefix = "Required section" if required else "Section"
    return Finding(
        kind="empty_section",
        severity="warning",
        message=f'{prefix} "{label}" is empty',
        section=label,
        fix=DeleteSection(name=label),
    )


class _EntryIdAllocator:
    """Hands out the next free `PREFIX_n` id across the whole document."""

    def __init__(self, document: ParsedDocument) -> None:
        self._used = {
            entry.entry_id for section in document.sections.values() for entry in section.entries
        }

    def next_id(self, section: str, entry_id: str) -> str:
        match = _ENTRY_PREFIX_RE.match(entry_id)
        if match:
            prefix = match.group(1)
        else:
            prefix = _SECTION_ENTRY_PREFIXES.get(section, _DEFAULT_ENTRY_PREFIX)
        numbers = [
            int(used[len(prefix) :])
            for used in self._used
            if used.startswith(prefix) and used[len(prefix) :].isdigit()
        ]
        new_id = f"{prefix}{max(numbers, default=0) + 1}"
        self._used.add(new_id)
        return new_id


def _check_entries(
    label: str, section: Section, rule: EntryRule, entry_ids: _EntryIdAllocator
) -> list[Finding]:
    findings: list[Finding] = []
    seen: Counter[str] = Counter()
    for entry in section.entries:
        occurrence = seen[entry.entry_id]
        seen[entry.entry_id] += 1
        if occurrence:
            findings.append(
                Finding(
                    kind="duplicate_entry_id",
                    severity="warning",
                    message=f'Duplicate entry ID "{entry.entry_id}" in {label}',
                    section=label,
                    entry=entry.entry_id,
                    fix=RenameEntryId(
                        section=label,
                        entry=entry.entry_id,
                        occurrence=occurrence,
                        new_id=entry_ids.next_id(label, entry.entry_id),
                    ),
                )
            )
        findings.extend(_check_entry(label, entry, rule, occurrence))
    return findings


def _check_entry(label: str, entry: Entry, rule: EntryRule, occurrence: int) -> list[Finding]:
    findings = _missing_fields(
        entry.fields,
        rule.required_fields,
        section=label,
        entry=entry.entry_id,
        occurrence=occurrence,
    )
    findings.extend(
        _check_enumerated_fields(
            entry.fields,
            rule.enumerated_fields,
            section=label,
            entry=entry.entry_id,
            occurrence=occurrence,
        )
    )
    return findings


def summarize_report(report: ValidationReport, *, title: str = "Document") -> str:
    """Human-readable multi-line summary of a validation report."""

    parts: list[str] = []
    if report.valid:
        parts.append(f"{title} is valid!")
    else:
        parts.append(f"{title} has errors that should be fixed.")

    for heading, findings in (
        ("Errors", report.errors),
        ("Warnings", report.warnings),
        ("Info", report.info),
    ):
        if not findings:
            continue
        parts.append("")
        parts.append(f"{heading} ({len(findings)}):")
        parts.extend(f"  - {finding.message}" for finding in findings)

    return "\n".join(parts)
