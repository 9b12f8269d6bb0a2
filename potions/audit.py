"""
Persisted representation of a calculated survey.

Pure mappings from a SurveyRecord to what a storage collaborator writes: the
verbatim survey document, the indexed scalar summary and one conversion
record per supplied intake field. Nothing here talks to a database.
"""

import json
from typing import Any, Dict, List, Optional

from potions.intake import IntakeNormalizer
from potions.schemas import (
    Electrolyte,
    IntakeConversionRecord,
    SurveyRecord,
    SurveySummary,
    UseCase,
    ValidationResult,
)


def survey_field_key(field_name: str) -> str:
    """Survey document key for a record attribute, e.g. 'biological-sex'."""
    return field_name.replace("_", "-")


def survey_to_document(record: SurveyRecord) -> Dict[str, Any]:
    """
    The survey as stored: all 26 fields under their hyphenated survey keys.

    The document parses back into an equal SurveyRecord.
    """
    data = record.model_dump(mode="json")
    return {survey_field_key(name): value for name, value in data.items()}


def summarize_survey(record: SurveyRecord, use_case: UseCase) -> SurveySummary:
    """Scalar columns indexed next to the survey document."""
    return SurveySummary(
        age=record.age,
        biological_sex=record.biological_sex,
        weight=record.weight,
        activity_level=record.activity_level,
        sweat_level=record.sweat_level,
        detected_use_case=use_case,
    )


def build_intake_conversion_records(
    record: SurveyRecord, normalizer: Optional[IntakeNormalizer] = None
) -> List[IntakeConversionRecord]:
    """
    One audit record per non-empty intake field.

    Args:
        record: Survey record
        normalizer: Normalizer to convert with (cache-less if omitted)

    Returns:
        Records in electrolyte order, each with its conversion source
    """
    normalizer = normalizer or IntakeNormalizer()
    records = []
    for electrolyte in Electrolyte:
        value = record.intake_value(electrolyte)
        if not value:
            continue
        conversion = normalizer.convert(value, electrolyte)
        records.append(
            IntakeConversionRecord(
                electrolyte=electrolyte,
                original_value=value,
                original_format=conversion.format,
                converted_mg=conversion.mg,
                conversion_source=conversion.source,
            )
        )
    return records


def check_field_preservation(original: SurveyRecord, retrieved: SurveyRecord) -> ValidationResult:
    """Report every survey field whose value changed between save and load."""
    before = survey_to_document(original)
    after = survey_to_document(retrieved)

    errors = [
        f"Field '{key}' not preserved: {json.dumps(before[key])} -> {json.dumps(after.get(key))}"
        for key in before
        if before[key] != after.get(key)
    ]
    return ValidationResult.from_messages(errors)
