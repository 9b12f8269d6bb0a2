"""
Customer data validation.

This module implements the gate in front of the calculation engine. It
evaluates a defaulted survey record against the framework's range and format
rules, refusing calculation when a blocking error is found and attaching
non-blocking warnings otherwise.
"""

from typing import Any, List, Optional, Tuple

from loguru import logger

from potions.constants import (
    AGE_LIMITS,
    DAILY_WATER_INTAKE_LIMITS,
    LEGACY_INTAKE_VALUES,
    NUMERIC_SERVING_WARNING_THRESHOLD,
    SUPPLEMENT_MAX,
    WEIGHT_LIMITS,
)
from potions.intake import is_legacy_format, parse_serving_count
from potions.schemas import (
    BiologicalSex,
    Electrolyte,
    SurveyRecord,
    ValidationResult,
    intake_field_label,
    supplement_field_label,
)


def validate_numeric_serving(value: str) -> Tuple[bool, List[str]]:
    """
    Validate a numeric serving count.

    Returns:
        Tuple of (is_valid, warnings)
    """
    servings = parse_serving_count(value)
    if servings is None:
        return False, []

    warnings = []
    if servings > NUMERIC_SERVING_WARNING_THRESHOLD:
        warnings.append(f"Serving value of {servings:g} seems unusually high")
    return True, warnings


def validate_intake_format(value: Optional[Any], field_name: str) -> ValidationResult:
    """
    Validate one intake field in either format.

    Missing values are valid (the default applies).

    Args:
        value: The intake value
        field_name: Survey-facing field name used in messages

    Returns:
        ValidationResult for this field alone
    """
    if value is None or value == "":
        return ValidationResult.from_messages([])

    if is_legacy_format(value):
        return ValidationResult.from_messages([])

    is_valid, warnings = validate_numeric_serving(value if isinstance(value, str) else str(value))
    if is_valid:
        return ValidationResult.from_messages([], [f"{field_name}: {w}" for w in warnings])

    legacy_values = ", ".join(LEGACY_INTAKE_VALUES)
    return ValidationResult.from_messages(
        [
            f"{field_name} must be either a legacy format ({legacy_values}) "
            "or a numeric serving value"
        ]
    )


class CustomerDataValidator:
    """
    Validates survey records before calculation.

    Every check runs even after one fails, so the caller sees the complete
    list of problems. Checks are field-local: no field's validity depends on
    another field's value. Errors are emitted in field declaration order:
    age, biological sex, weight, supplements, intake fields.
    """

    def validate(self, record: SurveyRecord) -> ValidationResult:
        """
        Validate a defaulted survey record.

        Args:
            record: The survey record (defaults already applied)

        Returns:
            ValidationResult with blocking errors and non-blocking warnings
        """
        errors: List[str] = []
        warnings: List[str] = []

        errors.extend(self._check_demographics(record))

        supplement_errors, supplement_warnings = self._check_supplements(record)
        errors.extend(supplement_errors)
        warnings.extend(supplement_warnings)

        intake_result = self.validate_intake_fields(record)
        errors.extend(intake_result.errors)
        warnings.extend(intake_result.warnings)

        warnings.extend(self._check_water_intake(record))

        result = ValidationResult.from_messages(errors, warnings)
        if not result.is_valid:
            logger.info(f"Survey record refused with {len(errors)} validation error(s)")
        elif warnings:
            logger.debug(f"Survey record accepted with {len(warnings)} warning(s)")
        return result

    def validate_intake_fields(self, record: SurveyRecord) -> ValidationResult:
        """Validate the four intake fields of a record."""
        result = ValidationResult.from_messages([])
        for electrolyte in Electrolyte:
            result = result.merge(
                validate_intake_format(
                    record.intake_value(electrolyte), intake_field_label(electrolyte)
                )
            )
        return result

    def _check_demographics(self, record: SurveyRecord) -> List[str]:
        errors = []

        if not AGE_LIMITS["min"] <= record.age <= AGE_LIMITS["max"]:
            errors.append(
                f"Age must be between {AGE_LIMITS['min']} and {AGE_LIMITS['max']}"
            )

        if record.biological_sex not in {sex.value for sex in BiologicalSex}:
            errors.append('Biological sex must be "male" or "female"')

        if not WEIGHT_LIMITS["min"] <= record.weight <= WEIGHT_LIMITS["max"]:
            errors.append(
                f"Weight must be between {WEIGHT_LIMITS['min']} and {WEIGHT_LIMITS['max']} lbs"
            )

        return errors

    def _check_supplements(self, record: SurveyRecord) -> Tuple[List[str], List[str]]:
        errors = []
        warnings = []

        for electrolyte in Electrolyte:
            name = supplement_field_label(electrolyte)
            value = record.supplement_mg(electrolyte)
            maximum = SUPPLEMENT_MAX[electrolyte.value]

            if value < 0:
                errors.append(f"{name} cannot be negative")
            elif value > maximum:
                warnings.append(f"{name} exceeds recommended maximum of {maximum}mg")

        return errors, warnings

    def _check_water_intake(self, record: SurveyRecord) -> List[str]:
        low = DAILY_WATER_INTAKE_LIMITS["min"]
        high = DAILY_WATER_INTAKE_LIMITS["max"]
        if not low <= record.daily_water_intake <= high:
            return [
                f"daily-water-intake of {record.daily_water_intake:g} fl oz is outside "
                f"the typical range of {low}-{high} fl oz"
            ]
        return []
