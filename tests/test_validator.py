"""
Tests for the CustomerDataValidator gate.

Test scenarios:
1. A valid record passes with no errors
2. Range boundaries are inclusive at both ends
3. Errors are itemized in field declaration order
4. Soft limits produce warnings that never block
"""

import json
from pathlib import Path

import pytest

from potions.schemas import SurveyRecord
from potions.validator import (
    CustomerDataValidator,
    validate_intake_format,
    validate_numeric_serving,
)

FIXTURES = Path(__file__).parent / "fixtures"

INTAKE_ERROR = (
    "sodium-intake must be either a legacy format (0, 1-3, 4-6, 7, 8-10, 11-13, 14) "
    "or a numeric serving value"
)


# Fixtures
@pytest.fixture
def validator():
    return CustomerDataValidator()


@pytest.fixture
def valid_data():
    return {"age": 35, "biologicalSex": "female", "weight": 150}


@pytest.fixture
def invalid_record():
    with open(FIXTURES / "survey_invalid.json") as f:
        return SurveyRecord.model_validate(json.load(f))


def _record(data, **overrides):
    return SurveyRecord.model_validate({**data, **overrides})


# Test Cases


def test_valid_record_passes(validator, valid_data):
    result = validator.validate(_record(valid_data))

    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []


@pytest.mark.parametrize("age, valid", [(12, False), (13, True), (120, True), (121, False)])
def test_age_boundaries_inclusive(validator, valid_data, age, valid):
    result = validator.validate(_record(valid_data, age=age))

    assert result.is_valid is valid
    if not valid:
        assert result.errors == ["Age must be between 13 and 120"]


@pytest.mark.parametrize(
    "weight, valid", [(79.9, False), (80, True), (400, True), (400.5, False)]
)
def test_weight_boundaries_inclusive(validator, valid_data, weight, valid):
    result = validator.validate(_record(valid_data, weight=weight))
    assert result.is_valid is valid


def test_default_weight_fails_validation(validator):
    result = validator.validate(SurveyRecord())

    assert not result.is_valid
    assert result.errors == ["Weight must be between 80 and 400 lbs"]


def test_errors_in_declaration_order(validator, invalid_record):
    result = validator.validate(invalid_record)

    assert not result.is_valid
    assert result.errors == [
        "Age must be between 13 and 120",
        'Biological sex must be "male" or "female"',
        "Weight must be between 80 and 400 lbs",
        "potassium-supplement cannot be negative",
        INTAKE_ERROR,
    ]


def test_supplement_above_ceiling_warns(validator, valid_data):
    result = validator.validate(
        _record(valid_data, sodiumSupplement=2500, calciumSupplement=1200)
    )

    assert result.is_valid
    assert result.warnings == ["sodium-supplement exceeds recommended maximum of 2000mg"]


def test_high_serving_count_warns(validator, valid_data):
    result = validator.validate(_record(valid_data, potassiumIntake="60", sodiumIntake="50"))

    assert result.is_valid
    assert result.warnings == ["potassium-intake: Serving value of 60 seems unusually high"]


def test_water_intake_outside_typical_range_warns(validator, valid_data):
    result = validator.validate(_record(valid_data, dailyWaterIntake=20))

    assert result.is_valid
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("daily-water-intake of 20 fl oz")


def test_checks_are_field_local(validator, valid_data):
    """A bad sex value does not change the outcome of any other field."""
    result = validator.validate(_record(valid_data, biologicalSex="unknown"))
    assert result.errors == ['Biological sex must be "male" or "female"']


def test_validate_intake_fields_only(validator, valid_data):
    result = validator.validate_intake_fields(
        _record(valid_data, sodiumIntake="lots", calciumIntake="14")
    )
    assert result.errors == [INTAKE_ERROR]


@pytest.mark.parametrize("value", [None, "", "0", "8-10", "14", "3.5", "0.25"])
def test_intake_format_accepts(value):
    assert validate_intake_format(value, "sodium-intake").is_valid


@pytest.mark.parametrize("value", ["lots", "-1", "1-2", "15-20", "3,5"])
def test_intake_format_rejects(value):
    result = validate_intake_format(value, "sodium-intake")

    assert not result.is_valid
    assert result.errors == [INTAKE_ERROR]


def test_validate_numeric_serving():
    assert validate_numeric_serving("abc") == (False, [])
    assert validate_numeric_serving("4") == (True, [])
    assert validate_numeric_serving("51") == (
        True,
        ["Serving value of 51 seems unusually high"],
    )
