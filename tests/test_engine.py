"""
Tests for the FormulationEngine request/response contract.

Test scenarios:
1. Mixed legacy and numeric intake formats are detected and converted
2. Invalid records produce a VALIDATION_ERROR envelope, never an exception
3. Malformed requests produce INVALID_REQUEST
4. Single and batch conversions in both directions
5. Intake field validation with conversion previews
"""

import json
from pathlib import Path

import pytest

from potions.config import Settings
from potions.engine import FROM_MG, FormulationEngine, parse_survey_record
from potions.errors import InvalidRequestError
from potions.schemas import IntakeFormat, UseCase

FIXTURES = Path(__file__).parent / "fixtures"


def _load(name):
    with open(FIXTURES / name) as f:
        return json.load(f)


@pytest.fixture
def engine():
    return FormulationEngine()


@pytest.fixture
def mixed_formats():
    return _load("survey_mixed_formats.json")


# Calculation


def test_mixed_intake_formats_end_to_end(engine, mixed_formats):
    response = engine.calculate(mixed_formats)

    assert response.success
    assert response.error is None
    analysis = response.data.intake_analysis
    assert analysis.formats == {
        "sodium": IntakeFormat.LEGACY,
        "potassium": IntakeFormat.NUMERIC,
        "magnesium": IntakeFormat.LEGACY,
        "calcium": IntakeFormat.NUMERIC,
    }
    assert analysis.converted.potassium == 3400
    assert analysis.converted.magnesium == 300
    assert analysis.converted.calcium == pytest.approx(4640)
    assert analysis.converted.sodium == pytest.approx(1500 + 9 * 500 / 7)

    formulation = response.data.formulation
    assert formulation.use_case == UseCase.DAILY
    assert formulation.metadata.customer_age == 32


def test_calculation_is_deterministic(engine, mixed_formats):
    first = engine.calculate(mixed_formats).data.formulation
    second = engine.calculate(mixed_formats).data.formulation

    assert first.formulation_per_serving == second.formulation_per_serving
    assert first.metadata.applied_multipliers == second.metadata.applied_multipliers


def test_hyphenated_survey_keys(engine):
    response = engine.calculate(_load("survey_sweat_athlete.json"))

    assert response.success
    formulation = response.data.formulation
    assert formulation.use_case == UseCase.SWEAT
    assert formulation.metadata.recommended_servings_per_day == 2
    # Numeric "2" servings + 200 mg supplement
    assert formulation.metadata.current_intake.magnesium == 600


def test_bedtime_survey(engine):
    response = engine.calculate(_load("survey_bedtime.json"))

    assert response.success
    assert response.data.formulation.use_case == UseCase.BEDTIME


def test_validation_failure_envelope(engine):
    response = engine.calculate(_load("survey_invalid.json"))

    assert not response.success
    assert response.data is None
    assert response.error.code == "VALIDATION_ERROR"
    assert response.error.message == "Customer data validation failed"
    assert response.error.details == response.validation.errors
    assert len(response.validation.errors) == 5
    assert any("could not parse 'lots'" in w for w in response.validation.warnings)


def test_unparseable_intake_is_refused(engine, mixed_formats):
    response = engine.calculate({**mixed_formats, "potassiumIntake": "abc"})

    # The validator rejects the value before calculation
    assert not response.success
    assert response.error.code == "VALIDATION_ERROR"


def test_wrong_type_is_invalid_request(engine):
    response = engine.calculate({"age": "old", "weight": 150})

    assert not response.success
    assert response.error.code == "INVALID_REQUEST"
    assert response.error.message == "Invalid customer data"
    assert response.error.details


def test_parse_survey_record_rejects_non_mapping():
    with pytest.raises(InvalidRequestError, match="customerData must be an object"):
        parse_survey_record(["age", 30])
    with pytest.raises(InvalidRequestError, match="Missing customerData"):
        parse_survey_record(None)


def test_validate_only(engine, mixed_formats):
    response = engine.validate_only(mixed_formats)

    assert response.success
    assert response.data.formulation is None
    assert response.data.intake_analysis.converted.potassium == 3400
    assert response.validation.is_valid


def test_calculate_with_trace(engine, mixed_formats):
    response, trace = engine.calculate_with_trace(mixed_formats)

    assert response.success
    assert trace.result == "calculated"
    assert trace.use_case == UseCase.DAILY
    stages = [stage.stage for stage in trace.stages]
    assert stages[:3] == ["intake", "validation", "classification"]
    assert stages[-1] == "formulation"


def test_trace_of_refused_record(engine):
    _, trace = engine.calculate_with_trace(_load("survey_invalid.json"))

    assert trace.result == "refused"
    assert trace.use_case is None


# Request envelopes


def test_handle_request_calculates(engine, mixed_formats):
    response = engine.handle_request({"customerData": mixed_formats})
    assert response.success
    assert response.data.formulation is not None


def test_handle_request_validate_only_option(engine, mixed_formats):
    response = engine.handle_request(
        {"customerData": mixed_formats, "options": {"validateOnly": True}}
    )
    assert response.success
    assert response.data.formulation is None


@pytest.mark.parametrize(
    "payload, message",
    [
        ("not an object", "Request body must be a JSON object"),
        ({}, "Missing customerData in request body"),
        ({"customerData": None}, "Missing customerData in request body"),
        ({"customerData": {"age": 30}, "options": {"validateOnly": "maybe"}}, "Invalid request body"),
    ],
)
def test_handle_request_invalid(engine, payload, message):
    response = engine.handle_request(payload)

    assert not response.success
    assert response.error.code == "INVALID_REQUEST"
    assert response.error.message == message


# Conversion


def test_convert_to_mg(engine):
    result = engine.convert("3.5", "potassium")

    assert result.success
    assert result.data.output.mg == 3400
    assert result.data.input.format == IntakeFormat.NUMERIC
    assert result.data.output.servings is None


def test_convert_numeric_json_value(engine):
    assert engine.convert(7, "sodium").data.output.mg == 2000


def test_convert_from_mg(engine):
    result = engine.convert("2500", "sodium", FROM_MG)

    assert result.success
    assert result.data.output.servings == 2.0
    assert engine.convert("1000", "sodium", FROM_MG).data.output.servings == 0.0


def test_convert_from_mg_rejects_text(engine):
    result = engine.convert("lots", "sodium", FROM_MG)

    assert not result.success
    assert result.error.code == "VALIDATION_ERROR"
    assert result.error.message == "Invalid mg amount: 'lots'"


@pytest.mark.parametrize(
    "value, electrolyte, code",
    [
        (None, "sodium", "INVALID_REQUEST"),
        ("7", None, "INVALID_REQUEST"),
        ("7", "iron", "INVALID_ELECTROLYTE"),
        ("lots", "sodium", "VALIDATION_ERROR"),
    ],
)
def test_convert_errors(engine, value, electrolyte, code):
    result = engine.convert(value, electrolyte)

    assert not result.success
    assert result.data is None
    assert result.error.code == code


def test_convert_unknown_direction(engine):
    result = engine.convert("7", "sodium", "sideways")
    assert result.error.code == "INVALID_REQUEST"


def test_batch_conversion_isolates_failures(engine):
    results = engine.convert_batch(_load("batch_conversions.json")["conversions"])

    assert [r.id for r in results] == ["na", "bad", "conversion_2"]
    assert [r.success for r in results] == [True, False, True]

    assert results[0].output.mg == 2000
    assert results[0].input.format == "legacy"

    assert results[1].error == "Invalid electrolyte"
    assert results[1].input.format == "unknown"
    assert results[1].output.mg == 0

    assert results[2].output.mg == 1550
    assert results[2].input.format == "numeric"


def test_batch_numeric_ids_and_bad_values(engine):
    results = engine.convert_batch(
        [{"id": 7, "value": "lots", "electrolyte": "sodium"}, "not an item"]
    )

    assert results[0].id == "7"
    assert not results[0].success
    assert results[0].error.startswith("sodium-intake must be")
    assert results[1].id == "conversion_1"
    assert results[1].error == "Conversion failed"


# Intake field validation


def test_validate_intake_fields_mixed_key_styles(engine):
    response = engine.validate_intake_fields(
        {"sodium-intake": "7", "potassiumIntake": "abc", "magnesium_intake": "2.5"}
    )

    assert not response.success
    assert response.validation.errors == [
        "potassium-intake must be either a legacy format (0, 1-3, 4-6, 7, 8-10, 11-13, 14) "
        "or a numeric serving value"
    ]
    assert set(response.conversions) == {"sodium", "magnesium"}
    assert response.conversions["magnesium"].mg == 450
    assert response.conversions["sodium"].format == IntakeFormat.LEGACY


def test_validate_intake_fields_empty_value_previews_default(engine):
    response = engine.validate_intake_fields({"calcium-intake": ""})

    assert response.success
    assert response.conversions["calcium"].mg == 1100
    assert response.conversions["calcium"].format == IntakeFormat.LEGACY


def test_validate_intake_fields_requires_mapping(engine):
    response = engine.validate_intake_fields(None)

    assert not response.success
    assert response.validation.errors == ["Missing intakeFields in request body"]
    assert response.conversions is None


# Construction


def test_from_settings_cache():
    cached = FormulationEngine.from_settings(Settings(conversion_cache_capacity=5))
    assert cached.normalizer.cache.capacity == 5

    engine = FormulationEngine.from_settings(Settings(conversion_cache_enabled=False))
    assert engine.normalizer.cache is None


def test_cache_does_not_change_results(mixed_formats):
    cached = FormulationEngine.from_settings(Settings(conversion_cache_capacity=10))
    plain = FormulationEngine()

    for _ in range(3):
        assert (
            cached.calculate(mixed_formats).data.formulation.formulation_per_serving
            == plain.calculate(mixed_formats).data.formulation.formulation_per_serving
        )
    assert cached.normalizer.cache.hits > 0


# Non-finite numbers


@pytest.mark.parametrize(
    "raw",
    [
        '{"age": 30, "biologicalSex": "male", "weight": 150, "sodiumSupplement": 1e309}',
        '{"age": 30, "biologicalSex": "male", "weight": 150, "calciumSupplement": NaN}',
        '{"age": 30, "biologicalSex": "male", "weight": Infinity}',
        '{"age": 30, "biologicalSex": "male", "weight": 150, "dailyWaterIntake": -Infinity}',
    ],
)
def test_non_finite_numbers_are_invalid_request(engine, raw):
    response = engine.calculate(json.loads(raw))

    assert not response.success
    assert response.error.code == "INVALID_REQUEST"
    assert response.error.message == "Invalid customer data"
    assert response.data is None
