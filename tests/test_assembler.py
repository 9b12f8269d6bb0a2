"""
Tests for optimal intake targets and formulation assembly.
"""

import pytest

from potions.assembler import (
    FormulationAssembler,
    build_recommendations,
    calculate_deficits,
    current_intake,
    servings_per_day,
)
from potions.constants import FORMULA_VERSION, LBS_TO_KG, SERVING_SIZE
from potions.intake import analyze_intakes
from potions.multipliers import MultiplierPipeline
from potions.optimal import (
    calculate_optimal_intake,
    optimal_calcium,
    optimal_magnesium,
    optimal_potassium,
    optimal_sodium,
)
from potions.safety import SafetyClamp
from potions.schemas import ElectrolyteAmounts, SurveyRecord, UseCase


def _record(**data):
    base = {"age": 32, "biologicalSex": "female", "weight": 145.5}
    return SurveyRecord.model_validate({**base, **data})


# Optimal intake


def test_optimal_sodium_scales_with_weight_and_sweat():
    record = _record()
    assert optimal_sodium(record) == pytest.approx(2500 + 7 * 145.5 * LBS_TO_KG + 700)


@pytest.mark.parametrize(
    "weight, sweat, expected",
    [(100, "minimal", 3000), (400, "excessive", 5000)],
)
def test_optimal_sodium_kept_in_range(weight, sweat, expected):
    assert optimal_sodium(_record(weight=weight, sweatLevel=sweat)) == expected


@pytest.mark.parametrize("age, expected", [(16, 4700 * 0.8), (40, 4700), (70, 4700), (75, 4700 * 0.9)])
def test_optimal_potassium_by_age(age, expected):
    assert optimal_potassium(_record(age=age)) == pytest.approx(expected)


@pytest.mark.parametrize(
    "sex, age, rda, reference",
    [("female", 32, 320, 57), ("female", 30, 310, 57), ("male", 25, 400, 70), ("male", 31, 420, 70)],
)
def test_optimal_magnesium_by_sex_age_and_weight(sex, age, rda, reference):
    record = _record(biologicalSex=sex, age=age, weight=180)
    assert optimal_magnesium(record) == pytest.approx(rda * 180 * LBS_TO_KG / reference)


@pytest.mark.parametrize(
    "sex, age, expected",
    [
        ("female", 18, 1300),
        ("male", 19, 1000),
        ("female", 50, 1000),
        ("female", 51, 1200),
        ("male", 51, 1000),
        ("male", 70, 1000),
        ("male", 71, 1200),
    ],
)
def test_optimal_calcium_by_age_band(sex, age, expected):
    assert optimal_calcium(_record(biologicalSex=sex, age=age)) == expected


def test_calculate_optimal_intake_combines_all():
    record = _record()
    optimal = calculate_optimal_intake(record)

    assert optimal.sodium == optimal_sodium(record)
    assert optimal.potassium == 4700
    assert optimal.calcium == 1000


# Current intake and deficits


def test_current_intake_adds_supplements():
    record = _record(potassiumIntake="3.5", potassiumSupplement=250)
    current = current_intake(record, analyze_intakes(record))

    assert current.potassium == 3650
    assert current.sodium == 2000


def test_deficits_never_negative():
    optimal = ElectrolyteAmounts(sodium=3000, potassium=4700, magnesium=300, calcium=1000)
    current = ElectrolyteAmounts(sodium=4000, potassium=2000, magnesium=300, calcium=1200)

    assert calculate_deficits(optimal, current).as_dict() == {
        "sodium": 0,
        "potassium": 2700,
        "magnesium": 0,
        "calcium": 0,
    }


# Servings and recommendations


@pytest.mark.parametrize(
    "use_case, data, expected",
    [
        (UseCase.HANGOVER, {}, 2),
        (UseCase.SWEAT, {"workoutFrequency": "daily"}, 2),
        (UseCase.SWEAT, {"workoutFrequency": "4-6-per-week"}, 1),
        (UseCase.DAILY, {"activityLevel": "extremely-active"}, 2),
        (UseCase.BEDTIME, {}, 1),
    ],
)
def test_servings_per_day(use_case, data, expected):
    assert servings_per_day(use_case, _record(**data)) == expected


def test_recommendations_start_with_use_case():
    deficits = ElectrolyteAmounts.zero()
    recs = build_recommendations(
        UseCase.BEDTIME,
        _record(activityLevel="extremely-active", conditions=["hypertension"]),
        deficits,
    )

    assert recs == [
        "Formulated for bedtime use case",
        "Consider splitting dose pre/post workout",
        "Take 30-60 minutes before bed",
        "Reduced sodium formulation for blood pressure",
    ]


def test_recommendations_mention_deficits():
    deficits = ElectrolyteAmounts(sodium=0, potassium=500, magnesium=20, calcium=0)
    recs = build_recommendations(UseCase.HANGOVER, _record(), deficits)

    assert recs[0] == "Formulated for hangover use case"
    assert "Consume immediately upon waking" in recs
    assert recs[-1] == "Dietary intake below daily target for: potassium, magnesium"


# Assembly


@pytest.fixture
def assembled():
    record = _record(
        sodiumIntake="8-10", potassiumIntake="3.5", magnesiumIntake="7", calciumIntake="12.8"
    )
    analysis = analyze_intakes(record)
    composition = MultiplierPipeline().run(UseCase.DAILY, record)
    report = SafetyClamp().apply(composition.amounts, UseCase.DAILY)
    result = FormulationAssembler().assemble(
        UseCase.DAILY,
        report.amounts,
        record,
        analysis,
        composition=composition,
        clamp_report=report,
    )
    return result, composition, report


def test_assembled_result(assembled):
    result, composition, report = assembled
    meta = result.metadata

    assert result.use_case == UseCase.DAILY
    assert result.formulation_per_serving == report.amounts.rounded()
    assert meta.formula_version == FORMULA_VERSION == "1.4"
    assert meta.serving_size == SERVING_SIZE
    assert meta.recommended_servings_per_day == 1
    assert meta.recommendations[0] == "Formulated for daily use case"
    assert meta.customer_age == 32
    assert meta.customer_weight == 145.5
    assert meta.detected_use_case == UseCase.DAILY
    assert meta.electrolyte_forms["magnesium"] == "magnesium-glycinate"
    assert meta.current_intake.potassium == 3400
    assert meta.sweat_addition_mg == 700
    assert meta.safety_limits_applied == report.safety_limits_applied
    assert meta.ratio_optimization == report.ratio
    assert meta.applied_multipliers == composition.applied_multipliers()


def test_assembled_amounts_are_integers(assembled):
    result, _, _ = assembled
    for value in result.formulation_per_serving.as_dict().values():
        assert isinstance(value, int)
    for value in result.metadata.deficits.as_dict().values():
        assert isinstance(value, int)


def test_assembled_notes(assembled):
    result, _, _ = assembled
    notes = result.metadata.notes

    assert notes.primary
    assert "Based on age: 32" in notes.additional
    assert "Intake formats: sodium legacy, potassium numeric, magnesium legacy, calcium numeric" in (
        notes.additional
    )


def test_assemble_without_provenance():
    record = _record()
    amounts = ElectrolyteAmounts(sodium=300.4, potassium=450.5, magnesium=100, calcium=200)
    result = FormulationAssembler().assemble(
        UseCase.DAILY, amounts, record, analyze_intakes(record)
    )

    assert result.formulation_per_serving.as_dict() == {
        "sodium": 300,
        "potassium": 451,
        "magnesium": 100,
        "calcium": 200,
    }
    assert result.metadata.applied_multipliers == {}
    assert result.metadata.ratio_optimization is None
