"""
Optimal daily intake targets.

Research-backed daily targets per electrolyte, scaled by the customer's
weight, age, sex and sweat level. Used by the assembler to compute deficits
against the customer's current intake.
"""

from potions.constants import (
    CALCIUM_RDA,
    LBS_TO_KG,
    MAGNESIUM_RDA,
    MAGNESIUM_REFERENCE_WEIGHTS,
    POTASSIUM_AGE_MULTIPLIERS,
    POTASSIUM_BASE,
    SODIUM_BASE,
    SODIUM_OPTIMAL_RANGE,
    SODIUM_WEIGHT_MULTIPLIER,
    SWEAT_ADDITIONS,
)
from potions.schemas import BiologicalSex, ElectrolyteAmounts, SurveyRecord


def weight_in_kg(weight_lbs: float) -> float:
    return weight_lbs * LBS_TO_KG


def _sex(record: SurveyRecord) -> str:
    # Unknown values only reach here if validation was bypassed
    return (
        BiologicalSex.FEMALE.value
        if record.biological_sex == BiologicalSex.FEMALE.value
        else BiologicalSex.MALE.value
    )


def optimal_sodium(record: SurveyRecord) -> float:
    """2500 mg + 7 mg/kg + sweat loss, kept within 3000-5000 mg."""
    sodium = (
        SODIUM_BASE
        + SODIUM_WEIGHT_MULTIPLIER * weight_in_kg(record.weight)
        + SWEAT_ADDITIONS[record.sweat_level.value]
    )
    return max(SODIUM_OPTIMAL_RANGE["min"], min(SODIUM_OPTIMAL_RANGE["max"], sodium))


def optimal_potassium(record: SurveyRecord) -> float:
    if record.age < 18:
        multiplier = POTASSIUM_AGE_MULTIPLIERS["under_18"]
    elif record.age > 70:
        multiplier = POTASSIUM_AGE_MULTIPLIERS["over_70"]
    else:
        multiplier = POTASSIUM_AGE_MULTIPLIERS["normal"]
    return POTASSIUM_BASE * multiplier


def optimal_magnesium(record: SurveyRecord) -> float:
    """RDA by sex and age, scaled by body weight relative to the reference weight."""
    sex = _sex(record)
    rda = MAGNESIUM_RDA[sex]["over_30" if record.age > 30 else "under_30"]
    return rda * weight_in_kg(record.weight) / MAGNESIUM_REFERENCE_WEIGHTS[sex]


def optimal_calcium(record: SurveyRecord) -> float:
    if record.age < 19:
        return CALCIUM_RDA["under_19"]
    if record.age <= 50:
        return CALCIUM_RDA["age_19_to_50"]
    if record.age <= 70:
        key = "female_51_to_70" if _sex(record) == BiologicalSex.FEMALE.value else "male_51_to_70"
        return CALCIUM_RDA[key]
    return CALCIUM_RDA["over_70"]


def calculate_optimal_intake(record: SurveyRecord) -> ElectrolyteAmounts:
    """
    Daily optimal intake for all four electrolytes.

    Args:
        record: Validated survey record

    Returns:
        ElectrolyteAmounts in mg/day (unrounded)
    """
    return ElectrolyteAmounts(
        sodium=optimal_sodium(record),
        potassium=optimal_potassium(record),
        magnesium=optimal_magnesium(record),
        calcium=optimal_calcium(record),
    )
