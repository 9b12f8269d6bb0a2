"""
Research-backed constants for the formulation framework.

Every table in this module is built once at import time and exposed as a
read-only mapping. Values must match the V1 calculation framework exactly;
changing one changes every formulation produced by the engine.
"""

from types import MappingProxyType
from typing import Dict, Mapping

FORMULA_VERSION = "1.4"
SERVING_SIZE = "16 fl oz (473ml)"
DEFAULT_WATER_INTAKE = 64  # fl oz

LBS_TO_KG = 0.45359237

ELECTROLYTES = ("sodium", "potassium", "magnesium", "calcium")


def _freeze(table: Dict) -> Mapping:
    """Recursively wrap nested dicts in read-only proxies."""
    return MappingProxyType(
        {
            key: _freeze(value) if isinstance(value, dict) else value
            for key, value in table.items()
        }
    )


# ============================================================================
# Intake normalization
# ============================================================================

LEGACY_INTAKE_VALUES = ("0", "1-3", "4-6", "7", "8-10", "11-13", "14")
DEFAULT_INTAKE_VALUE = "7"

# Weekly serving midpoint represented by each legacy bucket
LEGACY_BUCKET_MIDPOINTS = _freeze(
    {"0": 0, "1-3": 2, "4-6": 5, "7": 7, "8-10": 9, "11-13": 12, "14": 14}
)

# Baseline dietary intake (mg) with no high-intake servings
BASE_INTAKE_AMOUNTS = _freeze(
    {"sodium": 1500, "potassium": 2000, "magnesium": 200, "calcium": 800}
)

# Increment for one serving a day over a week (bucket "7" = base + increment)
WEEKLY_INTAKE_INCREMENTS = _freeze(
    {"sodium": 500, "potassium": 400, "magnesium": 100, "calcium": 300}
)

# mg contributed per reported serving in the numeric format
SERVING_AMOUNTS = _freeze(
    {"sodium": 500, "potassium": 400, "magnesium": 100, "calcium": 300}
)

LEGACY_INTAKE_ESTIMATES = _freeze(
    {
        electrolyte: {
            bucket: BASE_INTAKE_AMOUNTS[electrolyte]
            + (midpoint * WEEKLY_INTAKE_INCREMENTS[electrolyte] / 7)
            for bucket, midpoint in LEGACY_BUCKET_MIDPOINTS.items()
        }
        for electrolyte in ELECTROLYTES
    }
)

NUMERIC_SERVING_WARNING_THRESHOLD = 50

# ============================================================================
# Validation limits
# ============================================================================

AGE_LIMITS = _freeze({"min": 13, "max": 120})
WEIGHT_LIMITS = _freeze({"min": 80, "max": 400})  # lbs
DAILY_WATER_INTAKE_LIMITS = _freeze({"min": 32, "max": 200})  # fl oz
SUPPLEMENT_MAX = _freeze(
    {"sodium": 2000, "potassium": 1000, "magnesium": 500, "calcium": 1200}
)

# ============================================================================
# Baselines and multipliers
# ============================================================================

BASELINE_FORMULATIONS = _freeze(
    {
        "daily": {"sodium": 150, "potassium": 400, "magnesium": 100, "calcium": 200},
        "menstrual": {"sodium": 250, "potassium": 450, "magnesium": 150, "calcium": 250},
        "hangover": {"sodium": 500, "potassium": 400, "magnesium": 150, "calcium": 200},
        "sweat": {"sodium": 300, "potassium": 500, "magnesium": 120, "calcium": 240},
        "bedtime": {"sodium": 50, "potassium": 300, "magnesium": 200, "calcium": 400},
    }
)

ACTIVITY_MULTIPLIERS = _freeze(
    {
        "sedentary": {"sodium": 0.8, "potassium": 0.9, "magnesium": 0.9, "calcium": 1.0},
        "lightly-active": {"sodium": 1.0, "potassium": 0.95, "magnesium": 0.95, "calcium": 1.0},
        "moderately-active": {"sodium": 1.2, "potassium": 1.0, "magnesium": 1.0, "calcium": 1.0},
        "very-active": {"sodium": 2.4, "potassium": 1.2, "magnesium": 1.1, "calcium": 1.05},
        "extremely-active": {"sodium": 2.8, "potassium": 1.3, "magnesium": 1.15, "calcium": 1.1},
    }
)

# Flat sodium additions (mg) by sweat level
SWEAT_ADDITIONS = _freeze(
    {"minimal": 0, "light": 300, "moderate": 700, "heavy": 1200, "excessive": 1800}
)

DURATION_MULTIPLIERS = _freeze(
    {"30-60": 1.0, "60-90": 1.3, "90-120": 1.6, "120+": 2.0}
)

INTENSITY_MULTIPLIERS = _freeze(
    {"low": 0.8, "moderate": 1.0, "high": 1.3, "very-high": 1.6}
)

GOAL_MULTIPLIERS = _freeze(
    {
        "energy": {"magnesium": 1.2, "sodium": 1.1, "potassium": 1.05},
        "mental-clarity": {"magnesium": 1.25, "sodium": 0.8, "potassium": 1.1},
        "muscle-function": {"potassium": 1.3, "magnesium": 1.15, "calcium": 1.1},
        "recovery": {"potassium": 1.25, "calcium": 1.15, "sodium": 1.1, "magnesium": 1.1},
        "hydration": {"sodium": 1.2, "potassium": 1.1},
        "performance": {"sodium": 1.15, "potassium": 1.2, "magnesium": 1.1},
    }
)

SLEEP_GOAL_MULTIPLIERS = _freeze(
    {
        "falling-asleep": {"magnesium": 1.3, "calcium": 1.2},
        "staying-asleep": {"magnesium": 1.2, "calcium": 1.15},
        "sleep-quality": {"magnesium": 1.25, "calcium": 1.1},
        "muscle-relaxation": {"magnesium": 1.4, "calcium": 1.25},
        "reduce-cramping": {"magnesium": 1.35, "calcium": 1.2},
        "recovery": {"magnesium": 1.2, "calcium": 1.15},
    }
)

HANGOVER_TIMING_MULTIPLIERS = _freeze(
    {
        "before": {"sodium": 1.0, "potassium": 1.0, "magnesium": 1.1},
        "during": {"sodium": 1.3, "potassium": 1.1, "magnesium": 1.2},
        "after": {"sodium": 1.8, "potassium": 1.3, "magnesium": 1.4},
    }
)

HANGOVER_SYMPTOM_MULTIPLIERS = _freeze(
    {
        "headache": {"sodium": 1.2, "magnesium": 1.3},
        "nausea": {"sodium": 1.1, "potassium": 1.2},
        "dehydration": {"sodium": 1.4, "potassium": 1.2},
        "fatigue": {"magnesium": 1.2, "potassium": 1.1},
    }
)

HEALTH_CONDITION_MULTIPLIERS = _freeze(
    {
        "hypertension": {"sodium": 0.7, "potassium": 1.1},
        "kidney-disease": {"potassium": 0.7},
        "heart-disease": {"sodium": 0.8},
        "diabetes": {"magnesium": 1.1},
        "osteoporosis": {"calcium": 1.2, "magnesium": 1.1},
    }
)

# Hard mg ceilings imposed by a condition after all multipliers
HEALTH_CONDITION_CEILINGS = _freeze(
    {"kidney-disease": {"calcium": 1000}}
)

# ============================================================================
# Safety bands and ratios
# ============================================================================

_STANDARD_LIMITS = {
    "sodium": {"min": 150, "max": 800},
    "potassium": {"min": 400, "max": 600},
    "magnesium": {"min": 80, "max": 200},
    "calcium": {"min": 200, "max": 300},
}

SAFETY_LIMITS = _freeze(
    {
        "daily": _STANDARD_LIMITS,
        "sweat": {
            "sodium": {"min": 200, "max": 1000},
            "potassium": {"min": 300, "max": 700},
            "magnesium": {"min": 80, "max": 200},
            "calcium": {"min": 200, "max": 300},
        },
        "bedtime": _STANDARD_LIMITS,
        "menstrual": _STANDARD_LIMITS,
        "hangover": {
            "sodium": {"min": 200, "max": 450},
            "potassium": {"min": 350, "max": 600},
            "magnesium": {"min": 100, "max": 400},
            "calcium": {"min": 50, "max": 150},
        },
    }
)

# Calcium:magnesium ratio bands
USE_CASE_RATIOS = _freeze(
    {
        "daily": {"min": 1.8, "target": 2.0, "max": 2.2},
        "sweat": {"min": 1.7, "target": 2.0, "max": 2.3},
        "bedtime": {"min": 1.8, "target": 2.0, "max": 2.2},
        "menstrual": {"min": 1.5, "target": 1.8, "max": 2.0},
        "hangover": {"min": 0.3, "target": 0.5, "max": 0.8},
    }
)

# ============================================================================
# Optimal daily intake (RDA-style)
# ============================================================================

# Sodium - O'Donnell, M., et al. (2014)
SODIUM_BASE = 2500
SODIUM_WEIGHT_MULTIPLIER = 7  # mg per kg body weight
SODIUM_OPTIMAL_RANGE = _freeze({"min": 3000, "max": 5000})

# Potassium - FDA/Institute of Medicine (2019)
POTASSIUM_BASE = 4700
POTASSIUM_AGE_MULTIPLIERS = _freeze({"under_18": 0.8, "over_70": 0.9, "normal": 1.0})

# Magnesium - Institute of Medicine (1997)
MAGNESIUM_RDA = _freeze(
    {
        "male": {"over_30": 420, "under_30": 400},
        "female": {"over_30": 320, "under_30": 310},
    }
)
MAGNESIUM_REFERENCE_WEIGHTS = _freeze({"male": 70, "female": 57})  # kg

# Calcium - National Institutes of Health (2022)
CALCIUM_RDA = _freeze(
    {
        "under_19": 1300,
        "age_19_to_50": 1000,
        "female_51_to_70": 1200,
        "male_51_to_70": 1000,
        "over_70": 1200,
    }
)

# ============================================================================
# Output metadata
# ============================================================================

DEFAULT_ELECTROLYTE_FORMS = _freeze(
    {
        "sodium": "sodium-chloride",
        "potassium": "potassium-citrate",
        "magnesium": "magnesium-glycinate",
        "calcium": "calcium-citrate",
    }
)

# Detection priority of the classifier (usage override is checked first)
USE_CASE_DETECTION_ORDER = ("bedtime", "menstrual", "sweat", "hangover", "daily")
