"""
Pydantic models for the formulation engine.

This module defines the core data structures for:
- Survey Records: the customer's survey answers with defaults applied
- Electrolyte Amounts: immutable mg quantities for the four electrolytes
- Validation Results: blocking errors and non-blocking warnings
- Formulation Results: the per-serving formulation and its metadata
- Request/Response envelopes and audit records for collaborators
"""

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from potions.constants import (
    DEFAULT_ELECTROLYTE_FORMS,
    DEFAULT_INTAKE_VALUE,
    DEFAULT_WATER_INTAKE,
    FORMULA_VERSION,
    SERVING_SIZE,
)

Number = Union[int, float]


# ============================================================================
# Enumerations
# ============================================================================

class Electrolyte(str, Enum):
    """The four electrolytes in every formulation."""
    SODIUM = "sodium"
    POTASSIUM = "potassium"
    MAGNESIUM = "magnesium"
    CALCIUM = "calcium"


class BiologicalSex(str, Enum):
    MALE = "male"
    FEMALE = "female"


class ActivityLevel(str, Enum):
    """Self-reported day-to-day activity."""
    SEDENTARY = "sedentary"
    LIGHTLY_ACTIVE = "lightly-active"
    MODERATELY_ACTIVE = "moderately-active"
    VERY_ACTIVE = "very-active"
    EXTREMELY_ACTIVE = "extremely-active"


class SweatLevel(str, Enum):
    """Self-reported sweat rate during exercise."""
    MINIMAL = "minimal"
    LIGHT = "light"
    MODERATE = "moderate"
    HEAVY = "heavy"
    EXCESSIVE = "excessive"


class WorkoutFrequency(str, Enum):
    NEVER = "never"
    ONCE_PER_WEEK = "1-per-week"
    TWO_TO_THREE_PER_WEEK = "2-3-per-week"
    FOUR_TO_SIX_PER_WEEK = "4-6-per-week"
    DAILY = "daily"


class WorkoutDuration(str, Enum):
    """Typical workout length in minutes."""
    MIN_30_60 = "30-60"
    MIN_60_90 = "60-90"
    MIN_90_120 = "90-120"
    MIN_120_PLUS = "120+"


class WorkoutIntensity(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very-high"


class UseCase(str, Enum):
    """Clinical/lifestyle context that selects baselines and active multipliers."""
    DAILY = "daily"
    SWEAT = "sweat"
    BEDTIME = "bedtime"
    MENSTRUAL = "menstrual"
    HANGOVER = "hangover"


class DailyGoal(str, Enum):
    ENERGY = "energy"
    MENTAL_CLARITY = "mental-clarity"
    MUSCLE_FUNCTION = "muscle-function"
    RECOVERY = "recovery"
    HYDRATION = "hydration"
    PERFORMANCE = "performance"


class SleepGoal(str, Enum):
    FALLING_ASLEEP = "falling-asleep"
    STAYING_ASLEEP = "staying-asleep"
    SLEEP_QUALITY = "sleep-quality"
    MUSCLE_RELAXATION = "muscle-relaxation"
    REDUCE_CRAMPING = "reduce-cramping"
    RECOVERY = "recovery"


class SleepIssue(str, Enum):
    NONE = "none"
    TROUBLE_FALLING_ASLEEP = "trouble-falling-asleep"
    FREQUENT_WAKING = "frequent-waking"
    EARLY_WAKING = "early-waking"
    RESTLESS_SLEEP = "restless-sleep"
    MUSCLE_CRAMPS = "muscle-cramps"
    STRESS_RELATED = "stress-related"


class MenstrualSymptom(str, Enum):
    NONE = "none"
    CRAMPS = "cramps"
    BLOATING = "bloating"
    MOOD_SWINGS = "mood-swings"
    FATIGUE = "fatigue"
    HEADACHES = "headaches"
    MUSCLE_ACHES = "muscle-aches"


class HealthCondition(str, Enum):
    HYPERTENSION = "hypertension"
    KIDNEY_DISEASE = "kidney-disease"
    HEART_DISEASE = "heart-disease"
    DIABETES = "diabetes"
    OSTEOPOROSIS = "osteoporosis"


class ExerciseType(str, Enum):
    CARDIO = "cardio"
    STRENGTH_TRAINING = "strength-training"
    ENDURANCE = "endurance"
    HIGH_INTENSITY = "high-intensity"
    YOGA = "yoga"
    SPORTS = "sports"


class HangoverTiming(str, Enum):
    """When the formulation is taken relative to drinking."""
    BEFORE = "before"
    DURING = "during"
    AFTER = "after"


class HangoverSymptom(str, Enum):
    HEADACHE = "headache"
    NAUSEA = "nausea"
    DEHYDRATION = "dehydration"
    FATIGUE = "fatigue"


class IntakeFormat(str, Enum):
    """Encoding of an intake answer, detected from the string shape alone."""
    LEGACY = "legacy"
    NUMERIC = "numeric"


class ConversionSource(str, Enum):
    """Audit tag for how an intake value was turned into mg."""
    LEGACY_INTAKE_ESTIMATES = "LEGACY_INTAKE_ESTIMATES"
    DIRECT_NUMERIC = "DIRECT_NUMERIC"


# ============================================================================
# Base classes
# ============================================================================


class CamelModel(BaseModel):
    """Immutable model serialized with camelCase keys at the JSON edge."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ============================================================================
# Electrolyte Amounts
# ============================================================================


class ElectrolyteAmounts(CamelModel):
    """Four named mg quantities. Never mutated; every stage builds a new one."""

    sodium: Number = Field(..., description="Sodium in mg")
    potassium: Number = Field(..., description="Potassium in mg")
    magnesium: Number = Field(..., description="Magnesium in mg")
    calcium: Number = Field(..., description="Calcium in mg")

    @model_validator(mode="after")
    def amounts_non_negative(self) -> "ElectrolyteAmounts":
        negative = [e.value for e in Electrolyte if self.get(e) < 0]
        if negative:
            raise ValueError(f"Electrolyte amounts cannot be negative: {', '.join(negative)}")
        return self

    @classmethod
    def from_mapping(cls, values: Mapping[str, Number]) -> "ElectrolyteAmounts":
        """Build from a mapping keyed by electrolyte name or Electrolyte."""
        return cls(**{Electrolyte(key).value: value for key, value in values.items()})

    @classmethod
    def zero(cls) -> "ElectrolyteAmounts":
        return cls(sodium=0, potassium=0, magnesium=0, calcium=0)

    def get(self, electrolyte: Union[Electrolyte, str]) -> Number:
        return getattr(self, Electrolyte(electrolyte).value)

    def replace(self, **changes: Number) -> "ElectrolyteAmounts":
        return self.model_copy(update=changes)

    def map(self, func: Callable[[Electrolyte, Number], Number]) -> "ElectrolyteAmounts":
        """Apply func(electrolyte, amount) to each electrolyte."""
        return ElectrolyteAmounts(
            **{e.value: func(e, self.get(e)) for e in Electrolyte}
        )

    def rounded(self) -> "ElectrolyteAmounts":
        """Round every amount half-up to a whole mg."""
        return self.map(lambda _, amount: round_half_up(amount))

    def as_dict(self) -> Dict[str, Number]:
        return {e.value: self.get(e) for e in Electrolyte}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 always rounding up."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


# ============================================================================
# Survey Record
# ============================================================================


def coerce_intake_value(value: Any) -> Any:
    """
    Normalize an intake answer to its string form.

    JSON numbers become their shortest string (7.0 -> "7", 3.5 -> "3.5"),
    strings are stripped, and anything else is returned unchanged.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _aliases(snake: str, hyphen: str) -> AliasChoices:
    return AliasChoices(to_camel(snake), hyphen, snake)


class SurveyRecord(BaseModel):
    """
    A customer's survey answers with every default resolved.

    Keys are accepted as camelCase, the survey's hyphenated keys, or
    snake_case. A missing key, None, or an empty string resolves to the
    field's default before validation runs.
    """

    model_config = ConfigDict(
        populate_by_name=True, frozen=True, extra="ignore", allow_inf_nan=False
    )

    # Demographics (range-checked by CustomerDataValidator, not here)
    age: int = Field(30, validation_alias=_aliases("age", "age"))
    biological_sex: str = Field(
        "male", validation_alias=_aliases("biological_sex", "biological-sex")
    )
    weight: float = Field(
        70, description="Body weight in lbs", validation_alias=_aliases("weight", "weight")
    )

    activity_level: ActivityLevel = Field(
        ActivityLevel.MODERATELY_ACTIVE,
        validation_alias=_aliases("activity_level", "activity-level"),
    )
    sweat_level: SweatLevel = Field(
        SweatLevel.MODERATE, validation_alias=_aliases("sweat_level", "sweat-level")
    )

    # Optional ordered tag sequences
    daily_goals: List[DailyGoal] = Field(
        default_factory=list, validation_alias=_aliases("daily_goals", "daily-goals")
    )
    sleep_goals: List[SleepGoal] = Field(
        default_factory=list, validation_alias=_aliases("sleep_goals", "sleep-goals")
    )
    sleep_issues: List[SleepIssue] = Field(
        default_factory=list, validation_alias=_aliases("sleep_issues", "sleep-issues")
    )
    menstrual_symptoms: List[MenstrualSymptom] = Field(
        default_factory=list,
        validation_alias=_aliases("menstrual_symptoms", "menstrual-symptoms"),
    )
    conditions: List[HealthCondition] = Field(
        default_factory=list, validation_alias=_aliases("conditions", "conditions")
    )
    exercise_type: List[ExerciseType] = Field(
        default_factory=list, validation_alias=_aliases("exercise_type", "exercise-type")
    )

    # Workout parameters
    workout_frequency: Optional[WorkoutFrequency] = Field(
        None, validation_alias=_aliases("workout_frequency", "workout-frequency")
    )
    workout_duration: Optional[WorkoutDuration] = Field(
        None, validation_alias=_aliases("workout_duration", "workout-duration")
    )
    workout_intensity: Optional[WorkoutIntensity] = Field(
        None, validation_alias=_aliases("workout_intensity", "workout-intensity")
    )

    # Hangover context
    hangover_timing: Optional[HangoverTiming] = Field(
        None, validation_alias=_aliases("hangover_timing", "hangover-timing")
    )
    hangover_symptoms: List[HangoverSymptom] = Field(
        default_factory=list,
        validation_alias=_aliases("hangover_symptoms", "hangover-symptoms"),
    )

    # Intake fields: legacy bucket token or numeric serving count
    sodium_intake: str = Field(
        DEFAULT_INTAKE_VALUE, validation_alias=_aliases("sodium_intake", "sodium-intake")
    )
    potassium_intake: str = Field(
        DEFAULT_INTAKE_VALUE,
        validation_alias=_aliases("potassium_intake", "potassium-intake"),
    )
    magnesium_intake: str = Field(
        DEFAULT_INTAKE_VALUE,
        validation_alias=_aliases("magnesium_intake", "magnesium-intake"),
    )
    calcium_intake: str = Field(
        DEFAULT_INTAKE_VALUE, validation_alias=_aliases("calcium_intake", "calcium-intake")
    )

    # Supplements already taken (mg/day)
    sodium_supplement: float = Field(
        0, validation_alias=_aliases("sodium_supplement", "sodium-supplement")
    )
    potassium_supplement: float = Field(
        0, validation_alias=_aliases("potassium_supplement", "potassium-supplement")
    )
    magnesium_supplement: float = Field(
        0, validation_alias=_aliases("magnesium_supplement", "magnesium-supplement")
    )
    calcium_supplement: float = Field(
        0, validation_alias=_aliases("calcium_supplement", "calcium-supplement")
    )

    daily_water_intake: float = Field(
        DEFAULT_WATER_INTAKE,
        description="Daily water intake in fl oz",
        validation_alias=_aliases("daily_water_intake", "daily-water-intake"),
    )

    usage: Optional[str] = Field(
        None,
        description="Explicit use case override",
        validation_alias=_aliases("usage", "usage"),
    )

    @model_validator(mode="before")
    @classmethod
    def drop_unsupplied_values(cls, data: Any) -> Any:
        """Treat None and empty strings as 'not supplied' so defaults apply."""
        if isinstance(data, Mapping):
            return {
                key: value
                for key, value in data.items()
                if value is not None and not (isinstance(value, str) and value.strip() == "")
            }
        return data

    @field_validator(
        "sodium_intake", "potassium_intake", "magnesium_intake", "calcium_intake",
        mode="before",
    )
    @classmethod
    def intake_as_string(cls, value: Any) -> Any:
        """JSON numbers are accepted and kept in their shortest string form."""
        return coerce_intake_value(value)

    def intake_value(self, electrolyte: Union[Electrolyte, str]) -> str:
        return getattr(self, INTAKE_FIELDS_BY_ELECTROLYTE[Electrolyte(electrolyte)])

    def supplement_mg(self, electrolyte: Union[Electrolyte, str]) -> float:
        return getattr(self, SUPPLEMENT_FIELDS_BY_ELECTROLYTE[Electrolyte(electrolyte)])


# Exhaustive field-name -> electrolyte mappings; the only place intake and
# supplement fields are looked up by name.
INTAKE_FIELDS: Dict[str, Electrolyte] = {
    "sodium_intake": Electrolyte.SODIUM,
    "potassium_intake": Electrolyte.POTASSIUM,
    "magnesium_intake": Electrolyte.MAGNESIUM,
    "calcium_intake": Electrolyte.CALCIUM,
}
INTAKE_FIELDS_BY_ELECTROLYTE = {e: field for field, e in INTAKE_FIELDS.items()}

SUPPLEMENT_FIELDS: Dict[str, Electrolyte] = {
    "sodium_supplement": Electrolyte.SODIUM,
    "potassium_supplement": Electrolyte.POTASSIUM,
    "magnesium_supplement": Electrolyte.MAGNESIUM,
    "calcium_supplement": Electrolyte.CALCIUM,
}
SUPPLEMENT_FIELDS_BY_ELECTROLYTE = {e: field for field, e in SUPPLEMENT_FIELDS.items()}


def intake_field_label(electrolyte: Union[Electrolyte, str]) -> str:
    """Survey-facing name of an intake field, e.g. 'sodium-intake'."""
    return f"{Electrolyte(electrolyte).value}-intake"


def supplement_field_label(electrolyte: Union[Electrolyte, str]) -> str:
    return f"{Electrolyte(electrolyte).value}-supplement"


# ============================================================================
# Validation
# ============================================================================


class ValidationResult(CamelModel):
    """Outcome of validating a survey record. Warnings never affect is_valid."""

    is_valid: bool = Field(..., description="True iff there are no errors")
    errors: List[str] = Field(default_factory=list, description="Blocking errors")
    warnings: List[str] = Field(default_factory=list, description="Non-blocking warnings")

    @model_validator(mode="after")
    def validity_matches_errors(self) -> "ValidationResult":
        if self.is_valid != (len(self.errors) == 0):
            raise ValueError("is_valid must be True exactly when errors is empty")
        return self

    @classmethod
    def from_messages(
        cls, errors: List[str], warnings: Optional[List[str]] = None
    ) -> "ValidationResult":
        return cls(is_valid=not errors, errors=list(errors), warnings=list(warnings or []))

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult.from_messages(
            self.errors + other.errors, self.warnings + other.warnings
        )


# ============================================================================
# Intake Conversion
# ============================================================================


class IntakeConversion(CamelModel):
    """
    Result of converting one intake value to mg.

    A conversion that fell back to the default carries a warning instead of
    raising.
    """

    electrolyte: Electrolyte
    value: str = Field(..., description="The intake value as supplied ('' if missing)")
    format: IntakeFormat
    mg: float = Field(..., ge=0)
    source: ConversionSource
    warning: Optional[str] = None

    @property
    def used_default(self) -> bool:
        return self.warning is not None or self.value == ""


class IntakeAnalysis(CamelModel):
    """Formats, converted mg and warnings for the four intake fields."""

    formats: Dict[str, IntakeFormat] = Field(..., description="Detected format per electrolyte")
    converted: ElectrolyteAmounts = Field(..., description="Dietary intake in mg")
    warnings: List[str] = Field(default_factory=list)


# ============================================================================
# Formulation Result
# ============================================================================


class RatioOptimization(CamelModel):
    """Calcium:magnesium ratio after the safety clamp."""

    calcium_magnesium_ratio: float
    target_ratio: float
    ratio_adjustment: str


class FormulationNotes(CamelModel):
    primary: str
    additional: List[str] = Field(default_factory=list)


class CalculationMetadata(CamelModel):
    """Everything about a formulation other than the per-serving amounts."""

    formula_version: str = FORMULA_VERSION
    serving_size: str = SERVING_SIZE
    recommended_servings_per_day: int = Field(..., ge=1, le=2)
    optimal_intake: ElectrolyteAmounts
    current_intake: ElectrolyteAmounts
    deficits: ElectrolyteAmounts
    electrolyte_forms: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_ELECTROLYTE_FORMS)
    )
    notes: FormulationNotes
    recommendations: List[str] = Field(..., min_length=1)

    # Provenance
    calculation_timestamp: datetime = Field(default_factory=datetime.now)
    customer_age: int
    customer_weight: float
    detected_use_case: UseCase
    applied_multipliers: Dict[str, Dict[str, float]] = Field(
        default_factory=dict, description="Multiplier step label -> partial factor map"
    )
    combined_multipliers: Dict[str, float] = Field(default_factory=dict)
    sweat_addition_mg: float = 0
    safety_limits_applied: bool = False
    ratio_optimization: Optional[RatioOptimization] = None


class FormulationResult(CamelModel):
    """Final output of the engine for one survey record."""

    formulation_per_serving: ElectrolyteAmounts
    use_case: UseCase
    metadata: CalculationMetadata


# ============================================================================
# Request / Response envelopes
# ============================================================================


class CalculationOptions(CamelModel):
    validate_only: bool = Field(False, description="Skip calculation, return intake analysis")
    include_metadata: bool = True


class FormulaCalculationRequest(CamelModel):
    """Request envelope for a formulation calculation."""

    customer_data: Optional[Dict[str, Any]] = Field(
        None, description="Survey record; parsed by the engine"
    )
    options: CalculationOptions = Field(default_factory=CalculationOptions)


class ErrorInfo(CamelModel):
    code: str = Field(..., description="Machine-readable error code")
    message: str
    details: Optional[List[str]] = None


class CalculationData(CamelModel):
    formulation: Optional[FormulationResult] = None
    intake_analysis: IntakeAnalysis


class CalculationResponse(CamelModel):
    """{success: true, data} or {success: false, validation/error}."""

    success: bool
    data: Optional[CalculationData] = None
    validation: Optional[ValidationResult] = None
    error: Optional[ErrorInfo] = None


class ConversionInput(CamelModel):
    value: str
    format: Optional[IntakeFormat] = None


class ConversionOutput(CamelModel):
    mg: Optional[float] = None
    servings: Optional[float] = None


class ConversionData(CamelModel):
    input: ConversionInput
    output: ConversionOutput
    electrolyte: Electrolyte


class IntakeConversionResult(CamelModel):
    """Single conversion response."""

    success: bool
    data: Optional[ConversionData] = None
    error: Optional[ErrorInfo] = None


class BatchConversionItem(CamelModel):
    """One requested conversion in a batch. Electrolyte is checked per item."""

    id: Optional[Union[str, int]] = None
    value: Any = None
    electrolyte: Any = None


class BatchConversionInput(CamelModel):
    value: str
    electrolyte: str
    format: str = Field(..., description="legacy, numeric or unknown")


class BatchConversionOutput(CamelModel):
    mg: float


class BatchConversionResult(CamelModel):
    id: str
    input: BatchConversionInput
    output: BatchConversionOutput
    success: bool
    error: Optional[str] = None


class IntakeFieldPreview(CamelModel):
    input: str
    mg: float
    format: IntakeFormat


class IntakeValidationResponse(CamelModel):
    """Per-field intake validation with conversion previews."""

    success: bool
    validation: ValidationResult
    conversions: Optional[Dict[str, IntakeFieldPreview]] = None


# ============================================================================
# Audit Records (persisted by the storage collaborator)
# ============================================================================


class IntakeConversionRecord(CamelModel):
    """Audit trail entry for one non-empty intake field."""

    electrolyte: Electrolyte
    original_value: str
    original_format: IntakeFormat
    converted_mg: float
    conversion_source: ConversionSource


class SurveySummary(CamelModel):
    """Scalar fields stored next to the verbatim survey blob for indexing."""

    age: int
    biological_sex: str
    weight: float
    activity_level: ActivityLevel
    sweat_level: SweatLevel
    detected_use_case: UseCase


# ============================================================================
# Calculation Trace
# ============================================================================


class TraceStage(BaseModel):
    """One stage of the calculation as recorded in the trace."""

    stage: str = Field(..., description="Pipeline stage name")
    description: str
    values: Dict[str, Any] = Field(default_factory=dict)


class CalculationTrace(BaseModel):
    """Complete audit trail for one calculation."""

    timestamp: datetime = Field(default_factory=datetime.now)
    formula_version: str = FORMULA_VERSION
    result: str = Field(..., description="calculated, refused or validated")
    use_case: Optional[UseCase] = None
    stages: List[TraceStage] = Field(default_factory=list)
