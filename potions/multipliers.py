"""
Multiplier pipeline.

Composes a per-serving target from the use case baseline and the survey:

    amounts = (baseline + sweat addition on sodium) x product(axis multipliers)

followed by hard ceilings imposed by health conditions. Each axis is a
(name, predicate, factor source) entry in an ordered table; adding an axis
means adding a row, not touching the reducer. Amounts keep full float
precision here; rounding happens only when the result is assembled.
"""

from functools import reduce
from typing import Callable, Dict, Iterable, List, Mapping, NamedTuple, Tuple

from loguru import logger
from pydantic import BaseModel, Field

from potions.constants import (
    ACTIVITY_MULTIPLIERS,
    BASELINE_FORMULATIONS,
    DURATION_MULTIPLIERS,
    ELECTROLYTES,
    GOAL_MULTIPLIERS,
    HANGOVER_SYMPTOM_MULTIPLIERS,
    HANGOVER_TIMING_MULTIPLIERS,
    HEALTH_CONDITION_CEILINGS,
    HEALTH_CONDITION_MULTIPLIERS,
    INTENSITY_MULTIPLIERS,
    SLEEP_GOAL_MULTIPLIERS,
    SWEAT_ADDITIONS,
)
from potions.schemas import ElectrolyteAmounts, SurveyRecord, UseCase

FactorMap = Mapping[str, float]


class MultiplierStep(BaseModel):
    """One applied multiplier map. Electrolytes it doesn't name keep 1.0."""

    axis: str = Field(..., description="Axis that produced this step")
    label: str = Field(..., description="e.g. 'activity:very-active'")
    factors: Dict[str, float] = Field(..., description="Partial electrolyte -> multiplier map")


class Composition(BaseModel):
    """Result of composing baseline, sweat addition, multipliers and ceilings."""

    use_case: UseCase
    baseline: ElectrolyteAmounts
    sweat_addition_mg: float = Field(..., ge=0, description="Flat mg added to sodium")
    steps: List[MultiplierStep] = Field(default_factory=list)
    combined_multipliers: Dict[str, float] = Field(
        ..., description="Product of all steps per electrolyte"
    )
    ceilings_applied: Dict[str, float] = Field(
        default_factory=dict, description="Electrolytes capped by a condition ceiling"
    )
    amounts: ElectrolyteAmounts

    def applied_multipliers(self) -> Dict[str, Dict[str, float]]:
        return {step.label: dict(step.factors) for step in self.steps}


class MultiplierAxis(NamedTuple):
    name: str
    applies: Callable[[UseCase], bool]
    factors: Callable[[SurveyRecord], List[Tuple[str, FactorMap]]]


def _unique(values: Iterable) -> list:
    """Drop repeated tags, keeping first-seen order."""
    return list(dict.fromkeys(values))


def _uniform(multiplier: float) -> Dict[str, float]:
    return {electrolyte: multiplier for electrolyte in ELECTROLYTES}


def _always(use_case: UseCase) -> bool:
    return True


def _only(target: UseCase) -> Callable[[UseCase], bool]:
    return lambda use_case: use_case == target


def _activity_factors(record: SurveyRecord) -> List[Tuple[str, FactorMap]]:
    level = record.activity_level.value
    return [(f"activity:{level}", ACTIVITY_MULTIPLIERS[level])]


def _daily_goal_factors(record: SurveyRecord) -> List[Tuple[str, FactorMap]]:
    return [
        (f"daily-goal:{goal.value}", GOAL_MULTIPLIERS[goal.value])
        for goal in _unique(record.daily_goals)
    ]


def _sleep_goal_factors(record: SurveyRecord) -> List[Tuple[str, FactorMap]]:
    return [
        (f"sleep-goal:{goal.value}", SLEEP_GOAL_MULTIPLIERS[goal.value])
        for goal in _unique(record.sleep_goals)
    ]


def _workout_duration_factors(record: SurveyRecord) -> List[Tuple[str, FactorMap]]:
    if record.workout_duration is None:
        return []
    duration = record.workout_duration.value
    return [(f"workout-duration:{duration}", _uniform(DURATION_MULTIPLIERS[duration]))]


def _workout_intensity_factors(record: SurveyRecord) -> List[Tuple[str, FactorMap]]:
    if record.workout_intensity is None:
        return []
    intensity = record.workout_intensity.value
    return [(f"workout-intensity:{intensity}", _uniform(INTENSITY_MULTIPLIERS[intensity]))]


def _hangover_timing_factors(record: SurveyRecord) -> List[Tuple[str, FactorMap]]:
    if record.hangover_timing is None:
        return []
    timing = record.hangover_timing.value
    return [(f"hangover-timing:{timing}", HANGOVER_TIMING_MULTIPLIERS[timing])]


def _hangover_symptom_factors(record: SurveyRecord) -> List[Tuple[str, FactorMap]]:
    return [
        (f"hangover-symptom:{symptom.value}", HANGOVER_SYMPTOM_MULTIPLIERS[symptom.value])
        for symptom in _unique(record.hangover_symptoms)
    ]


def _condition_factors(record: SurveyRecord) -> List[Tuple[str, FactorMap]]:
    return [
        (f"condition:{condition.value}", HEALTH_CONDITION_MULTIPLIERS[condition.value])
        for condition in _unique(record.conditions)
    ]


# Application order. Multiplication commutes, so order only affects the trace.
MULTIPLIER_AXES: Tuple[MultiplierAxis, ...] = (
    MultiplierAxis("activity", _always, _activity_factors),
    MultiplierAxis("daily-goals", _always, _daily_goal_factors),
    MultiplierAxis("sleep-goals", _always, _sleep_goal_factors),
    MultiplierAxis("workout-duration", _only(UseCase.SWEAT), _workout_duration_factors),
    MultiplierAxis("workout-intensity", _only(UseCase.SWEAT), _workout_intensity_factors),
    MultiplierAxis("hangover-timing", _only(UseCase.HANGOVER), _hangover_timing_factors),
    MultiplierAxis("hangover-symptoms", _only(UseCase.HANGOVER), _hangover_symptom_factors),
    MultiplierAxis("conditions", _always, _condition_factors),
)


def _multiply(combined: Dict[str, float], step: MultiplierStep) -> Dict[str, float]:
    return {
        electrolyte: value * step.factors.get(electrolyte, 1.0)
        for electrolyte, value in combined.items()
    }


class MultiplierPipeline:
    """
    Builds the pre-clamp per-serving amounts for a use case.

    The pipeline:
    1. Starts from the use case baseline
    2. Adds the sweat-level flat mg amount to sodium
    3. Multiplies by the product of every applicable axis step
    4. Applies health condition ceilings
    """

    def __init__(self, axes: Tuple[MultiplierAxis, ...] = MULTIPLIER_AXES):
        self.axes = axes

    def compose(self, use_case: UseCase, record: SurveyRecord) -> ElectrolyteAmounts:
        return self.run(use_case, record).amounts

    def run(self, use_case: UseCase, record: SurveyRecord) -> Composition:
        """
        Compose the per-serving target and keep every intermediate for the trace.

        Args:
            use_case: The classified use case
            record: Validated survey record

        Returns:
            Composition with the steps applied and the resulting amounts
        """
        baseline = ElectrolyteAmounts.from_mapping(BASELINE_FORMULATIONS[use_case.value])

        sweat_addition = SWEAT_ADDITIONS[record.sweat_level.value]
        with_sweat = baseline.replace(sodium=baseline.sodium + sweat_addition)

        steps = self.collect_steps(use_case, record)
        combined = reduce(_multiply, steps, _uniform(1.0))

        amounts = with_sweat.map(lambda e, amount: amount * combined[e.value])
        amounts, ceilings = self._apply_ceilings(amounts, record)

        logger.debug(
            f"Composed {use_case.value} formulation from {len(steps)} multiplier step(s); "
            f"combined={combined}"
        )

        return Composition(
            use_case=use_case,
            baseline=baseline,
            sweat_addition_mg=sweat_addition,
            steps=steps,
            combined_multipliers=combined,
            ceilings_applied=ceilings,
            amounts=amounts,
        )

    def collect_steps(self, use_case: UseCase, record: SurveyRecord) -> List[MultiplierStep]:
        """Every multiplier step that applies to this use case and record, in order."""
        steps = []
        for axis in self.axes:
            if not axis.applies(use_case):
                continue
            for label, factors in axis.factors(record):
                steps.append(MultiplierStep(axis=axis.name, label=label, factors=dict(factors)))
        return steps

    def _apply_ceilings(
        self, amounts: ElectrolyteAmounts, record: SurveyRecord
    ) -> Tuple[ElectrolyteAmounts, Dict[str, float]]:
        ceilings: Dict[str, float] = {}
        for condition in _unique(record.conditions):
            for electrolyte, cap in HEALTH_CONDITION_CEILINGS.get(condition.value, {}).items():
                ceilings[electrolyte] = min(cap, ceilings.get(electrolyte, cap))

        capped = {
            electrolyte: cap
            for electrolyte, cap in ceilings.items()
            if amounts.get(electrolyte) > cap
        }
        if capped:
            amounts = amounts.replace(**capped)
        return amounts, capped
