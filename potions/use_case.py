"""
Use case classification.

Selects exactly one use case per survey record with a fixed-priority decision
tree: the first matching rule wins. Sleep disruption and menstruation rank
above fitness signals; do not reorder the rules without domain sign-off.
"""

from typing import Callable, NamedTuple, Optional, Tuple

from loguru import logger

from potions.schemas import (
    MenstrualSymptom,
    SleepIssue,
    SurveyRecord,
    SweatLevel,
    UseCase,
    WorkoutFrequency,
)

HEAVY_SWEAT_LEVELS = frozenset({SweatLevel.HEAVY, SweatLevel.EXCESSIVE})
FREQUENT_WORKOUTS = frozenset({WorkoutFrequency.DAILY, WorkoutFrequency.FOUR_TO_SIX_PER_WEEK})


class UseCaseRule(NamedTuple):
    use_case: UseCase
    matches: Callable[[SurveyRecord], bool]
    reason: str


def _has_sleep_issues(record: SurveyRecord) -> bool:
    return bool(record.sleep_issues) and record.sleep_issues[0] != SleepIssue.NONE


def _has_menstrual_symptoms(record: SurveyRecord) -> bool:
    return (
        bool(record.menstrual_symptoms)
        and record.menstrual_symptoms[0] != MenstrualSymptom.NONE
    )


def _is_heavy_sweater(record: SurveyRecord) -> bool:
    return (
        record.sweat_level in HEAVY_SWEAT_LEVELS
        and record.workout_frequency in FREQUENT_WORKOUTS
    )


def _has_hangover_symptoms(record: SurveyRecord) -> bool:
    return bool(record.hangover_symptoms)


# Evaluated top to bottom; daily is the fallback when nothing matches.
USE_CASE_RULES: Tuple[UseCaseRule, ...] = (
    UseCaseRule(UseCase.BEDTIME, _has_sleep_issues, "sleep issues reported"),
    UseCaseRule(UseCase.MENSTRUAL, _has_menstrual_symptoms, "menstrual symptoms reported"),
    UseCaseRule(
        UseCase.SWEAT,
        _is_heavy_sweater,
        "heavy sweat with 4+ workouts per week",
    ),
    UseCaseRule(UseCase.HANGOVER, _has_hangover_symptoms, "hangover symptoms reported"),
)


def parse_usage_override(usage: Optional[str]) -> Optional[UseCase]:
    """Return the override use case, or None if usage is unset or unrecognized."""
    if not usage:
        return None
    try:
        return UseCase(usage)
    except ValueError:
        logger.debug(f"Ignoring unrecognized usage override: {usage!r}")
        return None


class UseCaseClassifier:
    """Applies the fixed-priority decision tree to a survey record."""

    def __init__(self, rules: Tuple[UseCaseRule, ...] = USE_CASE_RULES):
        self.rules = rules

    def classify(self, record: SurveyRecord) -> UseCase:
        return self.classify_with_reason(record)[0]

    def classify_with_reason(self, record: SurveyRecord) -> Tuple[UseCase, str]:
        """
        Classify a record and explain which rule matched.

        An explicit usage override naming one of the five use cases replaces
        the decision tree entirely.

        Returns:
            Tuple of (use_case, reason)
        """
        override = parse_usage_override(record.usage)
        if override is not None:
            return override, f"explicit usage override '{override.value}'"

        for rule in self.rules:
            if rule.matches(record):
                return rule.use_case, rule.reason

        return UseCase.DAILY, "no specific signals, default use case"
