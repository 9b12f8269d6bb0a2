"""
Formulation assembly.

Wraps the clamped per-serving amounts into the final FormulationResult:
rounded amounts, daily optimal/current/deficit figures, serving count,
notes, recommendations and provenance.
"""

from datetime import datetime
from typing import List, Optional

from potions.constants import DEFAULT_ELECTROLYTE_FORMS, FORMULA_VERSION, SERVING_SIZE
from potions.multipliers import Composition
from potions.optimal import calculate_optimal_intake
from potions.safety import ClampReport
from potions.schemas import (
    ActivityLevel,
    CalculationMetadata,
    Electrolyte,
    ElectrolyteAmounts,
    FormulationNotes,
    FormulationResult,
    HealthCondition,
    IntakeAnalysis,
    SurveyRecord,
    UseCase,
    WorkoutFrequency,
)

PRIMARY_NOTES = {
    UseCase.DAILY: "Balanced daily hydration formulation",
    UseCase.SWEAT: "High-sodium formulation to replace sweat losses",
    UseCase.BEDTIME: "Magnesium-forward formulation to support sleep",
    UseCase.MENSTRUAL: "Magnesium and calcium support for menstrual symptoms",
    UseCase.HANGOVER: "Rehydration formulation for hangover recovery",
}


def current_intake(record: SurveyRecord, intake_analysis: IntakeAnalysis) -> ElectrolyteAmounts:
    """Dietary intake converted to mg plus supplements already taken."""
    return intake_analysis.converted.map(
        lambda e, amount: amount + record.supplement_mg(e)
    )


def calculate_deficits(
    optimal: ElectrolyteAmounts, current: ElectrolyteAmounts
) -> ElectrolyteAmounts:
    return optimal.map(lambda e, amount: max(0, amount - current.get(e)))


def servings_per_day(use_case: UseCase, record: SurveyRecord) -> int:
    if use_case == UseCase.HANGOVER:
        return 2
    if use_case == UseCase.SWEAT and record.workout_frequency == WorkoutFrequency.DAILY:
        return 2
    if record.activity_level == ActivityLevel.EXTREMELY_ACTIVE:
        return 2
    return 1


def build_recommendations(
    use_case: UseCase, record: SurveyRecord, deficits: ElectrolyteAmounts
) -> List[str]:
    """
    Ordered, deterministic recommendation lines.

    The first entry always names the use case.
    """
    recommendations = [f"Formulated for {use_case.value} use case"]

    if record.activity_level == ActivityLevel.EXTREMELY_ACTIVE:
        recommendations.append("Consider splitting dose pre/post workout")
    if use_case == UseCase.SWEAT:
        recommendations.append("Drink during or immediately after exercise")
    if use_case == UseCase.BEDTIME:
        recommendations.append("Take 30-60 minutes before bed")
    if use_case == UseCase.MENSTRUAL:
        recommendations.append("Begin daily servings a few days before your cycle starts")
    if use_case == UseCase.HANGOVER:
        recommendations.append("Consume immediately upon waking")

    if HealthCondition.HYPERTENSION in record.conditions:
        recommendations.append("Reduced sodium formulation for blood pressure")
    if HealthCondition.KIDNEY_DISEASE in record.conditions:
        recommendations.append("Consult your physician before use with kidney disease")

    short = [e.value for e in Electrolyte if deficits.get(e) > 0]
    if short:
        recommendations.append(f"Dietary intake below daily target for: {', '.join(short)}")

    return recommendations


def build_notes(
    use_case: UseCase, record: SurveyRecord, intake_analysis: IntakeAnalysis
) -> FormulationNotes:
    formats = ", ".join(
        f"{electrolyte} {fmt.value}" for electrolyte, fmt in intake_analysis.formats.items()
    )
    return FormulationNotes(
        primary=PRIMARY_NOTES[use_case],
        additional=[
            f"Based on age: {record.age}",
            f"Activity level: {record.activity_level.value}",
            f"Intake formats: {formats}",
        ],
    )


class FormulationAssembler:
    """Builds the FormulationResult from clamped amounts and the survey."""

    def assemble(
        self,
        use_case: UseCase,
        amounts: ElectrolyteAmounts,
        record: SurveyRecord,
        intake_analysis: IntakeAnalysis,
        composition: Optional[Composition] = None,
        clamp_report: Optional[ClampReport] = None,
    ) -> FormulationResult:
        """
        Assemble the final result.

        Args:
            use_case: Classified use case
            amounts: Clamped per-serving amounts (unrounded)
            record: Validated survey record
            intake_analysis: Converted dietary intake
            composition: Multiplier pipeline output, for provenance
            clamp_report: Safety clamp output, for provenance

        Returns:
            FormulationResult with rounded per-serving amounts and metadata
        """
        optimal = calculate_optimal_intake(record)
        current = current_intake(record, intake_analysis)
        deficits = calculate_deficits(optimal, current)

        metadata = CalculationMetadata(
            formula_version=FORMULA_VERSION,
            serving_size=SERVING_SIZE,
            recommended_servings_per_day=servings_per_day(use_case, record),
            optimal_intake=optimal.rounded(),
            current_intake=current.rounded(),
            deficits=deficits.rounded(),
            electrolyte_forms=dict(DEFAULT_ELECTROLYTE_FORMS),
            notes=build_notes(use_case, record, intake_analysis),
            recommendations=build_recommendations(use_case, record, deficits),
            calculation_timestamp=datetime.now(),
            customer_age=record.age,
            customer_weight=record.weight,
            detected_use_case=use_case,
            applied_multipliers=composition.applied_multipliers() if composition else {},
            combined_multipliers=dict(composition.combined_multipliers) if composition else {},
            sweat_addition_mg=composition.sweat_addition_mg if composition else 0,
            safety_limits_applied=clamp_report.safety_limits_applied if clamp_report else False,
            ratio_optimization=clamp_report.ratio if clamp_report else None,
        )

        return FormulationResult(
            formulation_per_serving=amounts.rounded(),
            use_case=use_case,
            metadata=metadata,
        )
