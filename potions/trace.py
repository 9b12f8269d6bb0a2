"""
Calculation trace generation and export.

This module documents every stage of a formulation calculation: how intake
answers were converted, what validation found, which use case was chosen and
why, each multiplier applied, and what the safety clamp changed. Traces are
exported to JSON and Markdown for review and auditability.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from potions.multipliers import Composition
from potions.safety import ClampReport
from potions.schemas import (
    CalculationTrace,
    FormulationResult,
    IntakeAnalysis,
    TraceStage,
    UseCase,
    ValidationResult,
)


class CalculationTraceBuilder:
    """
    Builds and exports the trace of one calculation.

    The trace is the complete audit trail showing:
    - What each intake answer converted to
    - What validation errors and warnings were raised
    - Which use case rule matched
    - Every multiplier step and ceiling applied
    - Which safety bands and ratio adjustments changed the result
    """

    def __init__(self):
        self.trace = CalculationTrace(result="pending")

    def add_stage(
        self, stage: str, description: str, values: Optional[Dict[str, Any]] = None
    ) -> None:
        self.trace.stages.append(
            TraceStage(stage=stage, description=description, values=values or {})
        )

    def add_intake_analysis(self, analysis: IntakeAnalysis) -> None:
        self.add_stage(
            "intake",
            "Converted dietary intake answers to daily mg",
            {
                "formats": {e: fmt.value for e, fmt in analysis.formats.items()},
                "converted_mg": analysis.converted.as_dict(),
                "warnings": list(analysis.warnings),
            },
        )

    def add_validation(self, validation: ValidationResult) -> None:
        description = (
            "Survey record accepted"
            if validation.is_valid
            else f"Survey record refused with {len(validation.errors)} error(s)"
        )
        self.add_stage(
            "validation",
            description,
            {"errors": list(validation.errors), "warnings": list(validation.warnings)},
        )

    def add_classification(self, use_case: UseCase, reason: str) -> None:
        self.trace.use_case = use_case
        self.add_stage(
            "classification",
            f"Selected {use_case.value} use case: {reason}",
            {"use_case": use_case.value, "reason": reason},
        )

    def add_composition(self, composition: Composition) -> None:
        """Record the baseline, sweat addition, each multiplier step and ceilings."""
        self.add_stage(
            "baseline",
            f"Started from the {composition.use_case.value} baseline",
            composition.baseline.as_dict(),
        )
        self.add_stage(
            "sweat-addition",
            f"Added {composition.sweat_addition_mg:g} mg sodium for sweat level",
            {"sodium": composition.sweat_addition_mg},
        )
        for step in composition.steps:
            self.add_stage(
                "multiplier",
                f"Applied {step.label}",
                {"axis": step.axis, "factors": dict(step.factors)},
            )
        self.add_stage(
            "combined-multipliers",
            "Product of all multiplier steps",
            dict(composition.combined_multipliers),
        )
        if composition.ceilings_applied:
            self.add_stage(
                "ceilings",
                "Capped by health condition ceilings",
                dict(composition.ceilings_applied),
            )
        self.add_stage("composed", "Pre-clamp amounts", composition.amounts.as_dict())

    def add_clamp(self, report: ClampReport) -> None:
        clamped = [e.value for e in report.clamped]
        self.add_stage(
            "safety-clamp",
            f"Clamped into safety bands: {', '.join(clamped)}" if clamped
            else "All amounts within safety bands",
            {"clamped": clamped, "amounts": report.amounts.as_dict()},
        )
        self.add_stage(
            "ratio",
            f"Ca:Mg ratio {report.ratio.calcium_magnesium_ratio:g} "
            f"(target {report.ratio.target_ratio:g}): {report.ratio.ratio_adjustment}",
            report.ratio.model_dump(mode="json"),
        )

    def add_formulation(self, formulation: FormulationResult) -> None:
        self.add_stage(
            "formulation",
            "Rounded per-serving formulation",
            formulation.formulation_per_serving.as_dict(),
        )

    def set_result(self, result: str) -> None:
        """
        Set the final calculation result.

        Args:
            result: One of "calculated", "refused", "validated"
        """
        self.trace.result = result

    def export_to_json(self) -> dict:
        return self.trace.model_dump(mode="json")

    def export_to_markdown(self) -> str:
        """
        Export trace to human-readable Markdown format.

        Returns:
            Markdown-formatted trace report
        """
        lines = []

        lines.append("# Calculation Trace")
        lines.append("")
        lines.append(f"**Timestamp:** {self.trace.timestamp.strftime('%Y-%m-%d %H:%M:%S')}")
        lines.append(f"**Formula Version:** `{self.trace.formula_version}`")
        lines.append(f"**Result:** **{self.trace.result.upper()}**")
        if self.trace.use_case is not None:
            lines.append(f"**Use Case:** `{self.trace.use_case.value}`")
        lines.append("")
        lines.append("---")
        lines.append("")

        lines.append("## Stages")
        lines.append("")

        if not self.trace.stages:
            lines.append("*No stages recorded*")
            lines.append("")

        for index, stage in enumerate(self.trace.stages, start=1):
            lines.append(f"### {index}. `{stage.stage}`")
            lines.append("")
            lines.append(stage.description)
            lines.append("")
            for key, value in stage.values.items():
                lines.append(f"- **{key}:** `{value}`")
            if stage.values:
                lines.append("")

        lines.append("---")
        lines.append("")
        lines.append("*Every number in the formulation can be traced to a stage above.*")

        return "\n".join(lines)

    def save_to_file(self, output_dir: Path, format: str = "json") -> Path:
        """
        Save trace to file in specified format.

        Args:
            output_dir: Directory to save trace file
            format: Output format ("json" or "markdown")

        Returns:
            Path to saved file

        Raises:
            ValueError: If format is not supported
        """
        if format not in ("json", "markdown"):
            raise ValueError(f"Unsupported format: {format}. Use 'json' or 'markdown'")

        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp_str = self.trace.timestamp.strftime("%Y%m%d_%H%M%S_%f")
        use_case = self.trace.use_case.value if self.trace.use_case else "none"

        if format == "json":
            filepath = output_dir / f"trace_{use_case}_{timestamp_str}.json"
            with open(filepath, "w") as f:
                json.dump(self.export_to_json(), f, indent=2, default=str)
        else:
            filepath = output_dir / f"trace_{use_case}_{timestamp_str}.md"
            with open(filepath, "w") as f:
                f.write(self.export_to_markdown())

        return filepath


def save_trace_from_result(
    trace: CalculationTrace, output_dir: Path, format: str = "json"
) -> Path:
    """
    Convenience function to save a finished trace.

    Args:
        trace: CalculationTrace returned by the engine
        output_dir: Directory to save trace
        format: Output format ("json" or "markdown")

    Returns:
        Path to saved file
    """
    builder = CalculationTraceBuilder()
    builder.trace = trace
    return builder.save_to_file(output_dir, format)


def load_trace_from_file(filepath: Path) -> CalculationTrace:
    """
    Load a calculation trace from JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If JSON is invalid
    """
    if not filepath.exists():
        raise FileNotFoundError(f"Trace file not found: {filepath}")

    with open(filepath, "r") as f:
        data = json.load(f)

    try:
        return CalculationTrace(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid trace file: {e}") from e
