#!/usr/bin/env python3
"""
Quick start script to demonstrate the Personal Potions formulation engine.

This script shows the complete workflow:
1. Load a survey with mixed intake formats
2. Validate it and inspect the intake conversions
3. Calculate the formulation with a trace
4. Compare use case overrides for the same customer
5. Convert a batch of intake values
"""

import json
from pathlib import Path

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from potions.engine import FormulationEngine
from potions.schemas import Electrolyte, UseCase
from potions.trace import save_trace_from_result

console = Console()


def print_header(title: str):
    console.print(f"\n[bold cyan]{title}[/bold cyan]")
    console.print("=" * len(title))


def main():
    """Run the complete demonstration workflow."""
    console.print("\n[bold magenta]Personal Potions Formulation Engine[/bold magenta]")
    console.print("[dim]Demonstration of complete workflow[/dim]\n")

    engine = FormulationEngine.from_settings()

    # ===== STEP 1: Load Survey =====
    print_header("Step 1: Load Survey")

    survey_path = Path("tests/fixtures/survey_mixed_formats.json")
    with open(survey_path) as f:
        survey = json.load(f)

    console.print(f"✓ Loaded: [green]{survey_path.name}[/green]")
    console.print(f"  Age: {survey['age']}, weight: {survey['weight']} lbs")
    console.print(f"  Activity: {survey['activityLevel']}, sweat: {survey['sweatLevel']}")

    # ===== STEP 2: Validate =====
    print_header("Step 2: Validate and Convert Intake")

    validation = engine.validate_only(survey)
    if not validation.success:
        console.print("[red]✗ Validation: REFUSED[/red]")
        for error in validation.validation.errors:
            console.print(f"  - {error}")
        return

    console.print("[green]✓ Validation: PASSED[/green]")
    analysis = validation.data.intake_analysis

    table = Table(title="Dietary Intake", box=box.ROUNDED)
    table.add_column("Electrolyte", style="cyan")
    table.add_column("Answer")
    table.add_column("Format")
    table.add_column("mg/day", justify="right", style="yellow")
    for electrolyte in Electrolyte:
        table.add_row(
            electrolyte.value.title(),
            survey.get(f"{electrolyte.value}Intake", "7"),
            analysis.formats[electrolyte.value].value,
            f"{analysis.converted.get(electrolyte):.0f}",
        )
    console.print(table)

    # ===== STEP 3: Calculate =====
    print_header("Step 3: Calculate Formulation")

    response, trace = engine.calculate_with_trace(survey)
    formulation = response.data.formulation
    meta = formulation.metadata

    console.print(f"✓ Use case: [green]{formulation.use_case.value}[/green]")
    console.print(f"  Servings per day: {meta.recommended_servings_per_day} x {meta.serving_size}")
    for electrolyte in Electrolyte:
        console.print(
            f"  {electrolyte.value.title()}: "
            f"{formulation.formulation_per_serving.get(electrolyte)} mg"
        )
    if meta.ratio_optimization:
        console.print(
            f"  Ca:Mg ratio: {meta.ratio_optimization.calcium_magnesium_ratio:g} "
            f"({meta.ratio_optimization.ratio_adjustment})"
        )

    console.print("\n[bold]Recommendations:[/bold]")
    for rec in meta.recommendations:
        console.print(f"  • {rec}")

    trace_path = save_trace_from_result(trace, Path("traces"), format="markdown")
    console.print(f"\n✓ Trace saved to: [cyan]{trace_path}[/cyan]")

    # ===== STEP 4: Use Case Overrides =====
    print_header("Step 4: Compare Use Cases")

    table = Table(title="Per Serving by Use Case", box=box.ROUNDED)
    table.add_column("Use case", style="cyan")
    for electrolyte in Electrolyte:
        table.add_column(electrolyte.value.title(), justify="right")

    for use_case in UseCase:
        result = engine.calculate({**survey, "usage": use_case.value}).data.formulation
        table.add_row(
            use_case.value,
            *[f"{result.formulation_per_serving.get(e)}" for e in Electrolyte],
        )
    console.print(table)

    # ===== STEP 5: Batch Conversion =====
    print_header("Step 5: Batch Conversion")

    with open("tests/fixtures/batch_conversions.json") as f:
        items = json.load(f)["conversions"]

    for result in engine.convert_batch(items):
        status = "[green]✓[/green]" if result.success else f"[red]✗ {result.error}[/red]"
        console.print(
            f"  {result.id}: {result.input.value} {result.input.electrolyte} "
            f"-> {result.output.mg:g} mg {status}"
        )

    # ===== COMPLETION =====
    console.print("\n")
    panel = Panel(
        "[green]✓[/green] Demonstration complete!\n\n"
        "The engine:\n"
        "  1. Normalized legacy and numeric intake answers\n"
        "  2. Validated the survey\n"
        "  3. Calculated a formulation inside the safety bands\n"
        "  4. Converted intake values in batch\n\n"
        "Every stage is documented in the calculation trace.\n"
        "Check the traces/ directory.",
        title="[bold green]Success[/bold green]",
        border_style="green",
    )
    console.print(panel)

    console.print("\n[bold cyan]Next Steps:[/bold cyan]")
    console.print("  • Run CLI: potions calculate <survey.json> --trace-dir traces")
    console.print("  • Start the API: python3 -m potions.api.main")
    console.print("  • Run tests: python3 -m pytest\n")


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        console.print(f"\n[red]Error: {e}[/red]")
        console.print("\n[dim]Run from the repository root after: pip install -e .[/dim]")
        raise
