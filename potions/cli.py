"""
Command-line interface for the formulation engine.

Provides commands for:
- Calculating a formulation from a survey JSON file
- Validating a survey without calculating
- Converting single intake values or batches
- Viewing the use case baselines, safety bands and ratio bands
"""

import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from potions.constants import BASELINE_FORMULATIONS, SAFETY_LIMITS, USE_CASE_RATIOS
from potions.engine import FROM_MG, TO_MG, FormulationEngine
from potions.logger import setup_logger
from potions.schemas import (
    CalculationResponse,
    Electrolyte,
    FormulationResult,
    UseCase,
)
from potions.trace import save_trace_from_result

app = typer.Typer(
    help="Personal Potions formulation engine - personalized electrolyte formulations"
)
console = Console()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to POTIONS_LOG_LEVEL or INFO)",
    ),
):
    setup_logger(level=log_level)


# ===== DISPLAY HELPER FUNCTIONS =====


def _load_json(path: Path, what: str) -> Any:
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]✗ Failed to load {what}: {e}[/red]")
        raise typer.Exit(1)


def _echo_json(model) -> None:
    typer.echo(model.model_dump_json(by_alias=True, exclude_none=True, indent=2))


def _display_messages(response: CalculationResponse) -> None:
    if response.error:
        console.print(f"[red]✗ {response.error.code}: {response.error.message}[/red]")
        for detail in response.error.details or []:
            console.print(f"  • {detail}")
    if response.validation and response.validation.warnings:
        console.print("\n[bold yellow]Warnings:[/bold yellow]")
        for warning in response.validation.warnings:
            console.print(f"  • {warning}")


def _display_formulation(formulation: FormulationResult) -> None:
    """
    Display the per-serving formulation and its daily context.

    Args:
        formulation: FormulationResult from the engine
    """
    meta = formulation.metadata
    console.print(
        f"\n[bold]Use case: [cyan]{formulation.use_case.value}[/cyan][/bold]  "
        f"({meta.recommended_servings_per_day} x {meta.serving_size} per day)"
    )

    table = Table(title="Formulation per Serving", box=box.ROUNDED)
    table.add_column("Electrolyte", style="cyan")
    table.add_column("Per serving", justify="right", style="green")
    table.add_column("Form", style="dim")
    table.add_column("Optimal/day", justify="right")
    table.add_column("Current/day", justify="right")
    table.add_column("Deficit/day", justify="right", style="yellow")

    for electrolyte in Electrolyte:
        table.add_row(
            electrolyte.value.title(),
            f"{formulation.formulation_per_serving.get(electrolyte)} mg",
            meta.electrolyte_forms.get(electrolyte.value, ""),
            f"{meta.optimal_intake.get(electrolyte)} mg",
            f"{meta.current_intake.get(electrolyte)} mg",
            f"{meta.deficits.get(electrolyte)} mg",
        )
    console.print(table)

    if meta.ratio_optimization:
        ratio = meta.ratio_optimization
        console.print(
            f"Ca:Mg ratio {ratio.calcium_magnesium_ratio:g} "
            f"(target {ratio.target_ratio:g}, {ratio.ratio_adjustment})"
        )

    console.print(f"\n[bold]{meta.notes.primary}[/bold]")
    for note in meta.notes.additional:
        console.print(f"  {note}")

    console.print("\n[bold]Recommendations:[/bold]")
    for rec in meta.recommendations:
        console.print(f"  • {rec}")


# ===== CLI COMMANDS =====


@app.command()
def calculate(
    survey: Path = typer.Argument(..., help="Path to survey JSON file", exists=True),
    trace_dir: Optional[Path] = typer.Option(
        None,
        "--trace-dir",
        "-t",
        help="Directory to save the calculation trace",
    ),
    trace_format: str = typer.Option(
        "json",
        "--format",
        "-f",
        help="Trace output format (json or markdown)",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the raw response as JSON"),
):
    """
    Calculate a personalized formulation from a survey file.

    The file may hold the survey itself or a {customerData, options} request.
    """
    data = _load_json(survey, "survey")
    if isinstance(data, dict) and "customerData" in data:
        data = data["customerData"]

    engine = FormulationEngine.from_settings()
    response, trace = engine.calculate_with_trace(data)

    if as_json:
        _echo_json(response)
    else:
        _display_messages(response)
        if response.success and response.data and response.data.formulation:
            _display_formulation(response.data.formulation)

    if trace_dir is not None:
        try:
            trace_path = save_trace_from_result(trace, trace_dir, format=trace_format)
        except ValueError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(1)
        if not as_json:
            console.print(f"\n✓ Calculation trace saved: [cyan]{trace_path}[/cyan]")

    if not response.success:
        raise typer.Exit(1)


@app.command()
def validate(
    survey: Path = typer.Argument(..., help="Path to survey JSON file", exists=True),
):
    """
    Validate a survey and show how its intake answers convert.
    """
    data = _load_json(survey, "survey")
    if isinstance(data, dict) and "customerData" in data:
        data = data["customerData"]

    response = FormulationEngine.from_settings().validate_only(data)
    _display_messages(response)

    if not response.success:
        raise typer.Exit(1)

    analysis = response.data.intake_analysis
    table = Table(title="Dietary Intake", box=box.ROUNDED)
    table.add_column("Electrolyte", style="cyan")
    table.add_column("Format")
    table.add_column("mg/day", justify="right", style="green")
    for electrolyte in Electrolyte:
        table.add_row(
            electrolyte.value.title(),
            analysis.formats[electrolyte.value].value,
            f"{analysis.converted.get(electrolyte):g}",
        )
    console.print(table)
    console.print("\n✓ [green]Survey is valid[/green]")


@app.command()
def convert(
    value: str = typer.Argument(..., help="Intake value, or mg amount with --from-mg"),
    electrolyte: str = typer.Argument(..., help="sodium, potassium, magnesium or calcium"),
    from_mg: bool = typer.Option(
        False, "--from-mg", help="Convert a daily mg amount back to servings"
    ),
):
    """
    Convert one intake value to daily mg (or mg back to servings).
    """
    engine = FormulationEngine.from_settings()
    result = engine.convert(value, electrolyte, FROM_MG if from_mg else TO_MG)

    if not result.success:
        console.print(f"[red]✗ {result.error.code}: {result.error.message}[/red]")
        raise typer.Exit(1)

    output = result.data.output
    if from_mg:
        console.print(
            f"{value} mg {result.data.electrolyte.value} = "
            f"[green]{output.servings:g}[/green] servings"
        )
    else:
        console.print(
            f"{value} ({result.data.input.format.value}) {result.data.electrolyte.value} = "
            f"[green]{output.mg:g} mg[/green]/day"
        )


@app.command()
def batch(
    conversions: Path = typer.Argument(
        ..., help="JSON file with a list of {id, value, electrolyte}", exists=True
    ),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
):
    """
    Convert a batch of intake values; failures are reported per item.
    """
    data = _load_json(conversions, "conversions")
    if isinstance(data, dict):
        data = data.get("conversions")
    if not isinstance(data, list) or not data:
        console.print("[red]✗ Expected a non-empty list of conversions[/red]")
        raise typer.Exit(1)

    results = FormulationEngine.from_settings().convert_batch(data)

    if as_json:
        typer.echo(
            json.dumps(
                [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in results],
                indent=2,
            )
        )
    else:
        table = Table(title="Batch Conversion", box=box.ROUNDED)
        table.add_column("ID", style="cyan")
        table.add_column("Electrolyte")
        table.add_column("Value")
        table.add_column("Format")
        table.add_column("mg/day", justify="right")
        table.add_column("Status")
        for r in results:
            table.add_row(
                r.id,
                r.input.electrolyte,
                r.input.value,
                r.input.format,
                f"{r.output.mg:g}",
                "[green]✓[/green]" if r.success else f"[red]✗ {r.error}[/red]",
            )
        console.print(table)

    if not all(r.success for r in results):
        raise typer.Exit(1)


@app.command("use-cases")
def use_cases():
    """
    List the use cases with their baselines, safety bands and Ca:Mg ratio bands.
    """
    for use_case in UseCase:
        baseline = BASELINE_FORMULATIONS[use_case.value]
        limits = SAFETY_LIMITS[use_case.value]
        ratio = USE_CASE_RATIOS[use_case.value]

        table = Table(
            title=f"{use_case.value} (Ca:Mg {ratio['min']}-{ratio['max']}, target {ratio['target']})",
            box=box.SIMPLE,
        )
        table.add_column("Electrolyte", style="cyan")
        table.add_column("Baseline", justify="right")
        table.add_column("Safety band", justify="right")
        for electrolyte in Electrolyte:
            band = limits[electrolyte.value]
            table.add_row(
                electrolyte.value.title(),
                f"{baseline[electrolyte.value]} mg",
                f"{band['min']}-{band['max']} mg",
            )
        console.print(table)


if __name__ == "__main__":
    app()
