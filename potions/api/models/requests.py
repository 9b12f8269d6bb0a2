"""
API Request Models

Pydantic models for the intake endpoints. The calculation endpoint takes the
FormulaCalculationRequest envelope, parsed by the engine itself.
"""

from typing import Any, Dict, Optional

from pydantic import Field

from potions.schemas import CamelModel


class ConversionRequest(CamelModel):
    """Request model for a single intake conversion."""

    value: Any = Field(None, description="Intake value, or mg amount for from-mg")
    electrolyte: Any = Field(None, description="sodium, potassium, magnesium or calcium")
    direction: str = Field("to-mg", description="to-mg or from-mg")


class BatchConversionRequest(CamelModel):
    """Request model for batch conversion. Items are checked one by one."""

    conversions: Any = Field(..., description="List of {id, value, electrolyte}")


class IntakeValidationRequest(CamelModel):
    """Request model for intake field validation."""

    intake_fields: Optional[Dict[str, Any]] = Field(
        None, description="Intake fields keyed like 'sodium-intake'"
    )
