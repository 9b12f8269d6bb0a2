"""
API Response Models

Response envelopes not already defined by the engine.
"""

from typing import Dict, List

from pydantic import Field

from potions.schemas import BatchConversionResult, CamelModel


class BatchConversionResponse(CamelModel):
    """Batch conversion results, in request order."""

    success: bool = Field(..., description="True only if every item converted")
    results: List[BatchConversionResult] = Field(default_factory=list)


class HealthResponse(CamelModel):
    status: str
    service: str
    formula_version: str


class ServiceInfo(CamelModel):
    name: str
    version: str
    docs: str
    health: str
    endpoints: Dict[str, str]
