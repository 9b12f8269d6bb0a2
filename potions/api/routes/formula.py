"""
Formula API Routes

Endpoint for calculating a personalized formulation from survey data.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from potions.api.dependencies import get_engine
from potions.engine import FormulationEngine

router = APIRouter()


@router.post("/formula/calculate")
async def calculate_formula(
    payload: Dict[str, Any] = Body(...),
    engine: FormulationEngine = Depends(get_engine),
) -> JSONResponse:
    """
    Calculate a formulation for one survey record.

    Body: {customerData: {...}, options: {validateOnly: bool}}

    Returns:
        200 with {success: true, data, validation} on success
        400 with {success: false, error} for malformed requests or
        {success: false, validation, error} when validation fails
    """
    response = engine.handle_request(payload)
    return JSONResponse(
        status_code=status.HTTP_200_OK if response.success else status.HTTP_400_BAD_REQUEST,
        content=response.model_dump(mode="json", by_alias=True, exclude_none=True),
    )
