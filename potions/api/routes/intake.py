"""
Intake API Routes

Endpoints for converting intake values and validating intake fields.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from potions.api.dependencies import get_engine
from potions.api.models.requests import (
    BatchConversionRequest,
    ConversionRequest,
    IntakeValidationRequest,
)
from potions.api.models.responses import BatchConversionResponse
from potions.engine import FormulationEngine, error_response, format_validation_errors
from potions.errors import InvalidRequestError

router = APIRouter()


def _json(model, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=model.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def _invalid_body(exc: ValidationError) -> JSONResponse:
    return _json(
        error_response(InvalidRequestError("Invalid request body", format_validation_errors(exc))),
        status.HTTP_400_BAD_REQUEST,
    )


@router.post("/intake/convert")
async def convert_intake(
    payload: Dict[str, Any] = Body(...),
    engine: FormulationEngine = Depends(get_engine),
) -> JSONResponse:
    """
    Convert intake values to mg.

    A body with a "conversions" key is a batch: every item is converted
    independently and reported in request order. Otherwise the body is a
    single {value, electrolyte, direction} conversion.
    """
    if "conversions" in payload:
        request = BatchConversionRequest.model_validate(payload)
        if not isinstance(request.conversions, list) or not request.conversions:
            return _json(
                BatchConversionResponse(success=False, results=[]),
                status.HTTP_400_BAD_REQUEST,
            )
        results = engine.convert_batch(request.conversions)
        return _json(
            BatchConversionResponse(
                success=all(r.success for r in results), results=results
            )
        )

    try:
        request = ConversionRequest.model_validate(payload)
    except ValidationError as e:
        return _invalid_body(e)
    result = engine.convert(request.value, request.electrolyte, request.direction)
    return _json(
        result, status.HTTP_200_OK if result.success else status.HTTP_400_BAD_REQUEST
    )


@router.post("/intake/validate")
async def validate_intake(
    payload: Dict[str, Any] = Body(...),
    engine: FormulationEngine = Depends(get_engine),
) -> JSONResponse:
    """
    Validate intake fields and preview their mg conversions.

    Body: {intakeFields: {"sodium-intake": "4-6", "potassium-intake": "3.5", ...}}
    """
    try:
        request = IntakeValidationRequest.model_validate(payload)
    except ValidationError as e:
        return _invalid_body(e)
    response = engine.validate_intake_fields(request.intake_fields)
    status_code = (
        status.HTTP_400_BAD_REQUEST if request.intake_fields is None else status.HTTP_200_OK
    )
    return _json(response, status_code)
