"""
FastAPI Application

Main entry point for the formulation engine web API.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from potions.api.models.responses import HealthResponse, ServiceInfo
from potions.api.routes import formula, intake
from potions.config import get_settings
from potions.constants import FORMULA_VERSION
from potions.errors import INTERNAL_ERROR, INVALID_REQUEST
from potions.logger import setup_logger

settings = get_settings()
setup_logger(settings=settings)

app = FastAPI(
    title=settings.api_title,
    description="Deterministic personalized electrolyte formulations from survey data",
    version=FORMULA_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(formula.router, prefix="/api", tags=["Formula"])
app.include_router(intake.router, prefix="/api", tags=["Intake"])


@app.get("/", response_model=ServiceInfo)
async def root() -> ServiceInfo:
    """Root endpoint - API information."""
    return ServiceInfo(
        name=settings.api_title,
        version=FORMULA_VERSION,
        docs="/docs",
        health="/health",
        endpoints={
            "calculate": "/api/formula/calculate",
            "convert": "/api/intake/convert",
            "validate": "/api/intake/validate",
        },
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy", service="formulation-engine", formula_version=FORMULA_VERSION
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies get the same INVALID_REQUEST envelope as the engine returns."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": {
                "code": INVALID_REQUEST,
                "message": "Request body must be a JSON object",
            },
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions without leaking internals."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": {"code": INTERNAL_ERROR, "message": "Internal server error"},
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "potions.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
