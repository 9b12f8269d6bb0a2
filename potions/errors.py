"""
Error types raised at the engine boundary.

Standard error codes:
- INVALID_REQUEST: Request envelope or survey record could not be parsed
- VALIDATION_ERROR: Survey record failed validation (returned, never raised)
- INVALID_ELECTROLYTE: Electrolyte name is not one of the four supported
- INTERNAL_ERROR: Unexpected fault, reported without internal details
"""

from typing import List, Optional

INVALID_REQUEST = "INVALID_REQUEST"
VALIDATION_ERROR = "VALIDATION_ERROR"
INVALID_ELECTROLYTE = "INVALID_ELECTROLYTE"
INTERNAL_ERROR = "INTERNAL_ERROR"


class FormulationError(Exception):
    """Base error for the formulation engine.

    Attributes:
        code: Machine-readable error code
        details: List of error detail strings
    """

    code = INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[List[str]] = None):
        self.message = message
        self.details = details or []
        super().__init__(f"{self.code}: {message}")


class InvalidRequestError(FormulationError):
    """Raised when a request is structurally unusable (missing or malformed fields)."""

    code = INVALID_REQUEST


class UnknownElectrolyteError(FormulationError):
    """Raised when an electrolyte name is not sodium, potassium, magnesium or calcium."""

    code = INVALID_ELECTROLYTE

    def __init__(self, electrolyte: object):
        self.electrolyte = electrolyte
        super().__init__(
            "Invalid electrolyte. Must be one of: sodium, potassium, magnesium, calcium",
            [f"Got: {electrolyte!r}"],
        )
