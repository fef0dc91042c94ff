"""
Global error handling middleware.

WHAT: Translate market exceptions to appropriate HTTP responses
WHY: Consistent error responses with proper status codes
HOW: FastAPI exception handlers for the market error taxonomy
"""

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from datetime import datetime

from ..utils.exceptions import (
    MarketError,
    ValidationError,
    RecordNotFoundError,
    FundsError,
    RaceRejection,
    CorruptRecordError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _error_body(code: str, message: str, details=None) -> dict:
    return {
        "error": code,
        "message": message,
        "details": jsonable_encoder(details),
        "timestamp": datetime.now().isoformat()
    }


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle FastAPI RequestValidationError.

    WHAT: Request validation failed
    WHY: Invalid request payload
    HOW: Return 400 with field errors
    """
    logger.warning(f"Validation error: {exc.errors()}")

    cleaned_errors = []
    for error in exc.errors():
        cleaned_error = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": error.get("input")
        }
        # Convert ctx errors to strings
        if "ctx" in error:
            cleaned_error["ctx"] = {
                k: str(v) if isinstance(v, Exception) else v
                for k, v in error["ctx"].items()
            }
        cleaned_errors.append(cleaned_error)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("VALIDATION_ERROR", "Request validation failed", cleaned_errors)
    )


async def market_exception_handler(request: Request, exc: MarketError):
    """
    Handle MarketError and its subclasses.

    WHAT: Domain failure raised by an operation
    WHY: Clients branch on the status code and the error code
    HOW: Map the exception type to a status code
    """
    status_code = status.HTTP_400_BAD_REQUEST

    if isinstance(exc, RecordNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, RaceRejection):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, FundsError):
        status_code = status.HTTP_402_PAYMENT_REQUIRED
    elif isinstance(exc, CorruptRecordError):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, ValidationError):
        status_code = status.HTTP_400_BAD_REQUEST

    logger.warning(f"Market exception: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, exc.details)
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(MarketError, market_exception_handler)

    logger.info("Exception handlers registered")
