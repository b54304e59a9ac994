"""
Global error handling middleware.

WHAT: Translate exceptions to appropriate HTTP responses
WHY: Consistent error responses with proper status codes
HOW: FastAPI exception handlers for business and validation exceptions
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from datetime import datetime

from ..utils.exceptions import (
    BusinessException,
    NotFoundException,
    UnauthorizedException,
    DuplicateActiveThreadException,
    ThreadClosedException,
    ConcurrentModificationException,
    InvalidStatusTransitionException,
    InvalidOfferException,
    InvalidPriceException,
    NothingToAcceptException,
    EmptyCartException,
    InsufficientStockException,
    ValidationException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


# First match wins; subclasses must come before their bases
STATUS_BY_EXCEPTION = [
    (NotFoundException, status.HTTP_404_NOT_FOUND),
    (UnauthorizedException, status.HTTP_403_FORBIDDEN),
    (DuplicateActiveThreadException, status.HTTP_409_CONFLICT),
    (ThreadClosedException, status.HTTP_409_CONFLICT),
    (ConcurrentModificationException, status.HTTP_409_CONFLICT),
    (InvalidStatusTransitionException, status.HTTP_409_CONFLICT),
    (InvalidOfferException, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidPriceException, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NothingToAcceptException, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (EmptyCartException, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InsufficientStockException, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ValidationException, status.HTTP_400_BAD_REQUEST),
]


def status_for(exc: BusinessException) -> int:
    for exc_type, status_code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle FastAPI RequestValidationError.

    WHAT: Request validation failed
    WHY: Invalid request payload or missing identity headers
    HOW: Return 400 with field errors
    """
    logger.warning(f"Validation error: {exc.errors()}")

    # Clean up error details to be JSON serializable
    cleaned_errors = []
    for error in exc.errors():
        cleaned_error = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": error.get("input")
        }
        if "ctx" in error:
            cleaned_error["ctx"] = {
                k: str(v) if isinstance(v, Exception) else v
                for k, v in error["ctx"].items()
            }
        cleaned_errors.append(cleaned_error)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": cleaned_errors,
            "timestamp": datetime.now().isoformat()
        }
    )


async def business_exception_handler(request: Request, exc: BusinessException):
    """
    Handle BusinessException and its subclasses.

    WHAT: Domain rule violated
    WHY: Callers branch on the error code
    HOW: Look up the status code by exception type
    """
    status_code = status_for(exc)

    if status_code == status.HTTP_409_CONFLICT:
        logger.info(f"Conflict on {request.method} {request.url.path}: {exc.code} - {exc.message}")
    else:
        logger.warning(f"Business exception on {request.method} {request.url.path}: {exc.code} - {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "details": exc.details,
            "timestamp": datetime.now().isoformat()
        }
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(BusinessException, business_exception_handler)

    logger.info("Exception handlers registered")
