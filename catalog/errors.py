"""
catalog/errors.py
Centralized error handling for hosts that expose the catalog over HTTP

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional)
}

HTTP STATUS CODE DISCIPLINE:
- 400: Invalid input (ValidationError)
- 404: Entity does not exist (NotFoundError, BatchNotFoundError)
- 409: Precondition or capacity conflict (PublishGuardError, NotOpenError,
       BatchFullError, UniquenessError, OfferUnavailableError)
- 422: Request body failed FastAPI validation
- 503: Store failure or timeout (StoreUnavailableError)
- 500: NEVER caused by user input (internal only)
"""
import logging
import uuid
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from catalog.exceptions import CatalogException

logger = logging.getLogger(__name__)


class ErrorCode:
    """Codes for errors raised outside CatalogException; those carry their own `code`."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_MAPPING = {
    400: "Bad Request",
    404: "Not Found",
    409: "Conflict",
    422: "Validation Error",
    503: "Service Unavailable",
    500: "Internal Error",
}


def error_body(exc: CatalogException) -> Dict[str, Any]:
    content = {
        "success": False,
        "error": ERROR_MAPPING.get(exc.status_code, "Error"),
        "message": exc.message,
        "code": exc.code,
    }
    if exc.details:
        content["details"] = exc.details
    return content


async def catalog_error_handler(request: Request, exc: CatalogException):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"Catalog error on {request.url.path}: {exc.code} - {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    error_details = [
        {"loc": error.get("loc"), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": ERROR_MAPPING[422],
            "message": "Request validation failed",
            "code": ErrorCode.VALIDATION_ERROR,
            "details": {"errors": error_details},
        }
    )


async def global_exception_handler(request: Request, exc: Exception):
    log_id = str(uuid.uuid4())[:8]
    logger.error(f"[{log_id}] Unhandled exception on {request.url.path}: {type(exc).__name__}: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": ERROR_MAPPING[500],
            "message": "An unexpected error occurred. Please try again later.",
            "code": ErrorCode.INTERNAL_ERROR,
            "details": {"log_id": log_id},
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CatalogException, catalog_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
