"""API error handling and response helpers."""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from unified_billing.services.errors import BillingError, ValidationError

logger = logging.getLogger(__name__)


def error_response(error: BillingError) -> Dict[str, Any]:
    """Create a standardized error response."""
    body: Dict[str, Any] = {
        "code": error.code,
        "message": error.message,
    }
    if error.field:
        body["field"] = error.field
    return {"success": False, "error": body}


async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    """Map engine errors to their HTTP status."""
    if exc.http_status >= 500:
        logger.error("Billing error on %s: %s", request.url.path, exc.message, exc_info=exc)
    else:
        logger.warning("Billing error on %s: %s (%s)", request.url.path, exc.message, exc.code)
    return JSONResponse(status_code=exc.http_status, content=error_response(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are reported as 400 like every other validation failure."""
    first = exc.errors()[0] if exc.errors() else {}
    location = [str(part) for part in first.get("loc", ()) if part != "body"]
    error = ValidationError(
        first.get("msg", "Invalid request"),
        field=".".join(location) or None,
    )
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_response(error))


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": {"code": "internal_error", "message": "Internal server error"}},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BillingError, billing_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)


__all__ = ["error_response", "register_error_handlers"]
