"""
Error Handling for the Antique Appraiser

Centralized exception handlers for the FastAPI application, producing the
`{"error": ...}` JSON bodies the front end expects.

Usage:
    from services.error_handler import setup_error_handlers

    app = FastAPI()
    setup_error_handlers(app)
"""

import logging
import traceback
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from services.exceptions import AppraisalException

logger = logging.getLogger(__name__)


# ============================================================
# Error Response Helpers
# ============================================================

def create_error_response(
    error: AppraisalException,
    request: Optional[Request] = None,
) -> JSONResponse:
    """Create a standardized JSON error response."""
    response_data = error.to_dict()

    if request:
        response_data["path"] = str(request.url.path)

    return JSONResponse(
        status_code=error.status_code,
        content=response_data,
    )


def log_error(exc: AppraisalException) -> None:
    """Log error with severity matching its status code."""
    extra = {"details": exc.details, "cause": str(exc.cause) if exc.cause else None}
    if exc.status_code >= 500:
        logger.error(f"[{exc.code}] {exc}", extra=extra)
    else:
        logger.warning(f"[{exc.code}] {exc.message}", extra=extra)


# ============================================================
# Exception Handlers
# ============================================================

async def handle_appraisal_exception(
    request: Request,
    exc: AppraisalException,
) -> JSONResponse:
    """Handle AppraisalException and its subclasses."""
    log_error(exc)
    return create_error_response(exc, request)


async def handle_request_validation(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Malformed bodies and query parameters become plain 400s."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {location} {first.get('msg', '')}".strip()
    logger.warning(f"[VALIDATION] {request.url.path}: {message}")
    return JSONResponse(
        status_code=400,
        content={"error": message, "code": "VALIDATION_ERROR"},
    )


def make_generic_handler(debug: bool):
    async def handle_generic_exception(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            f"Unhandled exception in {request.url.path}: {type(exc).__name__}: {exc}",
            exc_info=True,
        )

        content = {
            "error": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
            "path": str(request.url.path),
        }
        if debug:
            content["debug"] = {
                "exception": type(exc).__name__,
                "message": str(exc),
                "traceback": traceback.format_exc(),
            }
        return JSONResponse(status_code=500, content=content)

    return handle_generic_exception


# ============================================================
# Setup Function
# ============================================================

def setup_error_handlers(app: FastAPI, debug: bool = False):
    """
    Configure error handlers for the FastAPI application.

    Args:
        app: The FastAPI application instance
        debug: If True, include detailed error info in 500 responses
    """
    app.add_exception_handler(AppraisalException, handle_appraisal_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, make_generic_handler(debug))

    logger.info(f"[ERROR HANDLER] Configured (debug={debug})")
