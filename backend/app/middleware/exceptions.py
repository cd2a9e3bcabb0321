"""Error responses for the onboarding API.

Every error leaves the service in one envelope:

    {"error": {"code": "...", "message": "...", "details": {...}}}

which is the same shape app.services.notifications unwraps when the
billing API answers with an error.
"""

import logging
from typing import Optional, Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.utils.flag_store import FlagStoreError

logger = logging.getLogger(__name__)


class OnboardingException(Exception):
    """Base for errors the API reports with a specific code."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        super().__init__(message)


class SessionContextError(OnboardingException):
    """Request did not identify an onboarding session."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "SESSION_CONTEXT_REQUIRED"

    def __init__(self, message: str = "Onboarding session header required"):
        super().__init__(message)


class WorkflowStateError(OnboardingException):
    """The session has not reached the state an operation needs."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "WORKFLOW_STATE_ERROR"


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    content = {"error": {"code": error_code, "message": message}}
    if details:
        content["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _request_context(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


async def onboarding_exception_handler(request: Request, exc: OnboardingException) -> JSONResponse:
    logger.warning(
        f"{exc.error_code} on {request.url.path}: {exc.message}",
        extra={"error_code": exc.error_code, **_request_context(request)},
    )
    return create_error_response(exc.status_code, exc.message, exc.error_code)


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}", extra=_request_context(request))
    return create_error_response(exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Pydantic errors as a flat list of `field` / `message` / `type`."""
    errors = [
        {
            # body.tenant_id style, matching validate_payload
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        f"Validation error on {request.url.path} ({len(errors)} errors)",
        extra={"errors": errors, **_request_context(request)},
    )
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        "VALIDATION_ERROR",
        details={"errors": errors},
    )


async def flag_store_exception_handler(request: Request, exc: FlagStoreError) -> JSONResponse:
    """Storage failures that a strict writer let through."""
    logger.error(f"Flag store error on {request.url.path}: {exc}", extra=_request_context(request))
    return create_error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Onboarding storage temporarily unavailable. Please try again.",
        "FLAG_STORE_UNAVAILABLE",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}",
        extra=_request_context(request),
        exc_info=exc,
    )
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(OnboardingException, onboarding_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(FlagStoreError, flag_store_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
