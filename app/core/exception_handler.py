"""
DRF exception handler for application errors.

Renders core.exceptions errors raised by services with their to_dict()
payload and an HTTP status chosen by error kind. Everything else falls
through to DRF's default handler.

Status mapping:
    ValidationError      -> 400
    NotFoundError        -> 404
    ConflictError        -> 409
    ExternalServiceError -> 503
    other application    -> 400

Configured in settings:
    REST_FRAMEWORK = {
        "EXCEPTION_HANDLER": "core.exception_handler.application_exception_handler",
    }
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

# Checked in order; first match wins
STATUS_BY_ERROR: list[tuple[type[BaseApplicationError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ExternalServiceError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: BaseApplicationError) -> int:
    """Return the HTTP status code for an application error."""
    for error_class, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def application_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """
    Convert application errors to responses, delegate the rest to DRF.

    Args:
        exc: The raised exception
        context: DRF handler context (view, request, args, kwargs)

    Returns:
        Response, or None to let Django handle the exception
    """
    if not isinstance(exc, BaseApplicationError):
        return exception_handler(exc, context)

    status_code = status_for(exc)
    view = context.get("view")
    log = logger.warning if status_code >= 500 else logger.info
    log(
        f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'unknown view'}: {exc.message}",
        extra={"error_code": exc.error_code, "status_code": status_code},
    )

    payload = exc.to_dict()
    if isinstance(exc, ExternalServiceError):
        # Driver messages stay in the logs
        payload.pop("details", None)
    return Response(payload, status=status_code)
