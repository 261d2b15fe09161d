# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP mapping of enrollment errors.

Every error body has the same shape: {"error": <category>, "detail": <message>}.
Retryable failures are answered with 503 and a Retry-After header.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.core.errors import (
    EligibilityError,
    EligibilityReason,
    EnrollmentError,
    ErrorCategory,
)

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 2

STATUS_BY_CATEGORY: dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.ELIGIBILITY: status.HTTP_403_FORBIDDEN,
    ErrorCategory.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCategory.NAME_COLLISION: status.HTTP_409_CONFLICT,
    ErrorCategory.CODE_GENERATION_EXHAUSTED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCategory.TRANSIENT_DATABASE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCategory.FATAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_body(error: str, detail: str) -> dict[str, str]:
    """Build the standard error body."""
    return {"error": error, "detail": detail}


def status_for(error: EnrollmentError) -> int:
    """Return the HTTP status for an enrollment error."""
    if isinstance(error, EligibilityError) and error.reason is EligibilityReason.NOT_FOUND:
        return status.HTTP_404_NOT_FOUND
    return STATUS_BY_CATEGORY[error.category]


def enrollment_error_response(error: EnrollmentError) -> JSONResponse:
    """Convert an enrollment error into a JSON error response.

    Args:
        error: The typed enrollment error.

    Returns:
        JSONResponse with the mapped status, body and Retry-After when
        the failure is retryable.
    """
    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if error.retryable else None
    return JSONResponse(
        status_code=status_for(error),
        content=error_body(error.category.value, error.user_message),
        headers=headers,
    )


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Answer malformed request bodies with 400 and the standard body."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    detail = f"{location}: {message}" if location else message
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(ErrorCategory.VALIDATION.value, detail),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Answer unexpected exceptions with 500 without leaking internals."""
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(ErrorCategory.FATAL.value, EnrollmentError.default_user_message),
    )
