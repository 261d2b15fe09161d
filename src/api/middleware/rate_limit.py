# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Rate limiting using slowapi.

Quiz submissions are limited per client IP and per class code, so one
device cannot flood a class and one class cannot be flooded from many
devices. Eligibility checks are limited per client IP.

Example:
    @router.post("/{class_code}/enrollments")
    @limiter.limit(submit_per_ip)
    @limiter.limit(submit_per_class, key_func=get_class_code_key)
    async def submit_enrollment(request: Request, class_code: str, ...):
        ...
"""

import json
import logging

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from src.core.config import get_settings

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 60


def get_ip_only(request: Request) -> str:
    """Get client IP address only.

    Args:
        request: HTTP request.

    Returns:
        IP address string.
    """
    return f"ip:{get_remote_address(request)}"


def get_class_code_key(request: Request) -> str:
    """Key submissions by the class code in the request path.

    Args:
        request: HTTP request.

    Returns:
        Normalized class code key.
    """
    class_code = str(request.path_params.get("class_code", "")).strip().upper()
    return f"class:{class_code}"


def submit_per_ip() -> str:
    return get_settings().rate_limit.submit_per_ip


def submit_per_class() -> str:
    return get_settings().rate_limit.submit_per_class


def eligibility_per_ip() -> str:
    return get_settings().rate_limit.eligibility_per_ip


# Create the limiter instance
settings = get_settings()
limiter = Limiter(
    key_func=get_ip_only,
    storage_uri=settings.rate_limit.storage_uri,
    enabled=settings.rate_limit.enabled,
)


async def rate_limit_exceeded_handler(
    request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Returns a 429 Too Many Requests response with retry information.

    Args:
        request: HTTP request.
        exc: Rate limit exceeded exception.

    Returns:
        JSON response with error details.
    """
    logger.warning(
        "Rate limit exceeded: %s for %s on %s",
        exc.detail,
        get_ip_only(request),
        request.url.path,
    )

    body = {
        "error": "rate_limited",
        "detail": "Too many submissions. Please wait a minute and try again.",
    }
    return Response(
        content=json.dumps(body),
        status_code=429,
        media_type="application/json",
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )
