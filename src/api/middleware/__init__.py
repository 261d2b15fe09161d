# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware components.

This package provides middleware for request processing:
- RequestContextMiddleware: Request id binding for structured logs.
- limiter: slowapi rate limiter for submissions and eligibility checks.
"""

from src.api.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from src.api.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
    "limiter",
    "rate_limit_exceeded_handler",
]
