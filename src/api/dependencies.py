# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get database sessions
- Get service instances

Example:
    @router.get("/students/{student_id}/balance")
    async def get_balance(
        student_id: str,
        db: AsyncSession = Depends(get_db),
    ):
        ...
"""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import get_settings
from src.domains.enrollment.service import EnrollmentService
from src.infrastructure.database.connection import (
    close_database,
    get_session,
    get_sessionmaker,
    init_database,
)

logger = logging.getLogger(__name__)

# Enrollment service singleton, created on first use
_enrollment_service: EnrollmentService | None = None


async def init_db() -> None:
    """Initialize the enrollment store connection."""
    await init_database(get_settings())


async def close_db() -> None:
    """Close the enrollment store connection."""
    global _enrollment_service

    _enrollment_service = None
    await close_database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session.

    Yields:
        AsyncSession committed on success and rolled back on error.
    """
    async with get_session() as session:
        yield session


def get_enrollment_service() -> EnrollmentService:
    """Get the shared enrollment service.

    The service opens its own sessions per enrollment, so one instance
    serves all requests.

    Returns:
        Configured EnrollmentService instance.
    """
    global _enrollment_service

    if _enrollment_service is None:
        _enrollment_service = EnrollmentService(get_sessionmaker(), settings=get_settings())
    return _enrollment_service
