# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Liveness and readiness endpoints.

/health reports whether the process is up and the enrollment store answers.
/ready additionally requires the schema to be at the head revision, since an
instance running against an unmigrated store would reject every enrollment
on a missing table or trigger.
"""

import logging
import time
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from src import __version__
from src.core.config import get_settings
from src.infrastructure.database.connection import check_database_connection
from src.infrastructure.database.migrations.runner import get_migration_status
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

_started = time.monotonic()


class ComponentHealth(BaseModel):
    """Status of one dependency."""

    status: str = Field(description="healthy or unhealthy")
    latency_ms: float | None = Field(None, description="Check latency in ms")
    message: str | None = Field(None, description="Why the check failed")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or degraded")
    timestamp: str = Field(description="Server time, ISO 8601 UTC")
    version: str
    environment: str
    uptime_seconds: int
    database: ComponentHealth


class ReadinessResponse(BaseModel):
    ready: bool
    checks: dict[str, Any]


async def check_database() -> ComponentHealth:
    """Time a round trip to the enrollment store."""
    start = time.perf_counter()
    reachable = await check_database_connection()
    latency_ms = round((time.perf_counter() - start) * 1000, 2)

    if not reachable:
        logger.error("Enrollment store unreachable")
        return ComponentHealth(status="unhealthy", message="Database unreachable")
    return ComponentHealth(status="healthy", latency_ms=latency_ms)


async def check_schema() -> ComponentHealth:
    """Compare the store's revision with the newest known revision."""
    try:
        status = await get_migration_status(get_settings().db.url)
    except Exception as e:
        logger.error("Schema revision check failed: %s", e)
        return ComponentHealth(status="unhealthy", message="Schema revision unavailable")

    if not status.is_up_to_date:
        return ComponentHealth(
            status="unhealthy",
            message=f"At {status.current_revision}, pending: {', '.join(status.pending)}",
        )
    return ComponentHealth(status="healthy", message=status.current_revision)


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness check."""
    database = await check_database()

    return HealthResponse(
        status="healthy" if database.status == "healthy" else "degraded",
        timestamp=utc_now().isoformat(),
        version=__version__,
        environment=get_settings().environment,
        uptime_seconds=int(time.monotonic() - _started),
        database=database,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check() -> ReadinessResponse:
    """Readiness check: store reachable and schema current."""
    database = await check_database()
    schema = await check_schema() if database.status == "healthy" else None

    checks: dict[str, Any] = {"database": database.model_dump(exclude_none=True)}
    if schema is not None:
        checks["schema"] = schema.model_dump(exclude_none=True)

    return ReadinessResponse(
        ready=database.status == "healthy" and schema is not None and schema.status == "healthy",
        checks=checks,
    )
