# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Quiz answer samples
- Test settings with fast retries
- A file-backed SQLite enrollment store with the store guards installed
- Helpers to seed classrooms and read rows back
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.core.config.settings import DatabaseSettings, EnrollmentSettings, Settings
from src.infrastructure.database.connection import build_engine, build_sessionmaker
from src.infrastructure.database.models import Base, Classroom, Student

# =============================================================================
# Quiz Answer Fixtures
# =============================================================================

# Scores ISTJ (Beaver, "BVR" prefix) with a visual learning style.
BEAVER_ANSWERS = [
    "A", "B", "B", "B",  # I
    "A", "B", "A", "B",  # S
    "A", "A", "B", "A",  # T
    "A", "A", "A", "A",  # J
    "A", "A", "A", "A",  # visual
]

# Scores ESTJ (Border Collie, "COL" prefix) with a kinesthetic learning style.
COLLIE_ANSWERS = ["A"] * 16 + ["A", "D", "D", "D"]


@pytest.fixture
def beaver_answers() -> list[str]:
    """Answer letters in question order that score a Beaver."""
    return list(BEAVER_ANSWERS)


@pytest.fixture
def collie_answers() -> list[str]:
    """Answer letters in question order that score a Border Collie."""
    return list(COLLIE_ANSWERS)


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings for tests: no backoff delay between transaction retries."""
    return Settings(
        environment="test",
        enrollment=EnrollmentSettings(retry_base_delay=0.0, retry_max_delay=0.0),
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db_settings(tmp_path) -> DatabaseSettings:
    """SQLite database settings pointing at a per-test file."""
    return DatabaseSettings(
        url_override=f"sqlite+aiosqlite:///{tmp_path / 'enrollment.db'}",
        sqlite_busy_timeout=30.0,
    )


@pytest_asyncio.fixture
async def db_engine(db_settings: DatabaseSettings) -> AsyncGenerator[AsyncEngine, None]:
    """Create an engine with all tables and store guards installed."""
    engine = build_engine(db_settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def db_sessionmaker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessionmaker bound to the test engine."""
    return build_sessionmaker(db_engine)


@pytest_asyncio.fixture
async def db_session(
    db_sessionmaker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A session for tests that do not run enrollments concurrently.

    SQLite transactions take the write lock, so tests that also call the
    enrollment service should use create_classroom and count_rows instead.
    """
    async with db_sessionmaker() as session:
        yield session


@pytest.fixture
def create_classroom(
    db_sessionmaker: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[Classroom]]:
    """Factory that commits a classroom and returns it."""

    async def _create(
        class_code: str = "482913",
        name: str = "Ms. Rivera's 5th Grade",
        is_active: bool = True,
        expires_at: datetime | None = None,
        seat_limit: int | None = None,
    ) -> Classroom:
        classroom = Classroom(
            class_code=class_code.upper(),
            name=name,
            is_active=is_active,
            expires_at=expires_at,
            seat_limit=seat_limit,
        )
        async with db_sessionmaker() as session:
            async with session.begin():
                session.add(classroom)
        return classroom

    return _create


async def _add_student(
    session: AsyncSession,
    classroom: Classroom,
    student_name: str = "Ava R",
    identity_code: str = "BVR-AAAA",
) -> Student:
    """Insert a student row directly, bypassing the enrollment service."""
    student = Student(
        class_id=classroom.id,
        student_name=student_name,
        name_key=student_name.casefold(),
        identity_code=identity_code,
        personality_type="ISTJ",
        archetype="Beaver",
        genius_type="Doer",
        learning_style="visual",
    )
    session.add(student)
    await session.flush()
    return student


@pytest.fixture
def add_student() -> Callable[..., Awaitable[Student]]:
    """Insert a student row into a session, bypassing the enrollment service."""
    return _add_student


@pytest.fixture
def count_rows(
    db_sessionmaker: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[int]]:
    """Count rows of a model, optionally filtered, in a fresh session."""

    async def _count(model: Any, *criteria: Any) -> int:
        async with db_sessionmaker() as session:
            result = await session.execute(
                select(func.count()).select_from(model).where(*criteria)
            )
            return int(result.scalar_one())

    return _count


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (uses a real store)"
    )
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring TEST_DATABASE_URL"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
