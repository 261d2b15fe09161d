# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the enrollment store.

Provides SQLAlchemy async connections (asyncpg for PostgreSQL, aiosqlite for
SQLite), the ORM models and classification of store errors.

Example:
    from src.infrastructure.database import get_session, init_database

    await init_database(settings)
    async with get_session() as session:
        result = await session.execute(select(Classroom))
"""

from src.infrastructure.database.connection import (
    DatabaseError,
    build_engine,
    build_sessionmaker,
    check_database_connection,
    close_database,
    get_session,
    get_sessionmaker,
    init_database,
)
from src.infrastructure.database.errors import (
    StoreConstraint,
    is_transient_error,
    violated_constraint,
)

__all__ = [
    "DatabaseError",
    "build_engine",
    "build_sessionmaker",
    "check_database_connection",
    "close_database",
    "get_session",
    "get_sessionmaker",
    "init_database",
    "StoreConstraint",
    "is_transient_error",
    "violated_constraint",
]
