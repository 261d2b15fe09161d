# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy models for the enrollment store.

Importing this package registers every table on Base.metadata and attaches
the store-level guards, so Base.metadata.create_all() yields the same
guarantees as the migrations.
"""

from src.infrastructure.database.models.base import Base, TimestampMixin, new_uuid
from src.infrastructure.database.models.ledger import CurrencyTransaction
from src.infrastructure.database.models.privileges import SERVICE_ROLE, service_grants
from src.infrastructure.database.models.roster import Classroom, QuizSubmission, Student
from src.infrastructure.database.models.triggers import attach_store_guards, guard_statements

attach_store_guards(Base.metadata)

__all__ = [
    "Base",
    "TimestampMixin",
    "new_uuid",
    "Classroom",
    "Student",
    "QuizSubmission",
    "CurrencyTransaction",
    "SERVICE_ROLE",
    "service_grants",
    "attach_store_guards",
    "guard_statements",
]
