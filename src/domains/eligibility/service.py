# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Eligibility checks for joining a class.

This module provides the EligibilityChecker class for:
- Resolving a class code to a classroom
- Deciding whether the classroom accepts enrollments (exists, active,
  not expired)
- The advisory pre-check shown before the quiz (seats left, name taken)

The pre-check runs outside any transaction and only informs the student.
The enrollment transaction repeats the decisive checks under the class lock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.errors import ELIGIBILITY_MESSAGES, EligibilityReason
from src.infrastructure.database.models import Classroom, Student
from src.utils.datetime import is_expired
from src.utils.logging import get_logger
from src.utils.names import StudentName

logger = get_logger(__name__)


def normalize_class_code(class_code: str) -> str:
    """Trim and upper-case a class code for lookup."""
    return (class_code or "").strip().upper()


@dataclass
class Eligibility:
    """Result of an eligibility check.

    Attributes:
        eligible: Whether the class accepts enrollments.
        classroom: The resolved classroom, if it exists.
        reason: Why the class is not eligible, if it is not.
    """

    eligible: bool
    classroom: Classroom | None = None
    reason: EligibilityReason | None = None

    @property
    def message(self) -> str | None:
        """Classroom-safe explanation, if not eligible."""
        return ELIGIBILITY_MESSAGES[self.reason] if self.reason else None


@dataclass
class EligibilityReport:
    """Advisory pre-check result shown before the quiz."""

    class_code: str
    eligible: bool
    reason: EligibilityReason | None = None
    class_id: str | None = None
    class_name: str | None = None
    enrolled_count: int = 0
    seat_limit: int | None = None
    name_available: bool | None = None

    @property
    def seats_remaining(self) -> int | None:
        """Seats left, or None when the class is unlimited."""
        if self.seat_limit is None:
            return None
        return max(self.seat_limit - self.enrolled_count, 0)

    @property
    def message(self) -> str | None:
        """Classroom-safe explanation, if not eligible."""
        return ELIGIBILITY_MESSAGES[self.reason] if self.reason else None


async def count_enrolled(db: AsyncSession, class_id: str) -> int:
    """Count students currently enrolled in a class."""
    result = await db.execute(
        select(func.count()).select_from(Student).where(Student.class_id == class_id)
    )
    return int(result.scalar_one())


async def name_taken(db: AsyncSession, class_id: str, key: str) -> bool:
    """Check whether a name key is already used in a class."""
    result = await db.execute(
        select(Student.id).where(Student.class_id == class_id, Student.name_key == key).limit(1)
    )
    return result.scalar_one_or_none() is not None


class EligibilityChecker:
    """Resolves class codes and decides whether a class accepts enrollments.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize eligibility checker.

        Args:
            db: Async database session.
        """
        self.db = db

    async def check_eligibility(
        self,
        class_code: str,
        lock: bool = False,
        now: datetime | None = None,
    ) -> Eligibility:
        """Check whether a class accepts enrollments.

        Args:
            class_code: Class code as entered (trimmed, any case).
            lock: Lock the class row for the rest of the current transaction
                (SELECT ... FOR UPDATE). Used by the enrollment transaction.
            now: Reference time for the expiry check.

        Returns:
            Eligibility with the classroom and, when not eligible, the reason.
        """
        code = normalize_class_code(class_code)
        if not code:
            return Eligibility(eligible=False, reason=EligibilityReason.NOT_FOUND)

        stmt = select(Classroom).where(Classroom.class_code == code)
        if lock:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        classroom = result.scalar_one_or_none()

        if classroom is None:
            return Eligibility(eligible=False, reason=EligibilityReason.NOT_FOUND)
        if not classroom.is_active:
            return Eligibility(eligible=False, classroom=classroom, reason=EligibilityReason.INACTIVE)
        if is_expired(classroom.expires_at, now):
            return Eligibility(eligible=False, classroom=classroom, reason=EligibilityReason.EXPIRED)

        return Eligibility(eligible=True, classroom=classroom)

    async def precheck(
        self,
        class_code: str,
        student_name: StudentName | None = None,
    ) -> EligibilityReport:
        """Advisory pre-check before the quiz is shown.

        Adds the enrolled count and seat limit to the eligibility decision,
        and reports CLASS_FULL or NAME_TAKEN when they already apply. The
        enrollment transaction decides again; this report only informs.

        Args:
            class_code: Class code as entered.
            student_name: Optional validated name to check for availability.

        Returns:
            EligibilityReport for display.
        """
        code = normalize_class_code(class_code)
        eligibility = await self.check_eligibility(code)
        classroom = eligibility.classroom

        report = EligibilityReport(
            class_code=code,
            eligible=eligibility.eligible,
            reason=eligibility.reason,
        )
        if classroom is None:
            logger.info("eligibility_precheck", class_code=code, reason=report.reason.value)
            return report

        report.class_id = classroom.id
        report.class_name = classroom.name
        report.seat_limit = classroom.seat_limit
        report.enrolled_count = await count_enrolled(self.db, classroom.id)

        if student_name is not None:
            report.name_available = not await name_taken(self.db, classroom.id, student_name.key)

        if report.eligible:
            if report.seat_limit is not None and report.enrolled_count >= report.seat_limit:
                report.eligible = False
                report.reason = EligibilityReason.CLASS_FULL
            elif report.name_available is False:
                report.eligible = False
                report.reason = EligibilityReason.NAME_TAKEN

        logger.info(
            "eligibility_precheck",
            class_code=code,
            eligible=report.eligible,
            reason=report.reason.value if report.reason else None,
            enrolled_count=report.enrolled_count,
            seat_limit=report.seat_limit,
        )
        return report
