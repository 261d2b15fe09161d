# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment transaction coordinator.

This module provides the EnrollmentService class, which turns one quiz
submission into one enrolled student:

    VALIDATING -> SEAT_CHECK -> NAME_CHECK -> CODE_MINT -> INSERT
        -> LEDGER_GRANT -> COMMITTED

Any state can end in ABORTED. Everything after validation happens in one
database transaction that holds the class row lock (SELECT ... FOR UPDATE on
PostgreSQL, BEGIN IMMEDIATE on SQLite), so the seat count, the name check
and the inserts cannot interleave with another enrollment for the same
class. The student row, its quiz submission and its first ledger entry
commit together or not at all.

Business rejections are returned as EnrollmentFailure after an explicit
rollback. Serialization conflicts, deadlocks and lock timeouts retry the
whole transaction with backoff; anything unexpected becomes a FatalError.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config.settings import Settings, get_settings
from src.core.errors import (
    CapacityExceededError,
    CodeGenerationExhaustedError,
    EligibilityError,
    EnrollmentError,
    FatalError,
    NameCollisionError,
    TransientDatabaseError,
    ValidationError,
)
from src.domains.eligibility.service import (
    EligibilityChecker,
    count_enrolled,
    name_taken,
    normalize_class_code,
)
from src.domains.enrollment.retry import RetryPolicy
from src.domains.identity_code.generator import IdentityCodeGenerator, prefix_for
from src.domains.ledger.service import LedgerService
from src.domains.scoring.engine import QuizResult, ScoringEngine
from src.infrastructure.database.errors import (
    StoreConstraint,
    is_transient_error,
    violated_constraint,
)
from src.infrastructure.database.models import QuizSubmission, Student, new_uuid
from src.models.ledger import TransactionKind
from src.utils.logging import get_logger, log_context
from src.utils.names import StudentName, normalize_grade, parse_student_name

logger = get_logger(__name__)

GRANT_DESCRIPTION = "Quiz completion reward"


class EnrollmentState(str, Enum):
    """States of one enrollment."""

    VALIDATING = "VALIDATING"
    SEAT_CHECK = "SEAT_CHECK"
    NAME_CHECK = "NAME_CHECK"
    CODE_MINT = "CODE_MINT"
    INSERT = "INSERT"
    LEDGER_GRANT = "LEDGER_GRANT"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"


@dataclass(frozen=True)
class EnrollmentSuccess:
    """A committed enrollment.

    Attributes:
        student_id: New student ID.
        identity_code: The student's shareable identity code.
        archetype: Animal archetype from the quiz.
        genius_type: Genius type of the archetype.
        personality_type: Four-letter personality type.
        learning_style: Primary learning style.
        student_name: Display name in the class.
        class_id: Class the student joined.
        class_code: Normalized class code.
        currency_balance: Balance after the initial grant.
        attempts: Transaction attempts used.
    """

    student_id: str
    identity_code: str
    archetype: str
    genius_type: str
    personality_type: str
    learning_style: str
    student_name: str
    class_id: str
    class_code: str
    currency_balance: int
    attempts: int = 1
    ok: bool = field(default=True, init=False)

    @property
    def state(self) -> EnrollmentState:
        return EnrollmentState.COMMITTED


@dataclass(frozen=True)
class EnrollmentFailure:
    """An enrollment that did not commit.

    Attributes:
        error: Typed error describing the failure.
        state: State the enrollment was in when it aborted.
    """

    error: EnrollmentError
    state: EnrollmentState
    ok: bool = field(default=False, init=False)

    @property
    def category(self) -> str:
        return self.error.category.value

    @property
    def user_message(self) -> str:
        return self.error.user_message

    @property
    def retryable(self) -> bool:
        return self.error.retryable


EnrollmentOutcome = EnrollmentSuccess | EnrollmentFailure


@dataclass
class _Progress:
    """Mutable state tracker for one transaction attempt."""

    state: EnrollmentState = EnrollmentState.VALIDATING


class EnrollmentService:
    """Coordinates the enrollment transaction.

    Each call to enroll() uses its own sessions from the sessionmaker, so
    one service instance can be shared by concurrent requests.

    Attributes:
        settings: Application settings.
        scoring_engine: Scores quiz answers.
        code_generator: Generates candidate identity codes.
        retry_policy: Bounds code and transaction retries.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
        scoring_engine: ScoringEngine | None = None,
        code_generator: IdentityCodeGenerator | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize enrollment service.

        Args:
            sessionmaker: Factory for enrollment store sessions.
            settings: Application settings. Defaults to get_settings().
            scoring_engine: Scoring engine. Defaults to the standard key.
            code_generator: Identity code generator. Defaults to the
                configured suffix length.
            retry_policy: Retry policy. Defaults to the configured bounds.
            sleep: Awaitable sleep used for backoff.
        """
        self._sessionmaker = sessionmaker
        self.settings = settings or get_settings()
        self.scoring_engine = scoring_engine or ScoringEngine()
        self.code_generator = code_generator or IdentityCodeGenerator(
            suffix_length=self.settings.enrollment.code_suffix_length
        )
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings.enrollment)
        self._sleep = sleep

    async def enroll(
        self,
        class_code: str,
        student_name: StudentName | str,
        grade: str | None,
        raw_answers: Any,
    ) -> EnrollmentOutcome:
        """Enroll a student from a quiz submission.

        Args:
            class_code: Class code as entered.
            student_name: Validated StudentName, or a display name to validate.
            grade: Optional grade level.
            raw_answers: Quiz answers in any accepted shape.

        Returns:
            EnrollmentSuccess, or EnrollmentFailure carrying a typed error and
            the state the enrollment aborted in.
        """
        code = normalize_class_code(class_code)
        with log_context(class_code=code):
            return await self._enroll(code, student_name, grade, raw_answers)

    async def _enroll(
        self,
        code: str,
        student_name: StudentName | str,
        grade: str | None,
        raw_answers: Any,
    ) -> EnrollmentOutcome:
        try:
            if not code:
                raise ValidationError("Class code is required", field="class_code")
            name = (
                student_name
                if isinstance(student_name, StudentName)
                else parse_student_name(student_name)
            )
            grade_level = normalize_grade(grade)
            quiz_result = self.scoring_engine.score(raw_answers)
        except ValidationError as e:
            logger.info("enrollment_invalid", field=e.field, reason=e.message)
            return EnrollmentFailure(error=e, state=EnrollmentState.VALIDATING)

        precheck = await self._precheck(code)
        if precheck is not None:
            return precheck

        return await self._run_with_retry(code, name, grade_level, quiz_result)

    async def _precheck(self, code: str) -> EnrollmentFailure | None:
        """Cheap eligibility check outside the enrollment transaction."""
        try:
            async with self._sessionmaker() as session:
                eligibility = await EligibilityChecker(session).check_eligibility(code)
        except SQLAlchemyError as e:
            if is_transient_error(e):
                logger.warning("eligibility_precheck_conflict", error=str(e))
                return EnrollmentFailure(
                    error=TransientDatabaseError(f"Eligibility check failed: {e}"),
                    state=EnrollmentState.VALIDATING,
                )
            return self._fatal(e, EnrollmentState.VALIDATING)

        if eligibility.eligible:
            return None
        logger.info("enrollment_ineligible", reason=eligibility.reason.value)
        return EnrollmentFailure(
            error=EligibilityError(eligibility.reason, code),
            state=EnrollmentState.VALIDATING,
        )

    async def _run_with_retry(
        self,
        code: str,
        name: StudentName,
        grade_level: str | None,
        quiz_result: QuizResult,
    ) -> EnrollmentOutcome:
        """Run the transaction, retrying it whole on transient store errors."""
        policy = self.retry_policy
        progress = _Progress()

        for attempt in range(1, policy.max_transaction_attempts + 1):
            progress = _Progress()
            try:
                # The transaction finishes as a unit even if the caller is cancelled.
                outcome = await asyncio.shield(
                    self._transaction(code, name, grade_level, quiz_result, progress, attempt)
                )
            except SQLAlchemyError as e:
                if not is_transient_error(e):
                    return self._fatal(e, progress.state)
                logger.warning(
                    "enrollment_transient_conflict",
                    attempt=attempt,
                    state=progress.state.value,
                    error=str(e),
                )
                if attempt < policy.max_transaction_attempts:
                    await self._sleep(policy.delay(attempt))
                continue
            except Exception as e:
                return self._fatal(e, progress.state)

            self._log_outcome(outcome)
            return outcome

        error = TransientDatabaseError(
            f"Enrollment for class {code!r} conflicted on every attempt",
            attempts=policy.max_transaction_attempts,
        )
        logger.error(
            "enrollment_retries_exhausted",
            attempts=policy.max_transaction_attempts,
        )
        return EnrollmentFailure(error=error, state=progress.state)

    async def _transaction(
        self,
        code: str,
        name: StudentName,
        grade_level: str | None,
        quiz_result: QuizResult,
        progress: _Progress,
        attempt: int,
    ) -> EnrollmentOutcome:
        """One attempt of the enrollment transaction."""
        async with self._sessionmaker() as session:
            async with session.begin() as tx:
                outcome = await self._protocol(
                    session, code, name, grade_level, quiz_result, progress, attempt
                )
                if isinstance(outcome, EnrollmentFailure):
                    await tx.rollback()
                    return outcome
            progress.state = EnrollmentState.COMMITTED
            return outcome

    async def _protocol(
        self,
        session: AsyncSession,
        code: str,
        name: StudentName,
        grade_level: str | None,
        quiz_result: QuizResult,
        progress: _Progress,
        attempt: int,
    ) -> EnrollmentOutcome:
        # Re-check eligibility and take the class lock.
        progress.state = EnrollmentState.VALIDATING
        eligibility = await EligibilityChecker(session).check_eligibility(code, lock=True)
        if not eligibility.eligible:
            return EnrollmentFailure(
                error=EligibilityError(eligibility.reason, code), state=progress.state
            )
        classroom = eligibility.classroom

        progress.state = EnrollmentState.SEAT_CHECK
        if classroom.seat_limit is not None:
            enrolled = await count_enrolled(session, classroom.id)
            if enrolled >= classroom.seat_limit:
                return EnrollmentFailure(
                    error=CapacityExceededError(code, classroom.seat_limit),
                    state=progress.state,
                )

        progress.state = EnrollmentState.NAME_CHECK
        if await name_taken(session, classroom.id, name.key):
            return EnrollmentFailure(
                error=NameCollisionError(code, name.display), state=progress.state
            )

        student = await self._insert_student(
            session, classroom.id, code, name, grade_level, quiz_result, progress
        )
        if isinstance(student, EnrollmentFailure):
            return student

        progress.state = EnrollmentState.LEDGER_GRANT
        grant = self.settings.enrollment.initial_grant
        session.add(
            QuizSubmission(
                student_id=student.id,
                answers=[answer.to_dict() for answer in quiz_result.answers],
                coins_earned=grant,
            )
        )
        await session.flush()

        ledger = LedgerService(session, max_entry_amount=self.settings.ledger.max_entry_amount)
        await ledger.grant(student.id, grant, TransactionKind.QUIZ_REWARD, GRANT_DESCRIPTION)
        balance = await ledger.balance_of(student.id)

        return EnrollmentSuccess(
            student_id=student.id,
            identity_code=student.identity_code,
            archetype=quiz_result.archetype,
            genius_type=quiz_result.genius_type,
            personality_type=quiz_result.personality_type,
            learning_style=quiz_result.learning_style,
            student_name=name.display,
            class_id=classroom.id,
            class_code=code,
            currency_balance=balance,
            attempts=attempt,
        )

    async def _insert_student(
        self,
        session: AsyncSession,
        class_id: str,
        code: str,
        name: StudentName,
        grade_level: str | None,
        quiz_result: QuizResult,
        progress: _Progress,
    ) -> Student | EnrollmentFailure:
        """Mint an identity code and insert the student, regenerating on collision.

        Each insert runs in a savepoint, so a duplicate code only rolls back
        that insert.
        """
        attempts = self.retry_policy.max_code_attempts
        for code_attempt in range(1, attempts + 1):
            progress.state = EnrollmentState.CODE_MINT
            identity_code = self.code_generator.generate(quiz_result.archetype)

            progress.state = EnrollmentState.INSERT
            student = Student(
                id=new_uuid(),
                class_id=class_id,
                student_name=name.display,
                name_key=name.key,
                first_name=name.first_name,
                last_initial=name.last_initial,
                grade_level=grade_level,
                identity_code=identity_code,
                personality_type=quiz_result.personality_type,
                archetype=quiz_result.archetype,
                genius_type=quiz_result.genius_type,
                learning_style=quiz_result.learning_style,
            )
            try:
                async with session.begin_nested():
                    session.add(student)
            except IntegrityError as e:
                constraint = violated_constraint(e)
                if constraint is StoreConstraint.IDENTITY_CODE:
                    logger.warning(
                        "identity_code_collision",
                        code_attempt=code_attempt,
                        prefix=prefix_for(quiz_result.archetype),
                    )
                    continue
                if constraint is StoreConstraint.STUDENT_NAME:
                    return EnrollmentFailure(
                        error=NameCollisionError(code, name.display), state=progress.state
                    )
                raise
            return student

        error = CodeGenerationExhaustedError(prefix_for(quiz_result.archetype), attempts)
        logger.error(
            "identity_code_exhausted",
            prefix=error.prefix,
            attempts=attempts,
        )
        return EnrollmentFailure(error=error, state=EnrollmentState.CODE_MINT)

    def _fatal(self, error: Exception, state: EnrollmentState) -> EnrollmentFailure:
        logger.exception("enrollment_failed_unexpectedly", state=state.value)
        return EnrollmentFailure(
            error=FatalError("Unexpected enrollment failure", original_error=error),
            state=state,
        )

    def _log_outcome(self, outcome: EnrollmentOutcome) -> None:
        if isinstance(outcome, EnrollmentSuccess):
            logger.info(
                "enrollment_committed",
                student_id=outcome.student_id,
                identity_code=outcome.identity_code,
                archetype=outcome.archetype,
                attempts=outcome.attempts,
            )
        else:
            logger.info(
                "enrollment_rejected",
                category=outcome.category,
                state=outcome.state.value,
            )
