# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the enrollment transaction coordinator.

Tests run against a SQLite store: the coordinator's guarantees come from
the transaction and the store constraints, so mocking the session would
test nothing.
"""

from datetime import datetime, timedelta, timezone
from itertools import cycle
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError

from src.core.config.settings import EnrollmentSettings, Settings
from src.core.errors import (
    CapacityExceededError,
    CodeGenerationExhaustedError,
    EligibilityError,
    EligibilityReason,
    ErrorCategory,
    FatalError,
    NameCollisionError,
    TransientDatabaseError,
    ValidationError,
)
from src.domains.enrollment import (
    EnrollmentFailure,
    EnrollmentService,
    EnrollmentState,
    EnrollmentSuccess,
    RetryPolicy,
)
from src.domains.identity_code import IdentityCodeGenerator
from src.infrastructure.database.models import CurrencyTransaction, QuizSubmission, Student
from src.utils.names import compose_student_name


def _fixed_generator(symbols: str) -> IdentityCodeGenerator:
    """Generator whose suffixes cycle through the given symbols."""
    source = cycle(symbols)
    return IdentityCodeGenerator(choice=lambda alphabet: next(source))


def _transient_error() -> OperationalError:
    return OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))


@pytest.fixture
def sleep():
    """Backoff sleep that returns immediately."""
    return AsyncMock()


@pytest.fixture
def service(db_sessionmaker, test_settings, sleep) -> EnrollmentService:
    """Enrollment service on the test store."""
    return EnrollmentService(db_sessionmaker, settings=test_settings, sleep=sleep)


class TestSuccessfulEnrollment:
    """Tests for the committed path."""

    @pytest.mark.asyncio
    async def test_enroll_creates_student_submission_and_grant(
        self, service, create_classroom, count_rows, db_sessionmaker, beaver_answers
    ):
        """Test one enrollment commits all three writes together."""
        classroom = await create_classroom()

        outcome = await service.enroll("482913", "Ava R", "5th", beaver_answers)

        assert isinstance(outcome, EnrollmentSuccess)
        assert outcome.ok is True
        assert outcome.state == EnrollmentState.COMMITTED
        assert outcome.identity_code.startswith("BVR-")
        assert outcome.archetype == "Beaver"
        assert outcome.genius_type == "Doer"
        assert outcome.personality_type == "ISTJ"
        assert outcome.learning_style == "visual"
        assert outcome.class_id == classroom.id
        assert outcome.currency_balance == 50
        assert outcome.attempts == 1

        async with db_sessionmaker() as session:
            student = await session.get(Student, outcome.student_id)
            submission = (
                await session.execute(
                    select(QuizSubmission).where(QuizSubmission.student_id == student.id)
                )
            ).scalar_one()
            entry = (
                await session.execute(
                    select(CurrencyTransaction).where(
                        CurrencyTransaction.student_id == student.id
                    )
                )
            ).scalar_one()

        assert student.student_name == "Ava R"
        assert student.grade_level == "5th"
        assert student.currency_balance == 50
        assert submission.coins_earned == 50
        assert len(submission.answers) == 20
        assert submission.answers[0] == {"question_id": 1, "answer": "A"}
        assert entry.amount == 50
        assert entry.transaction_type == "quiz_reward"
        assert entry.description == "Quiz completion reward"

    @pytest.mark.asyncio
    async def test_class_code_is_case_insensitive(
        self, service, create_classroom, collie_answers
    ):
        """Test codes are matched trimmed and upper-cased."""
        await create_classroom(class_code="AB12CD")

        outcome = await service.enroll("  ab12cd ", "Ava R", None, collie_answers)

        assert outcome.ok is True
        assert outcome.class_code == "AB12CD"
        assert outcome.identity_code.startswith("COL-")

    @pytest.mark.asyncio
    async def test_accepts_composed_name(self, service, create_classroom, beaver_answers):
        """Test first name and last initial input."""
        await create_classroom()

        outcome = await service.enroll(
            "482913", compose_student_name("ava", "r"), None, beaver_answers
        )

        assert outcome.student_name == "ava R"

    @pytest.mark.asyncio
    async def test_initial_grant_from_settings(
        self, db_sessionmaker, create_classroom, sleep, beaver_answers
    ):
        """Test the grant amount is configurable."""
        await create_classroom()
        settings = Settings(
            environment="test",
            enrollment=EnrollmentSettings(
                initial_grant=75, retry_base_delay=0.0, retry_max_delay=0.0
            ),
        )
        service = EnrollmentService(db_sessionmaker, settings=settings, sleep=sleep)

        outcome = await service.enroll("482913", "Ava R", None, beaver_answers)

        assert outcome.currency_balance == 75

    @pytest.mark.asyncio
    async def test_unexpired_class(self, service, create_classroom, beaver_answers):
        """Test a class with a future expiry."""
        await create_classroom(expires_at=datetime.now(timezone.utc) + timedelta(days=30))

        outcome = await service.enroll("482913", "Ava R", None, beaver_answers)

        assert outcome.ok is True


class TestValidationFailures:
    """Tests for submissions rejected before any transaction."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "class_code,name,grade,answers",
        [
            ("482913", "Ava R", None, ["A"] * 15),
            ("482913", "   ", None, None),
            ("482913", "Ava R", "Kindergarten", None),
            ("   ", "Ava R", None, None),
        ],
    )
    async def test_rejects_malformed_submission(
        self, service, create_classroom, count_rows, beaver_answers, class_code, name, grade, answers
    ):
        """Test malformed input never reaches the store."""
        await create_classroom()

        outcome = await service.enroll(class_code, name, grade, answers or beaver_answers)

        assert isinstance(outcome, EnrollmentFailure)
        assert outcome.ok is False
        assert isinstance(outcome.error, ValidationError)
        assert outcome.category == ErrorCategory.VALIDATION.value
        assert outcome.state == EnrollmentState.VALIDATING
        assert outcome.retryable is False
        assert await count_rows(Student) == 0

    @pytest.mark.asyncio
    async def test_validation_precedes_class_lookup(self, service):
        """Test bad answers are reported even for unknown classes."""
        outcome = await service.enroll("NOPE", "Ava R", None, {"q1": "A"})

        assert isinstance(outcome.error, ValidationError)


class TestEligibilityFailures:
    """Tests for classes that do not accept enrollments."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "classroom_kwargs,reason",
        [
            ({"is_active": False}, EligibilityReason.INACTIVE),
            (
                {"expires_at": datetime.now(timezone.utc) - timedelta(days=1)},
                EligibilityReason.EXPIRED,
            ),
        ],
    )
    async def test_ineligible_class(
        self, service, create_classroom, count_rows, beaver_answers, classroom_kwargs, reason
    ):
        """Test inactive and expired classes leave no rows behind."""
        await create_classroom(**classroom_kwargs)

        outcome = await service.enroll("482913", "Ava R", None, beaver_answers)

        assert isinstance(outcome.error, EligibilityError)
        assert outcome.error.reason == reason
        assert outcome.category == ErrorCategory.ELIGIBILITY.value
        assert await count_rows(Student) == 0
        assert await count_rows(CurrencyTransaction) == 0

    @pytest.mark.asyncio
    async def test_unknown_class(self, service, beaver_answers):
        """Test a class code that does not exist."""
        outcome = await service.enroll("999999", "Ava R", None, beaver_answers)

        assert isinstance(outcome.error, EligibilityError)
        assert outcome.error.reason == EligibilityReason.NOT_FOUND
        assert outcome.state == EnrollmentState.VALIDATING


class TestCapacityAndNames:
    """Tests for seat limits and name uniqueness."""

    @pytest.mark.asyncio
    async def test_full_class(self, service, create_classroom, count_rows, beaver_answers):
        """Test the seat limit is enforced."""
        await create_classroom(seat_limit=1)
        first = await service.enroll("482913", "Ava R", None, beaver_answers)

        second = await service.enroll("482913", "Ben S", None, beaver_answers)

        assert first.ok is True
        assert isinstance(second.error, CapacityExceededError)
        assert second.state == EnrollmentState.SEAT_CHECK
        assert second.error.seat_limit == 1
        assert await count_rows(Student) == 1

    @pytest.mark.asyncio
    async def test_duplicate_name(self, service, create_classroom, count_rows, beaver_answers):
        """Test names are unique per class, ignoring case."""
        await create_classroom()
        await service.enroll("482913", "Ava R", None, beaver_answers)

        outcome = await service.enroll("482913", "AVA  r", None, beaver_answers)

        assert isinstance(outcome.error, NameCollisionError)
        assert outcome.state == EnrollmentState.NAME_CHECK
        assert await count_rows(Student) == 1
        assert await count_rows(CurrencyTransaction) == 1

    @pytest.mark.asyncio
    async def test_same_name_in_other_class(self, service, create_classroom, beaver_answers):
        """Test names only collide within one class."""
        await create_classroom(class_code="AAA111")
        await create_classroom(class_code="BBB222")

        first = await service.enroll("AAA111", "Ava R", None, beaver_answers)
        second = await service.enroll("BBB222", "Ava R", None, beaver_answers)

        assert first.ok is True
        assert second.ok is True

    @pytest.mark.asyncio
    async def test_store_catches_name_race(
        self, service, create_classroom, count_rows, beaver_answers
    ):
        """Test the unique constraint backs up a stale name check."""
        await create_classroom()
        await service.enroll("482913", "Ava R", None, beaver_answers)

        with patch(
            "src.domains.enrollment.service.name_taken", AsyncMock(return_value=False)
        ):
            outcome = await service.enroll("482913", "Ava R", None, beaver_answers)

        assert isinstance(outcome.error, NameCollisionError)
        assert outcome.state == EnrollmentState.INSERT
        assert await count_rows(Student) == 1


class TestIdentityCodeCollisions:
    """Tests for identity code regeneration."""

    @pytest.mark.asyncio
    async def test_regenerates_on_collision(
        self, db_sessionmaker, test_settings, sleep, create_classroom, count_rows, beaver_answers
    ):
        """Test a colliding code is replaced inside the same transaction."""
        await create_classroom()
        first_service = EnrollmentService(
            db_sessionmaker,
            settings=test_settings,
            code_generator=_fixed_generator("A"),
            sleep=sleep,
        )
        first = await first_service.enroll("482913", "Ava R", None, beaver_answers)

        second_service = EnrollmentService(
            db_sessionmaker,
            settings=test_settings,
            code_generator=_fixed_generator("AAAABBBB"),
            sleep=sleep,
        )
        second = await second_service.enroll("482913", "Ben S", None, beaver_answers)

        assert first.identity_code == "BVR-AAAA"
        assert second.identity_code == "BVR-BBBB"
        assert second.attempts == 1
        assert await count_rows(Student) == 2
        assert await count_rows(CurrencyTransaction) == 2

    @pytest.mark.asyncio
    async def test_exhausted_code_attempts(
        self, db_sessionmaker, test_settings, sleep, create_classroom, count_rows, beaver_answers
    ):
        """Test the retry budget for identity codes."""
        await create_classroom()
        service = EnrollmentService(
            db_sessionmaker,
            settings=test_settings,
            code_generator=_fixed_generator("A"),
            retry_policy=RetryPolicy(max_code_attempts=3),
            sleep=sleep,
        )
        await service.enroll("482913", "Ava R", None, beaver_answers)

        outcome = await service.enroll("482913", "Ben S", None, beaver_answers)

        assert isinstance(outcome.error, CodeGenerationExhaustedError)
        assert outcome.error.attempts == 3
        assert outcome.error.prefix == "BVR"
        assert outcome.state == EnrollmentState.CODE_MINT
        assert outcome.retryable is True
        assert await count_rows(Student) == 1
        assert await count_rows(QuizSubmission) == 1

    @pytest.mark.asyncio
    async def test_codes_are_per_archetype_prefix(
        self, db_sessionmaker, test_settings, sleep, create_classroom, beaver_answers, collie_answers
    ):
        """Test the same suffix under different prefixes does not collide."""
        await create_classroom()
        service = EnrollmentService(
            db_sessionmaker,
            settings=test_settings,
            code_generator=_fixed_generator("A"),
            sleep=sleep,
        )

        beaver = await service.enroll("482913", "Ava R", None, beaver_answers)
        collie = await service.enroll("482913", "Ben S", None, collie_answers)

        assert beaver.identity_code == "BVR-AAAA"
        assert collie.identity_code == "COL-AAAA"


class TestTransientRetries:
    """Tests for whole-transaction retries."""

    @pytest.mark.asyncio
    async def test_retries_after_transient_error(
        self, service, sleep, create_classroom, count_rows, beaver_answers
    ):
        """Test a lock timeout is retried with backoff."""
        await create_classroom()
        original = service._protocol
        calls = 0

        async def flaky_protocol(*args, **kwargs):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise _transient_error()
            return await original(*args, **kwargs)

        service._protocol = flaky_protocol

        outcome = await service.enroll("482913", "Ava R", None, beaver_answers)

        assert outcome.ok is True
        assert outcome.attempts == 2
        assert sleep.await_count == 1
        assert await count_rows(Student) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(
        self, service, sleep, create_classroom, count_rows, beaver_answers
    ):
        """Test the transaction retry budget."""
        await create_classroom()
        service._protocol = AsyncMock(side_effect=_transient_error())

        outcome = await service.enroll("482913", "Ava R", None, beaver_answers)

        assert isinstance(outcome.error, TransientDatabaseError)
        assert outcome.error.attempts == 3
        assert outcome.retryable is True
        assert service._protocol.await_count == 3
        assert sleep.await_count == 2
        assert await count_rows(Student) == 0

    @pytest.mark.asyncio
    async def test_unexpected_store_error_is_fatal(
        self, service, sleep, create_classroom, beaver_answers
    ):
        """Test non-transient store errors are not retried."""
        await create_classroom()
        error = IntegrityError("INSERT", {}, Exception("something unexpected"))
        service._protocol = AsyncMock(side_effect=error)

        outcome = await service.enroll("482913", "Ava R", None, beaver_answers)

        assert isinstance(outcome.error, FatalError)
        assert outcome.error.original_error is error
        assert outcome.category == ErrorCategory.FATAL.value
        assert service._protocol.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_fatal(self, service, create_classroom, beaver_answers):
        """Test programming errors surface as FatalError."""
        await create_classroom()
        service._protocol = AsyncMock(side_effect=RuntimeError("boom"))

        outcome = await service.enroll("482913", "Ava R", None, beaver_answers)

        assert isinstance(outcome.error, FatalError)
        assert "boom" in str(outcome.error)
