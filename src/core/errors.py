# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment error taxonomy.

This module defines the typed failures an enrollment can end in:
- ValidationError: Malformed input, rejected before any transaction opens
- EligibilityError: Class not found, inactive or expired
- CapacityExceededError: Seat limit reached
- NameCollisionError: Display name already used in the class
- CodeGenerationExhaustedError: Identity code retry budget exhausted
- TransientDatabaseError: Serialization conflict or lock timeout
- FatalError: Anything unexpected

Each error carries a category, a message safe to show in a classroom, and
whether the caller may retry the same submission later.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    """Stable error categories exposed to callers."""

    VALIDATION = "validation_error"
    ELIGIBILITY = "eligibility_error"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    NAME_COLLISION = "name_collision"
    CODE_GENERATION_EXHAUSTED = "code_generation_exhausted"
    TRANSIENT_DATABASE = "transient_database_error"
    FATAL = "fatal_error"


class EligibilityReason(str, Enum):
    """Why a class does not accept new enrollments.

    NOT_FOUND, INACTIVE and EXPIRED are decided by the eligibility check.
    CLASS_FULL and NAME_TAKEN are advisory pre-check outcomes only.
    """

    NOT_FOUND = "INVALID_CLASS"
    INACTIVE = "CLASS_INACTIVE"
    EXPIRED = "CLASS_EXPIRED"
    CLASS_FULL = "CLASS_FULL"
    NAME_TAKEN = "NAME_TAKEN"


ELIGIBILITY_MESSAGES: dict[EligibilityReason, str] = {
    EligibilityReason.NOT_FOUND: "This class code is not valid. Check it with your teacher.",
    EligibilityReason.INACTIVE: "This class is not currently accepting new students.",
    EligibilityReason.EXPIRED: "This class has expired.",
    EligibilityReason.CLASS_FULL: "This class is full. Please contact your teacher.",
    EligibilityReason.NAME_TAKEN: (
        "This name is already taken in the class. Try adding your middle initial."
    ),
}


class EnrollmentError(Exception):
    """Base exception for all enrollment failures.

    Attributes:
        message: Human-readable error description for logs.
        category: Stable error category.
        user_message: Message suitable for classroom display.
        retryable: Whether resubmitting later may succeed.
    """

    category: ErrorCategory = ErrorCategory.FATAL
    default_user_message: str = "Something went wrong. Please try again."
    retryable: bool = False

    def __init__(self, message: str, user_message: str | None = None) -> None:
        """Initialize enrollment error.

        Args:
            message: Human-readable error description for logs.
            user_message: Optional override of the classroom-facing message.
        """
        self.message = message
        self.user_message = user_message or self.default_user_message
        super().__init__(message)


class ValidationError(EnrollmentError):
    """Raised when a submission is malformed (bad answer shape, empty name)."""

    category = ErrorCategory.VALIDATION
    default_user_message = "Some answers are missing or invalid. Please check the quiz."

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize validation error.

        Args:
            message: Description of what is wrong; shown to the student.
            field: Optional name of the offending input field.
        """
        self.field = field
        super().__init__(message, user_message=message)


class EligibilityError(EnrollmentError):
    """Raised when the class cannot accept enrollments."""

    category = ErrorCategory.ELIGIBILITY

    def __init__(self, reason: EligibilityReason, class_code: str) -> None:
        """Initialize eligibility error.

        Args:
            reason: Which eligibility rule failed.
            class_code: The class code that was checked.
        """
        self.reason = reason
        self.class_code = class_code
        super().__init__(
            f"Class {class_code!r} is not eligible: {reason.value}",
            user_message=ELIGIBILITY_MESSAGES[reason],
        )


class CapacityExceededError(EnrollmentError):
    """Raised when the class seat limit has been reached."""

    category = ErrorCategory.CAPACITY_EXCEEDED
    default_user_message = ELIGIBILITY_MESSAGES[EligibilityReason.CLASS_FULL]

    def __init__(self, class_code: str, seat_limit: int) -> None:
        """Initialize capacity error.

        Args:
            class_code: The full class.
            seat_limit: The seat limit that was reached.
        """
        self.class_code = class_code
        self.seat_limit = seat_limit
        super().__init__(f"Class {class_code!r} has reached its capacity of {seat_limit} students")


class NameCollisionError(EnrollmentError):
    """Raised when the display name is already used in the class."""

    category = ErrorCategory.NAME_COLLISION
    default_user_message = ELIGIBILITY_MESSAGES[EligibilityReason.NAME_TAKEN]

    def __init__(self, class_code: str, student_name: str) -> None:
        """Initialize name collision error.

        Args:
            class_code: The class being joined.
            student_name: The name that is already taken.
        """
        self.class_code = class_code
        self.student_name = student_name
        super().__init__(f"Student name {student_name!r} already exists in class {class_code!r}")


class CodeGenerationExhaustedError(EnrollmentError):
    """Raised when every identity code attempt collided."""

    category = ErrorCategory.CODE_GENERATION_EXHAUSTED
    default_user_message = "We could not finish joining the class. Please try again in a moment."
    retryable = True

    def __init__(self, prefix: str, attempts: int) -> None:
        """Initialize code exhaustion error.

        Args:
            prefix: Identity code prefix that was exhausted.
            attempts: Number of attempts made.
        """
        self.prefix = prefix
        self.attempts = attempts
        super().__init__(f"No unique identity code for prefix {prefix!r} after {attempts} attempts")


class TransientDatabaseError(EnrollmentError):
    """Raised when the store reports a serialization conflict or lock timeout."""

    category = ErrorCategory.TRANSIENT_DATABASE
    default_user_message = "Lots of students are joining right now. Please try again in a moment."
    retryable = True

    def __init__(self, message: str, attempts: int = 1) -> None:
        """Initialize transient error.

        Args:
            message: Description of the underlying conflict.
            attempts: Number of whole-transaction attempts made.
        """
        self.attempts = attempts
        super().__init__(message)


class FatalError(EnrollmentError):
    """Raised for anything unexpected; always surfaced, never swallowed."""

    category = ErrorCategory.FATAL

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """Initialize fatal error.

        Args:
            message: Description of the failure.
            original_error: The underlying exception, if any.
        """
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with the underlying error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message
