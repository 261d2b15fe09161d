# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment request and response models.

Name parts accept both snake_case and the camelCase keys sent by the quiz
front end. Detailed name and answer validation happens in the domain layer
so both the API and direct callers get the same errors.
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class EnrollmentRequest(BaseModel):
    """Quiz submission that enrolls a student.

    Either student_name, or first_name together with last_initial, must be
    given.
    """

    model_config = ConfigDict(populate_by_name=True)

    first_name: str | None = Field(
        default=None,
        max_length=60,
        validation_alias=AliasChoices("first_name", "firstName"),
    )
    last_initial: str | None = Field(
        default=None,
        max_length=4,
        validation_alias=AliasChoices("last_initial", "lastInitial"),
    )
    student_name: str | None = Field(
        default=None,
        max_length=128,
        validation_alias=AliasChoices("student_name", "studentName"),
    )
    grade: str | None = Field(default=None, max_length=32)
    answers: list[Any] | dict[str, Any] = Field(
        description="Answer items, answer letters in order, or a {'q1': 'A'} mapping",
    )

    @model_validator(mode="after")
    def check_name_given(self) -> "EnrollmentRequest":
        """Require a name in one of the two accepted forms."""
        has_parts = self.first_name is not None or self.last_initial is not None
        if not has_parts and not self.student_name:
            raise ValueError("Provide first_name and last_initial, or student_name")
        return self

    @property
    def uses_name_parts(self) -> bool:
        """Whether the name is given as first name and last initial."""
        return self.first_name is not None or self.last_initial is not None


class EnrollmentResponse(BaseModel):
    """A committed enrollment."""

    student_id: str
    identity_code: str = Field(description="Shareable identity code, e.g. OWL-X7K9")
    student_name: str
    class_id: str
    class_code: str
    archetype: str
    genius_type: str
    personality_type: str
    learning_style: str
    currency_balance: int
    message: str


class EligibilityResponse(BaseModel):
    """Advisory pre-check shown before the quiz."""

    class_code: str
    eligible: bool
    reason: str | None = None
    message: str | None = None
    class_name: str | None = None
    enrolled_count: int = 0
    seat_limit: int | None = None
    seats_remaining: int | None = None
    name_available: bool | None = None


class ErrorResponse(BaseModel):
    """Error body returned by every failing endpoint."""

    error: str = Field(description="Stable error category")
    detail: str = Field(description="Message safe to show to the student")
