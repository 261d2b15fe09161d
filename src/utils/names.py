# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student name normalization.

Display names are either given whole or composed as "First L" from a first
name and last initial. Whitespace is collapsed, and uniqueness inside a
class compares the case-folded name key.
"""

from dataclasses import dataclass

from src.core.errors import ValidationError

MAX_FIRST_NAME_LENGTH = 30
MAX_STUDENT_NAME_LENGTH = 64
# Case folding can lengthen a name, so the key has its own limit.
MAX_NAME_KEY_LENGTH = 64
MAX_GRADE_LENGTH = 10

_NAME_PUNCTUATION = frozenset(" -'")


@dataclass(frozen=True)
class StudentName:
    """A validated student display name.

    Attributes:
        display: Name as shown in the class roster.
        key: Case-folded name used for uniqueness checks.
        first_name: First name, when composed from parts.
        last_initial: Upper-cased last initial, when composed from parts.
    """

    display: str
    key: str
    first_name: str | None = None
    last_initial: str | None = None


def collapse_whitespace(value: str) -> str:
    """Trim and collapse internal runs of whitespace to single spaces."""
    return " ".join(value.split())


def name_key(display: str) -> str:
    """Return the uniqueness key for a display name."""
    return collapse_whitespace(display).casefold()


def _checked_key(display: str, field: str) -> str:
    key = name_key(display)
    if len(key) > MAX_NAME_KEY_LENGTH:
        raise ValidationError(
            f"Student name must be at most {MAX_NAME_KEY_LENGTH} characters once case-folded",
            field=field,
        )
    return key


def _check_name_characters(value: str, field: str, extra: frozenset[str] = frozenset()) -> None:
    allowed = _NAME_PUNCTUATION | extra
    if not any(ch.isalpha() for ch in value):
        raise ValidationError(f"{field} must contain letters", field=field)
    if not all(ch.isalpha() or ch in allowed for ch in value):
        raise ValidationError(
            f"{field} may only contain letters, spaces, hyphens and apostrophes",
            field=field,
        )


def compose_student_name(first_name: str, last_initial: str) -> StudentName:
    """Compose and validate a "First L" display name.

    Args:
        first_name: Student first name.
        last_initial: Single letter of the last name.

    Returns:
        The validated StudentName.

    Raises:
        ValidationError: If either part is empty, too long or contains
            characters other than letters, spaces, hyphens and apostrophes.
    """
    first = collapse_whitespace(first_name or "")
    if not first:
        raise ValidationError("First name is required", field="first_name")
    if len(first) > MAX_FIRST_NAME_LENGTH:
        raise ValidationError(
            f"First name must be at most {MAX_FIRST_NAME_LENGTH} characters",
            field="first_name",
        )
    _check_name_characters(first, "first_name")

    initial = (last_initial or "").strip().rstrip(".")
    if len(initial) != 1 or not initial.isalpha():
        raise ValidationError("Last initial must be a single letter", field="last_initial")
    initial = initial.upper()

    display = f"{first} {initial}"
    return StudentName(
        display=display,
        key=_checked_key(display, "first_name"),
        first_name=first,
        last_initial=initial,
    )


def parse_student_name(student_name: str) -> StudentName:
    """Validate a display name given whole.

    Raises:
        ValidationError: If the name is empty, too long or malformed.
    """
    display = collapse_whitespace(student_name or "")
    if not display:
        raise ValidationError("Student name is required", field="student_name")
    if len(display) > MAX_STUDENT_NAME_LENGTH:
        raise ValidationError(
            f"Student name must be at most {MAX_STUDENT_NAME_LENGTH} characters",
            field="student_name",
        )
    _check_name_characters(display, "student_name", extra=frozenset("."))
    return StudentName(display=display, key=_checked_key(display, "student_name"))


def normalize_grade(grade: str | None) -> str | None:
    """Trim an optional grade level; blank becomes None.

    Raises:
        ValidationError: If the grade is longer than allowed.
    """
    if grade is None:
        return None
    value = collapse_whitespace(str(grade))
    if not value:
        return None
    if len(value) > MAX_GRADE_LENGTH:
        raise ValidationError(
            f"Grade must be at most {MAX_GRADE_LENGTH} characters", field="grade"
        )
    return value
