# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Classification of store errors.

PostgreSQL reports the violated constraint by name while SQLite reports the
offending columns, so each known constraint is matched by a small set of
markers covering both backends.
"""

from enum import Enum

from sqlalchemy.exc import DBAPIError

# serialization_failure, deadlock_detected, lock_not_available
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})

_TRANSIENT_SQLITE_MARKERS = ("database is locked", "database table is locked")


class StoreConstraint(str, Enum):
    """Store constraints the services react to."""

    IDENTITY_CODE = "identity_code"
    STUDENT_NAME = "student_name"
    BALANCE_NON_NEGATIVE = "balance_non_negative"
    AMOUNT_POLARITY = "amount_polarity"
    APPEND_ONLY = "append_only"
    CACHED_BALANCE = "cached_balance"
    FOREIGN_KEY = "foreign_key"


_CONSTRAINT_MARKERS: dict[StoreConstraint, tuple[str, ...]] = {
    StoreConstraint.IDENTITY_CODE: ("uq_students_identity_code", "students.identity_code"),
    StoreConstraint.STUDENT_NAME: ("uq_students_class_name", "students.name_key"),
    StoreConstraint.BALANCE_NON_NEGATIVE: ("currency_balance_non_negative",),
    StoreConstraint.AMOUNT_POLARITY: ("amount_matches_kind",),
    StoreConstraint.APPEND_ONLY: ("append-only",),
    StoreConstraint.CACHED_BALANCE: ("maintained by the ledger",),
    StoreConstraint.FOREIGN_KEY: (
        "foreign key constraint",
        "missing student",
    ),
}


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def is_transient_error(exc: BaseException) -> bool:
    """Check whether a store error is worth retrying as a whole transaction.

    Args:
        exc: Exception raised by SQLAlchemy.

    Returns:
        True for serialization conflicts, deadlocks and lock timeouts.
    """
    if not isinstance(exc, DBAPIError):
        return False
    if _sqlstate(exc) in TRANSIENT_SQLSTATES:
        return True
    message = str(exc.orig).lower()
    return any(marker in message for marker in _TRANSIENT_SQLITE_MARKERS)


def violated_constraint(exc: BaseException) -> StoreConstraint | None:
    """Identify which known store constraint rejected a write.

    Args:
        exc: Exception raised by SQLAlchemy.

    Returns:
        The matching StoreConstraint, or None if unknown.
    """
    if not isinstance(exc, DBAPIError):
        return None
    message = str(exc.orig).lower()
    for constraint, markers in _CONSTRAINT_MARKERS.items():
        if any(marker in message for marker in markers):
            return constraint
    return None
