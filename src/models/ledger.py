# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Currency ledger models.

TransactionKind carries the sign each kind of entry must have. The same
table drives the store CHECK constraint and the service pre-checks.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Polarity(str, Enum):
    """Required sign of an entry amount."""

    CREDIT = "credit"
    DEBIT = "debit"
    EITHER = "either"


class TransactionKind(str, Enum):
    """Kinds of currency ledger entries."""

    QUIZ_REWARD = "quiz_reward"
    TEACHER_GRANT = "teacher_grant"
    REFUND = "refund"
    BONUS = "bonus"
    PURCHASE = "purchase"
    TEACHER_DEDUCTION = "teacher_deduction"
    PENALTY = "penalty"
    ADJUSTMENT = "adjustment"

    @property
    def polarity(self) -> Polarity:
        """Return the sign this kind requires."""
        if self in CREDIT_KINDS:
            return Polarity.CREDIT
        if self in DEBIT_KINDS:
            return Polarity.DEBIT
        return Polarity.EITHER

    def accepts(self, amount: int) -> bool:
        """Check whether an amount has the sign this kind requires."""
        polarity = self.polarity
        if polarity is Polarity.CREDIT:
            return amount > 0
        if polarity is Polarity.DEBIT:
            return amount < 0
        return amount != 0


CREDIT_KINDS = frozenset(
    {
        TransactionKind.QUIZ_REWARD,
        TransactionKind.TEACHER_GRANT,
        TransactionKind.REFUND,
        TransactionKind.BONUS,
    }
)
DEBIT_KINDS = frozenset(
    {
        TransactionKind.PURCHASE,
        TransactionKind.TEACHER_DEDUCTION,
        TransactionKind.PENALTY,
    }
)


class LedgerEntryResponse(BaseModel):
    """One ledger entry as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    amount: int
    transaction_type: TransactionKind
    description: str | None = None
    created_at: datetime


class BalanceResponse(BaseModel):
    """Ledger balance of a student."""

    student_id: str
    balance: int = Field(description="Sum of all ledger entries")
    cached_balance: int = Field(description="Balance cached on the student row")
    in_sync: bool


class LedgerHistoryResponse(BaseModel):
    """Ledger entries of a student, newest first."""

    student_id: str
    entries: list[LedgerEntryResponse]
    total: int
