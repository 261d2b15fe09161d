# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Currency ledger service.

This module provides the LedgerService class for:
- Appending immutable ledger entries
- Granting currency (credit kinds only)
- Computing balances from the ledger
- Listing a student's ledger history
- Reconciling the cached balance against the ledger

The store enforces the ledger rules itself (sign per kind, non-negative
balance, append-only rows). The service pre-checks the same rules so callers
get specific errors, and maps store rejections to the same errors when the
pre-checks race with another writer.

The service never commits: every call joins the caller's transaction.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.errors import StoreConstraint, violated_constraint
from src.infrastructure.database.models import CurrencyTransaction, Student
from src.models.ledger import CREDIT_KINDS, TransactionKind
from src.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ENTRY_AMOUNT = 10000


class LedgerError(Exception):
    """Base exception for ledger errors."""

    pass


class InvalidTransactionError(LedgerError):
    """Raised when an entry's kind, sign or size is not allowed."""

    pass


class StudentNotFoundError(LedgerError):
    """Raised when the ledger entry references an unknown student."""

    def __init__(self, student_id: str) -> None:
        self.student_id = student_id
        super().__init__(f"Student {student_id} not found")


class InsufficientFundsError(LedgerError):
    """Raised when a debit would make the balance negative."""

    def __init__(self, student_id: str, amount: int, balance: int | None = None) -> None:
        self.student_id = student_id
        self.amount = amount
        self.balance = balance
        super().__init__(
            f"Debit of {-amount} exceeds balance of student {student_id}"
            + (f" ({balance})" if balance is not None else "")
        )


@dataclass
class Reconciliation:
    """Comparison of the ledger sum with the cached balance."""

    student_id: str
    ledger_balance: int
    cached_balance: int
    entry_count: int

    @property
    def drift(self) -> int:
        """Cached balance minus ledger balance."""
        return self.cached_balance - self.ledger_balance

    @property
    def in_sync(self) -> bool:
        """Whether the cached balance equals the ledger sum."""
        return self.drift == 0


class LedgerService:
    """Append-only currency ledger.

    Attributes:
        db: Async database session.
        max_entry_amount: Largest absolute amount accepted for one entry.
    """

    def __init__(self, db: AsyncSession, max_entry_amount: int = DEFAULT_MAX_ENTRY_AMOUNT) -> None:
        """Initialize ledger service.

        Args:
            db: Async database session.
            max_entry_amount: Largest absolute amount accepted for one entry.
        """
        self.db = db
        self.max_entry_amount = max_entry_amount

    async def append(
        self,
        student_id: str,
        amount: int,
        kind: TransactionKind | str,
        description: str | None = None,
    ) -> CurrencyTransaction:
        """Append one immutable ledger entry.

        The entry is written inside a savepoint so that a store rejection
        leaves the caller's transaction usable.

        Args:
            student_id: Student the entry belongs to.
            amount: Signed amount; the sign must match the kind.
            kind: Transaction kind.
            description: Optional note shown in the history.

        Returns:
            The persisted entry.

        Raises:
            InvalidTransactionError: If the kind is unknown, the sign does not
                match the kind or the amount exceeds the entry cap.
            StudentNotFoundError: If the student does not exist.
            InsufficientFundsError: If the entry would make the balance negative.
        """
        kind = self._validate(amount, kind)

        cached_balance = await self._cached_balance(student_id)
        if cached_balance + amount < 0:
            raise InsufficientFundsError(student_id, amount, cached_balance)

        entry = CurrencyTransaction(
            student_id=student_id,
            amount=amount,
            transaction_type=kind.value,
            description=description,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(entry)
        except IntegrityError as e:
            constraint = violated_constraint(e)
            if constraint is StoreConstraint.BALANCE_NON_NEGATIVE:
                raise InsufficientFundsError(student_id, amount) from e
            if constraint is StoreConstraint.FOREIGN_KEY:
                raise StudentNotFoundError(student_id) from e
            if constraint is StoreConstraint.AMOUNT_POLARITY:
                raise InvalidTransactionError(
                    f"Amount {amount} does not match kind {kind.value}"
                ) from e
            raise

        logger.info(
            "ledger_entry_appended",
            student_id=student_id,
            amount=amount,
            kind=kind.value,
            entry_id=entry.id,
        )
        return entry

    async def grant(
        self,
        student_id: str,
        amount: int,
        kind: TransactionKind | str = TransactionKind.TEACHER_GRANT,
        description: str | None = None,
    ) -> CurrencyTransaction:
        """Append a credit entry.

        Raises:
            InvalidTransactionError: If the kind is not a credit kind.
            StudentNotFoundError: If the student does not exist.
        """
        kind = self._parse_kind(kind)
        if kind not in CREDIT_KINDS:
            raise InvalidTransactionError(f"{kind.value} is not a credit kind")
        return await self.append(student_id, amount, kind, description)

    async def balance_of(self, student_id: str) -> int:
        """Return the balance as the sum of ledger entries.

        Raises:
            StudentNotFoundError: If the student does not exist.
        """
        await self._cached_balance(student_id)
        result = await self.db.execute(
            select(func.coalesce(func.sum(CurrencyTransaction.amount), 0)).where(
                CurrencyTransaction.student_id == student_id
            )
        )
        return int(result.scalar_one())

    async def history(
        self,
        student_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CurrencyTransaction]:
        """List ledger entries, newest first.

        Raises:
            StudentNotFoundError: If the student does not exist.
        """
        await self._cached_balance(student_id)
        result = await self.db.execute(
            select(CurrencyTransaction)
            .where(CurrencyTransaction.student_id == student_id)
            .order_by(CurrencyTransaction.created_at.desc(), CurrencyTransaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def count_entries(self, student_id: str) -> int:
        """Count a student's ledger entries."""
        result = await self.db.execute(
            select(func.count())
            .select_from(CurrencyTransaction)
            .where(CurrencyTransaction.student_id == student_id)
        )
        return int(result.scalar_one())

    async def reconcile(self, student_id: str) -> Reconciliation:
        """Compare the ledger sum with the store-maintained cached balance.

        Raises:
            StudentNotFoundError: If the student does not exist.
        """
        cached = await self._cached_balance(student_id)
        ledger_balance = await self.balance_of(student_id)
        report = Reconciliation(
            student_id=student_id,
            ledger_balance=ledger_balance,
            cached_balance=cached,
            entry_count=await self.count_entries(student_id),
        )
        if not report.in_sync:
            logger.error(
                "ledger_balance_drift",
                student_id=student_id,
                ledger_balance=ledger_balance,
                cached_balance=cached,
            )
        return report

    def _parse_kind(self, kind: TransactionKind | str) -> TransactionKind:
        try:
            return TransactionKind(kind)
        except ValueError as e:
            raise InvalidTransactionError(f"Unknown transaction kind: {kind!r}") from e

    def _validate(self, amount: int, kind: TransactionKind | str) -> TransactionKind:
        kind = self._parse_kind(kind)
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidTransactionError("Amount must be an integer")
        if abs(amount) > self.max_entry_amount:
            raise InvalidTransactionError(
                f"Amount {amount} exceeds the per-entry limit of {self.max_entry_amount}"
            )
        if not kind.accepts(amount):
            raise InvalidTransactionError(
                f"Amount {amount} does not match {kind.polarity.value} kind {kind.value}"
            )
        return kind

    async def _cached_balance(self, student_id: str) -> int:
        result = await self.db.execute(
            select(Student.currency_balance).where(Student.id == student_id)
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            raise StudentNotFoundError(student_id)
        return int(balance)
