# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Currency ledger model.

Rows are append-only. The CHECK constraint ties the sign of the amount to
the transaction kind, so a wrong-sign entry is rejected even when written
without the service.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, new_uuid
from src.models.ledger import CREDIT_KINDS, DEBIT_KINDS, TransactionKind
from src.utils.datetime import utc_now


def _in_list(kinds: frozenset[TransactionKind]) -> str:
    return ", ".join(f"'{kind.value}'" for kind in sorted(kinds, key=lambda k: k.value))


AMOUNT_POLARITY_SQL = (
    f"(transaction_type IN ({_in_list(CREDIT_KINDS)}) AND amount > 0)"
    f" OR (transaction_type IN ({_in_list(DEBIT_KINDS)}) AND amount < 0)"
    f" OR (transaction_type = '{TransactionKind.ADJUSTMENT.value}' AND amount <> 0)"
)


class CurrencyTransaction(Base):
    """One immutable currency ledger entry."""

    __tablename__ = "currency_transactions"
    __table_args__ = (
        CheckConstraint(AMOUNT_POLARITY_SQL, name="amount_matches_kind"),
        Index("ix_currency_transactions_student_created", "student_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    student_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("students.id", ondelete="RESTRICT"),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<CurrencyTransaction(id={self.id}, student_id={self.student_id}, "
            f"amount={self.amount}, type={self.transaction_type})>"
        )
