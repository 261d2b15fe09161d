# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic models for API requests and responses."""

from src.models.enrollment import (
    EligibilityResponse,
    EnrollmentRequest,
    EnrollmentResponse,
    ErrorResponse,
)
from src.models.ledger import (
    CREDIT_KINDS,
    DEBIT_KINDS,
    BalanceResponse,
    LedgerEntryResponse,
    LedgerHistoryResponse,
    Polarity,
    TransactionKind,
)

__all__ = [
    "EligibilityResponse",
    "EnrollmentRequest",
    "EnrollmentResponse",
    "ErrorResponse",
    "CREDIT_KINDS",
    "DEBIT_KINDS",
    "BalanceResponse",
    "LedgerEntryResponse",
    "LedgerHistoryResponse",
    "Polarity",
    "TransactionKind",
]
