# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Ledger domain package.

Provides the append-only currency ledger service.
"""

from src.domains.ledger.service import (
    InsufficientFundsError,
    InvalidTransactionError,
    LedgerError,
    LedgerService,
    Reconciliation,
    StudentNotFoundError,
)

__all__ = [
    "InsufficientFundsError",
    "InvalidTransactionError",
    "LedgerError",
    "LedgerService",
    "Reconciliation",
    "StudentNotFoundError",
]
