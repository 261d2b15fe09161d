# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment domain package.

This package provides the enrollment transaction coordinator:
- Quiz scoring, eligibility, capacity and name checks in one transaction
- Identity code minting with bounded retry on collision
- Initial currency grant through the ledger
"""

from src.domains.enrollment.retry import RetryPolicy
from src.domains.enrollment.service import (
    EnrollmentFailure,
    EnrollmentOutcome,
    EnrollmentService,
    EnrollmentState,
    EnrollmentSuccess,
)

__all__ = [
    "EnrollmentFailure",
    "EnrollmentOutcome",
    "EnrollmentService",
    "EnrollmentState",
    "EnrollmentSuccess",
    "RetryPolicy",
]
