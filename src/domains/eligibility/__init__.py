# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Eligibility domain package.

Resolves class codes and decides whether a class accepts enrollments.
"""

from src.domains.eligibility.service import (
    Eligibility,
    EligibilityChecker,
    EligibilityReport,
    count_enrolled,
    name_taken,
    normalize_class_code,
)

__all__ = [
    "Eligibility",
    "EligibilityChecker",
    "EligibilityReport",
    "count_enrolled",
    "name_taken",
    "normalize_class_code",
]
