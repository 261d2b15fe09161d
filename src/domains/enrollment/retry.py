# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Retry policy for enrollment transactions.

One policy object bounds both retry loops of an enrollment: identity code
regeneration inside a transaction, and whole-transaction retries after a
serialization conflict, deadlock or lock timeout.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.core.config.settings import EnrollmentSettings


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with exponential backoff and jitter.

    Attributes:
        max_code_attempts: Identity code insert attempts per transaction.
        max_transaction_attempts: Whole-transaction attempts.
        base_delay: Backoff before the first retry, in seconds.
        max_delay: Upper bound for any single backoff, in seconds.
        jitter: Fraction of each backoff that is randomized (0 to 1).
    """

    max_code_attempts: int = 5
    max_transaction_attempts: int = 3
    base_delay: float = 0.05
    max_delay: float = 1.0
    jitter: float = 0.5

    def __post_init__(self) -> None:
        if self.max_code_attempts < 1 or self.max_transaction_attempts < 1:
            raise ValueError("Retry policies need at least one attempt")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0 and 1")

    @classmethod
    def from_settings(cls, settings: EnrollmentSettings) -> RetryPolicy:
        """Build the policy from enrollment settings."""
        return cls(
            max_code_attempts=settings.max_code_attempts,
            max_transaction_attempts=settings.max_transaction_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    def delay(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        """Backoff to wait after a failed attempt.

        Args:
            attempt: The 1-based attempt that just failed.
            rand: Source of uniform values in [0, 1).

        Returns:
            Seconds to sleep, within [(1 - jitter) * cap, cap] where cap is
            min(max_delay, base_delay * 2 ** (attempt - 1)).
        """
        cap = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        return cap * (1.0 - self.jitter + self.jitter * rand())
