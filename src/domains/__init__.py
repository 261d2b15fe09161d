# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for classroom enrollment.

This package contains the services that encapsulate enrollment business
logic. Each domain module is independent of the HTTP layer.

Domains:
    scoring: Quiz answer normalization and archetype scoring.
    identity_code: Shareable identity code generation and validation.
    eligibility: Class code resolution and eligibility checks.
    ledger: Append-only currency ledger.
    enrollment: The enrollment transaction coordinator.
"""
