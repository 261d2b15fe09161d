# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity code domain package.

Provides identity code generation and format validation.
"""

from src.domains.identity_code.generator import (
    ALPHABET,
    DEFAULT_SUFFIX_LENGTH,
    PREFIXES,
    IdentityCodeGenerator,
    is_valid_identity_code,
    prefix_for,
)

__all__ = [
    "ALPHABET",
    "DEFAULT_SUFFIX_LENGTH",
    "PREFIXES",
    "IdentityCodeGenerator",
    "is_valid_identity_code",
    "prefix_for",
]
