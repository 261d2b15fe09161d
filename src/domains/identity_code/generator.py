# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity code generation.

Identity codes look like ``OWL-X7K9``: a three-letter archetype prefix and a
suffix drawn with a CSPRNG from an alphabet without look-alike characters
(no 0/O or 1/I).

The generator does not check uniqueness. The store's unique constraint is
the source of truth and the enrollment coordinator regenerates on collision.
With the default 4-character suffix there are 32**4 = 1,048,576 codes per
prefix: a single attempt collides with probability below 1% while fewer
than ~10,000 students share a prefix, and 5 attempts all collide with
probability below 1e-10.
"""

import re
import secrets
from collections.abc import Callable, Sequence

from src.utils.logging import get_logger

logger = get_logger(__name__)

ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
MIN_SUFFIX_LENGTH = 3
MAX_SUFFIX_LENGTH = 8
DEFAULT_SUFFIX_LENGTH = 4

PREFIXES: dict[str, str] = {
    "meerkat": "MKT",
    "panda": "PAN",
    "owl": "OWL",
    "beaver": "BVR",
    "elephant": "ELE",
    "otter": "OTT",
    "parrot": "PAR",
    "border collie": "COL",
}

_CODE_PATTERN = re.compile(
    rf"^[A-Z]{{3}}-[{ALPHABET}]{{{MIN_SUFFIX_LENGTH},{MAX_SUFFIX_LENGTH}}}$"
)

# Replacement attempts when a generated value fails its own format check.
_MAX_FORMAT_RETRIES = 10


def prefix_for(seed: str) -> str:
    """Return the three-letter prefix for an archetype.

    Known archetypes use the fixed table; anything else uses its first three
    letters, upper-cased and padded with "X".

    Args:
        seed: Archetype name, any case.
    """
    normalized = " ".join(seed.split()).lower()
    if normalized in PREFIXES:
        return PREFIXES[normalized]
    letters = "".join(ch for ch in normalized if "a" <= ch <= "z")
    return letters[:3].upper().ljust(3, "X")


def is_valid_identity_code(code: str, suffix_length: int | None = None) -> bool:
    """Check the identity code format.

    Args:
        code: Code to check.
        suffix_length: Required suffix length, or None to accept any
            supported length.
    """
    if not _CODE_PATTERN.match(code):
        return False
    if suffix_length is not None:
        return len(code) == 4 + suffix_length
    return True


class IdentityCodeGenerator:
    """Generates candidate identity codes.

    Attributes:
        suffix_length: Number of random suffix characters.
    """

    def __init__(
        self,
        suffix_length: int = DEFAULT_SUFFIX_LENGTH,
        choice: Callable[[Sequence[str]], str] = secrets.choice,
    ) -> None:
        """Initialize the generator.

        Args:
            suffix_length: Suffix length between 3 and 8.
            choice: Function picking one symbol from the alphabet. Must be
                backed by a CSPRNG outside of tests.

        Raises:
            ValueError: If suffix_length is out of range.
        """
        if not MIN_SUFFIX_LENGTH <= suffix_length <= MAX_SUFFIX_LENGTH:
            raise ValueError(
                f"suffix_length must be between {MIN_SUFFIX_LENGTH} and {MAX_SUFFIX_LENGTH}"
            )
        self.suffix_length = suffix_length
        self._choice = choice

    def generate(self, prefix_seed: str) -> str:
        """Generate one candidate code for an archetype.

        Args:
            prefix_seed: Archetype name the prefix is derived from.

        Returns:
            A well-formed code. Uniqueness is not guaranteed.

        Raises:
            RuntimeError: If the symbol source keeps producing malformed codes.
        """
        prefix = prefix_for(prefix_seed)
        for _ in range(_MAX_FORMAT_RETRIES):
            suffix = "".join(self._choice(ALPHABET) for _ in range(self.suffix_length))
            code = f"{prefix}-{suffix}"
            if is_valid_identity_code(code, self.suffix_length):
                return code
            logger.warning("identity_code_format_rejected", prefix=prefix)
        raise RuntimeError(f"Could not generate a well-formed identity code for {prefix!r}")
