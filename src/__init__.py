"""Classroom Enrollment Backend.

Concurrency-safe quiz enrollment for classrooms: scores the personality and
learning-style quiz, mints a shareable identity code and grants the starting
currency in one database transaction.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
