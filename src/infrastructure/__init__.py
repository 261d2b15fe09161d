# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer.

This package contains the database connection, models, migrations and
store error classification for the enrollment store (PostgreSQL or SQLite).
"""
