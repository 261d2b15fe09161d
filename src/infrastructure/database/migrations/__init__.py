# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database migrations package.

Contains the Alembic environment and the ordered schema revisions for the
enrollment store. The revisions can also be applied programmatically with
src.infrastructure.database.migrations.runner.
"""
