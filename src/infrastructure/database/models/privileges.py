# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Privileges of the PostgreSQL role the enrollment service connects as.

The role reads classrooms and appends to the roster and ledger tables.
It holds UPDATE on classrooms.updated_at only because PostgreSQL requires
UPDATE on at least one column before it grants SELECT ... FOR UPDATE,
which the capacity check relies on.
"""

SERVICE_ROLE = "enrollment_service"


def service_grants(role: str = SERVICE_ROLE) -> list[str]:
    """Return the GRANT statements for the enrollment service role.

    Args:
        role: Role name to grant to.

    Returns:
        GRANT statements covering the tables created by the models.
    """
    return [
        f"GRANT SELECT ON classrooms TO {role}",
        f"GRANT UPDATE (updated_at) ON classrooms TO {role}",
        f"GRANT SELECT, INSERT ON students, quiz_submissions, currency_transactions TO {role}",
    ]


def grant_if_role_exists(statements: list[str], role: str = SERVICE_ROLE) -> str:
    """Wrap GRANT statements in a block that is a no-op without the role."""
    body = "\n".join(f"        {statement};" for statement in statements)
    return (
        "DO $$\n"
        "BEGIN\n"
        f"    IF EXISTS (SELECT 1 FROM pg_roles WHERE rolname = '{role}') THEN\n"
        f"{body}\n"
        "    END IF;\n"
        "END\n"
        "$$"
    )
