# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial enrollment store schema.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2025-07-12

Creates classrooms, students, quiz_submissions and currency_transactions
together with the store-level guards: amount/kind polarity, non-negative
balance, the balance triggers, append-only ledger rows and immutable
identity codes. On PostgreSQL the service role, when it exists, is granted
only what enrollment needs.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

from src.infrastructure.database.models.ledger import AMOUNT_POLARITY_SQL
from src.infrastructure.database.models.privileges import (
    SERVICE_ROLE,
    grant_if_role_exists,
    service_grants,
)
from src.infrastructure.database.models.triggers import DROP_STATEMENTS, guard_statements

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

GRANT_SERVICE_ROLE = grant_if_role_exists(
    [*service_grants(), f"GRANT SELECT ON alembic_version TO {SERVICE_ROLE}"]
)


def upgrade() -> None:
    """Create enrollment store tables and guards."""
    # ==========================================================================
    # 1. classrooms table
    # ==========================================================================
    op.create_table(
        "classrooms",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("class_code", sa.String(20), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("seat_limit", sa.Integer, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_classrooms"),
        sa.UniqueConstraint("class_code", name="uq_classrooms_class_code"),
        sa.CheckConstraint(
            "seat_limit IS NULL OR seat_limit > 0",
            name="ck_classrooms_seat_limit_positive",
        ),
    )

    # ==========================================================================
    # 2. students table
    # ==========================================================================
    op.create_table(
        "students",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("class_id", sa.String(36), nullable=False),
        sa.Column("student_name", sa.String(64), nullable=False),
        sa.Column("name_key", sa.String(64), nullable=False),
        sa.Column("first_name", sa.String(30), nullable=True),
        sa.Column("last_initial", sa.String(1), nullable=True),
        sa.Column("grade_level", sa.String(10), nullable=True),
        sa.Column("identity_code", sa.String(16), nullable=False),
        sa.Column("personality_type", sa.String(4), nullable=False),
        sa.Column("archetype", sa.String(32), nullable=False),
        sa.Column("genius_type", sa.String(16), nullable=False),
        sa.Column("learning_style", sa.String(20), nullable=False),
        sa.Column("currency_balance", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_students"),
        sa.ForeignKeyConstraint(
            ["class_id"],
            ["classrooms.id"],
            name="fk_students_class_id_classrooms",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("identity_code", name="uq_students_identity_code"),
        sa.UniqueConstraint("class_id", "name_key", name="uq_students_class_name"),
        sa.CheckConstraint(
            "currency_balance >= 0",
            name="ck_students_currency_balance_non_negative",
        ),
    )
    op.create_index("ix_students_class_id", "students", ["class_id"])

    # ==========================================================================
    # 3. quiz_submissions table
    # ==========================================================================
    op.create_table(
        "quiz_submissions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("student_id", sa.String(36), nullable=False),
        sa.Column("answers", sa.JSON, nullable=False),
        sa.Column("coins_earned", sa.Integer, nullable=False),
        sa.Column(
            "completed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_quiz_submissions"),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["students.id"],
            name="fk_quiz_submissions_student_id_students",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("student_id", name="uq_quiz_submissions_student_id"),
    )

    # ==========================================================================
    # 4. currency_transactions table
    # ==========================================================================
    op.create_table(
        "currency_transactions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("student_id", sa.String(36), nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("transaction_type", sa.String(32), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_currency_transactions"),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["students.id"],
            name="fk_currency_transactions_student_id_students",
            ondelete="RESTRICT",
        ),
        sa.CheckConstraint(
            AMOUNT_POLARITY_SQL,
            name="ck_currency_transactions_amount_matches_kind",
        ),
    )
    op.create_index(
        "ix_currency_transactions_student_created",
        "currency_transactions",
        ["student_id", "created_at"],
    )

    # ==========================================================================
    # 5. Store guards and privileges
    # ==========================================================================
    dialect_name = op.get_bind().dialect.name
    for statement in guard_statements(dialect_name):
        op.execute(statement)

    if dialect_name == "postgresql":
        op.execute(GRANT_SERVICE_ROLE)


def downgrade() -> None:
    """Drop enrollment store tables and guards."""
    dialect_name = op.get_bind().dialect.name
    for statement in DROP_STATEMENTS.get(dialect_name, []):
        op.execute(statement)

    op.drop_index("ix_currency_transactions_student_created", "currency_transactions")
    op.drop_table("currency_transactions")
    op.drop_table("quiz_submissions")
    op.drop_index("ix_students_class_id", "students")
    op.drop_table("students")
    op.drop_table("classrooms")
