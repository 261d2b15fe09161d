# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Store-level guards that cannot be expressed as column constraints.

- Each ledger insert is applied to students.currency_balance, whose CHECK
  then rejects any entry that would make the balance negative.
- Ledger rows reject UPDATE and DELETE.
- A committed identity code cannot be changed.
- students.currency_balance starts at zero and only the ledger trigger may
  move it. PostgreSQL tells the two apart by trigger depth; SQLite accepts
  an update only when it equals the ledger sum.

The statements are attached to the metadata so create_all installs them,
and the initial migration executes the same statements.
"""

from sqlalchemy import DDL, MetaData, event

POSTGRESQL_GUARDS: list[str] = [
    """
    CREATE OR REPLACE FUNCTION apply_currency_transaction() RETURNS trigger
    LANGUAGE plpgsql SECURITY DEFINER SET search_path = public AS $$
    BEGIN
        UPDATE students
           SET currency_balance = currency_balance + NEW.amount
         WHERE id = NEW.student_id;
        IF NOT FOUND THEN
            RAISE EXCEPTION 'currency transaction references a missing student'
                USING ERRCODE = 'foreign_key_violation';
        END IF;
        RETURN NEW;
    END;
    $$
    """,
    """
    CREATE TRIGGER trg_currency_transactions_apply
    AFTER INSERT ON currency_transactions
    FOR EACH ROW EXECUTE FUNCTION apply_currency_transaction()
    """,
    """
    CREATE OR REPLACE FUNCTION reject_currency_transaction_change() RETURNS trigger
    LANGUAGE plpgsql AS $$
    BEGIN
        RAISE EXCEPTION 'currency_transactions is append-only'
            USING ERRCODE = 'restrict_violation';
    END;
    $$
    """,
    """
    CREATE TRIGGER trg_currency_transactions_append_only
    BEFORE UPDATE OR DELETE ON currency_transactions
    FOR EACH ROW EXECUTE FUNCTION reject_currency_transaction_change()
    """,
    """
    CREATE OR REPLACE FUNCTION reject_identity_code_change() RETURNS trigger
    LANGUAGE plpgsql AS $$
    BEGIN
        RAISE EXCEPTION 'identity_code is immutable'
            USING ERRCODE = 'restrict_violation';
    END;
    $$
    """,
    """
    CREATE TRIGGER trg_students_identity_code_immutable
    BEFORE UPDATE OF identity_code ON students
    FOR EACH ROW WHEN (OLD.identity_code IS DISTINCT FROM NEW.identity_code)
    EXECUTE FUNCTION reject_identity_code_change()
    """,
    """
    CREATE OR REPLACE FUNCTION guard_currency_balance() RETURNS trigger
    LANGUAGE plpgsql AS $$
    BEGIN
        IF TG_OP = 'INSERT' THEN
            IF NEW.currency_balance <> 0 THEN
                RAISE EXCEPTION 'currency_balance is maintained by the ledger'
                    USING ERRCODE = 'restrict_violation';
            END IF;
        ELSIF pg_trigger_depth() = 1 THEN
            RAISE EXCEPTION 'currency_balance is maintained by the ledger'
                USING ERRCODE = 'restrict_violation';
        END IF;
        RETURN NEW;
    END;
    $$
    """,
    """
    CREATE TRIGGER trg_students_currency_balance_insert
    BEFORE INSERT ON students
    FOR EACH ROW EXECUTE FUNCTION guard_currency_balance()
    """,
    """
    CREATE TRIGGER trg_students_currency_balance_update
    BEFORE UPDATE OF currency_balance ON students
    FOR EACH ROW WHEN (OLD.currency_balance IS DISTINCT FROM NEW.currency_balance)
    EXECUTE FUNCTION guard_currency_balance()
    """,
]

SQLITE_GUARDS: list[str] = [
    """
    CREATE TRIGGER trg_currency_transactions_apply
    AFTER INSERT ON currency_transactions
    FOR EACH ROW BEGIN
        UPDATE students
           SET currency_balance = (
               SELECT COALESCE(SUM(amount), 0)
                 FROM currency_transactions
                WHERE student_id = NEW.student_id
           )
         WHERE id = NEW.student_id;
    END
    """,
    """
    CREATE TRIGGER trg_currency_transactions_no_update
    BEFORE UPDATE ON currency_transactions
    BEGIN
        SELECT RAISE(ABORT, 'currency_transactions is append-only');
    END
    """,
    """
    CREATE TRIGGER trg_currency_transactions_no_delete
    BEFORE DELETE ON currency_transactions
    BEGIN
        SELECT RAISE(ABORT, 'currency_transactions is append-only');
    END
    """,
    """
    CREATE TRIGGER trg_students_identity_code_immutable
    BEFORE UPDATE OF identity_code ON students
    WHEN OLD.identity_code IS NOT NEW.identity_code
    BEGIN
        SELECT RAISE(ABORT, 'identity_code is immutable');
    END
    """,
    """
    CREATE TRIGGER trg_students_currency_balance_insert
    BEFORE INSERT ON students
    WHEN NEW.currency_balance <> 0
    BEGIN
        SELECT RAISE(ABORT, 'currency_balance is maintained by the ledger');
    END
    """,
    """
    CREATE TRIGGER trg_students_currency_balance_update
    BEFORE UPDATE OF currency_balance ON students
    WHEN NEW.currency_balance IS NOT (
        SELECT COALESCE(SUM(amount), 0)
          FROM currency_transactions
         WHERE student_id = NEW.id
    )
    BEGIN
        SELECT RAISE(ABORT, 'currency_balance is maintained by the ledger');
    END
    """,
]

DROP_STATEMENTS: dict[str, list[str]] = {
    "postgresql": [
        "DROP TRIGGER IF EXISTS trg_students_currency_balance_update ON students",
        "DROP TRIGGER IF EXISTS trg_students_currency_balance_insert ON students",
        "DROP TRIGGER IF EXISTS trg_students_identity_code_immutable ON students",
        "DROP TRIGGER IF EXISTS trg_currency_transactions_append_only ON currency_transactions",
        "DROP TRIGGER IF EXISTS trg_currency_transactions_apply ON currency_transactions",
        "DROP FUNCTION IF EXISTS guard_currency_balance()",
        "DROP FUNCTION IF EXISTS reject_identity_code_change()",
        "DROP FUNCTION IF EXISTS reject_currency_transaction_change()",
        "DROP FUNCTION IF EXISTS apply_currency_transaction()",
    ],
    "sqlite": [
        "DROP TRIGGER IF EXISTS trg_students_currency_balance_update",
        "DROP TRIGGER IF EXISTS trg_students_currency_balance_insert",
        "DROP TRIGGER IF EXISTS trg_students_identity_code_immutable",
        "DROP TRIGGER IF EXISTS trg_currency_transactions_no_delete",
        "DROP TRIGGER IF EXISTS trg_currency_transactions_no_update",
        "DROP TRIGGER IF EXISTS trg_currency_transactions_apply",
    ],
}


def guard_statements(dialect_name: str) -> list[str]:
    """Return the guard DDL for a dialect.

    Args:
        dialect_name: SQLAlchemy dialect name ("postgresql" or "sqlite").

    Raises:
        ValueError: If the dialect is not supported.
    """
    if dialect_name == "postgresql":
        return POSTGRESQL_GUARDS
    if dialect_name == "sqlite":
        return SQLITE_GUARDS
    raise ValueError(f"No store guards defined for dialect {dialect_name!r}")


def attach_store_guards(metadata: MetaData) -> None:
    """Install the guards whenever the metadata creates its tables."""
    for dialect_name in ("postgresql", "sqlite"):
        for statement in guard_statements(dialect_name):
            event.listen(
                metadata,
                "after_create",
                DDL(statement).execute_if(dialect=dialect_name),
            )
