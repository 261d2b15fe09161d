# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for database migrations.

Applies the migrations to a fresh SQLite file and checks that the migrated
schema carries the same guarantees as the models.
"""

import pytest
import pytest_asyncio
from sqlalchemy import inspect, text

from src.core.config.settings import DatabaseSettings
from src.domains.enrollment import EnrollmentService
from src.domains.ledger import LedgerService
from src.infrastructure.database.connection import build_engine, build_sessionmaker
from src.infrastructure.database.migrations.runner import (
    get_migration_status,
    pending_revisions,
    revision_chain,
    run_migrations,
)
from src.infrastructure.database.models import Classroom

pytestmark = pytest.mark.integration


@pytest.fixture
def migrated_url(tmp_path) -> str:
    """URL of a SQLite file for migration runs."""
    return f"sqlite+aiosqlite:///{tmp_path / 'migrated.db'}"


@pytest_asyncio.fixture
async def migrated_engine(migrated_url):
    """Engine on a migrated database."""
    await run_migrations(migrated_url)
    engine = build_engine(DatabaseSettings(url_override=migrated_url))

    yield engine

    await engine.dispose()


class TestRevisionChain:
    """Test revision discovery and pending selection."""

    CHAIN = ["001_initial_schema", "002_next", "003_later"]

    def test_discovers_revisions(self):
        """Verify the revision files are found base first."""
        assert revision_chain()[0] == "001_initial_schema"

    def test_fresh_database_applies_everything(self):
        """Verify all revisions are pending on a fresh database."""
        assert pending_revisions(self.CHAIN, None) == self.CHAIN

    def test_partial_upgrade(self):
        """Verify only later revisions are pending."""
        assert pending_revisions(self.CHAIN, "001_initial_schema") == ["002_next", "003_later"]

    def test_target_revision(self):
        """Verify the target bounds the upgrade."""
        assert pending_revisions(self.CHAIN, None, "002_next") == [
            "001_initial_schema",
            "002_next",
        ]

    def test_up_to_date_database(self):
        """Verify nothing is pending at the head."""
        assert pending_revisions(self.CHAIN, "003_later") == []

    def test_unknown_database_revision(self):
        """Verify a database ahead of this code applies nothing."""
        assert pending_revisions(self.CHAIN, "999_unknown") == []

    def test_unknown_target(self):
        """Verify unknown targets are refused."""
        with pytest.raises(ValueError):
            pending_revisions(self.CHAIN, None, "999_unknown")


class TestRunMigrations:
    """Test migration execution."""

    @pytest.mark.asyncio
    async def test_applies_once(self, migrated_url):
        """Verify migrations apply once and record the version."""
        before = await get_migration_status(migrated_url)
        applied = await run_migrations(migrated_url)
        again = await run_migrations(migrated_url)
        after = await get_migration_status(migrated_url)

        assert before.current_revision is None
        assert before.is_up_to_date is False
        assert applied == ["001_initial_schema"]
        assert again == []
        assert after.current_revision == "001_initial_schema"
        assert after.head_revision == "001_initial_schema"
        assert after.is_up_to_date is True

    @pytest.mark.asyncio
    async def test_creates_tables(self, migrated_engine):
        """Verify the migration creates all required tables."""
        async with migrated_engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

        for table in ("classrooms", "students", "quiz_submissions", "currency_transactions"):
            assert table in tables, f"Table {table} not found"

    @pytest.mark.asyncio
    async def test_students_table_has_correct_columns(self, migrated_engine):
        """Verify students table has all required columns."""
        async with migrated_engine.connect() as conn:
            columns = await conn.run_sync(
                lambda sync_conn: {col["name"] for col in inspect(sync_conn).get_columns("students")}
            )

        expected_columns = {
            "id",
            "class_id",
            "student_name",
            "name_key",
            "first_name",
            "last_initial",
            "grade_level",
            "identity_code",
            "personality_type",
            "archetype",
            "genius_type",
            "learning_style",
            "currency_balance",
            "created_at",
        }
        for col in expected_columns:
            assert col in columns, f"Column {col} not found in students table"

    @pytest.mark.asyncio
    async def test_installs_guards(self, migrated_engine):
        """Verify the migration installs the store triggers."""
        async with migrated_engine.connect() as conn:
            result = await conn.execute(
                text("SELECT name FROM sqlite_master WHERE type = 'trigger'")
            )
            triggers = set(result.scalars())

        assert "trg_currency_transactions_apply" in triggers
        assert "trg_currency_transactions_no_update" in triggers
        assert "trg_students_identity_code_immutable" in triggers
        assert "trg_students_currency_balance_update" in triggers

    @pytest.mark.asyncio
    async def test_enrollment_on_migrated_schema(
        self, migrated_engine, test_settings, beaver_answers
    ):
        """Verify an enrollment commits against the migrated schema."""
        sessionmaker = build_sessionmaker(migrated_engine)
        async with sessionmaker() as session:
            async with session.begin():
                session.add(Classroom(class_code="482913", name="Migrated class"))

        service = EnrollmentService(sessionmaker, settings=test_settings)
        outcome = await service.enroll("482913", "Ava R", None, beaver_answers)

        assert outcome.ok is True
        async with sessionmaker() as session:
            report = await LedgerService(session).reconcile(outcome.student_id)
        assert report.ledger_balance == 50
        assert report.in_sync is True
