# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Classroom roster models: classrooms, students and quiz submissions."""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, TimestampMixin, new_uuid
from src.utils.datetime import utc_now


class Classroom(Base, TimestampMixin):
    """A class students join with a class code.

    Created and managed outside this service. class_code is stored
    upper-cased so lookups can compare case-insensitively.
    """

    __tablename__ = "classrooms"
    __table_args__ = (
        CheckConstraint("seat_limit IS NULL OR seat_limit > 0", name="seat_limit_positive"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    class_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=true(), nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    seat_limit: Mapped[int | None] = mapped_column(Integer)

    def __repr__(self) -> str:
        return f"<Classroom(id={self.id}, class_code={self.class_code})>"


class Student(Base):
    """An enrolled student.

    currency_balance is maintained by a store trigger from the ledger and
    must never be written directly.
    """

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("class_id", "name_key", name="uq_students_class_name"),
        CheckConstraint("currency_balance >= 0", name="currency_balance_non_negative"),
        Index("ix_students_class_id", "class_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    class_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("classrooms.id", ondelete="RESTRICT"),
        nullable=False,
    )
    student_name: Mapped[str] = mapped_column(String(64), nullable=False)
    name_key: Mapped[str] = mapped_column(String(64), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(30))
    last_initial: Mapped[str | None] = mapped_column(String(1))
    grade_level: Mapped[str | None] = mapped_column(String(10))
    identity_code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    personality_type: Mapped[str] = mapped_column(String(4), nullable=False)
    archetype: Mapped[str] = mapped_column(String(32), nullable=False)
    genius_type: Mapped[str] = mapped_column(String(16), nullable=False)
    learning_style: Mapped[str] = mapped_column(String(20), nullable=False)
    currency_balance: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, identity_code={self.identity_code})>"


class QuizSubmission(Base):
    """The scored quiz that created a student, exactly one per student."""

    __tablename__ = "quiz_submissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    student_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("students.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
    )
    answers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    coins_earned: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
