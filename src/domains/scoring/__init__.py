# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scoring domain package.

Provides the pure quiz scoring engine and its answer key.
"""

from src.domains.scoring.engine import (
    ARCHETYPES,
    GENIUS_TYPES,
    AnswerKey,
    LearningStyle,
    Question,
    QuestionKind,
    QuizAnswer,
    QuizResult,
    ScoringEngine,
    normalize_answers,
)

__all__ = [
    "ARCHETYPES",
    "GENIUS_TYPES",
    "AnswerKey",
    "LearningStyle",
    "Question",
    "QuestionKind",
    "QuizAnswer",
    "QuizResult",
    "ScoringEngine",
    "normalize_answers",
]
