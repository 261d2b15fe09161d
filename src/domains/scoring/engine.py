# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Quiz scoring engine.

Maps a completed quiz to a four-letter personality type, an animal
archetype, a genius type and a primary learning style. Scoring is a pure
function of the answers and the answer key: the same answers always
produce the same result.

The answer key only records which pole or learning style each option
counts toward, so question wording stays with the quiz content owners.

Example:
    >>> engine = ScoringEngine()
    >>> result = engine.score(["A"] * 16 + ["A", "B", "A", "D"])
    >>> result.personality_type, result.archetype
    ('ESTJ', 'Border Collie')
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.core.errors import ValidationError
from src.utils.logging import get_logger

logger = get_logger(__name__)


class QuestionKind(str, Enum):
    """What a question measures."""

    PERSONALITY = "personality"
    LEARNING_STYLE = "learning_style"


class LearningStyle(str, Enum):
    """Learning styles, in tie-break order."""

    VISUAL = "visual"
    AUDITORY = "auditory"
    KINESTHETIC = "kinesthetic"
    READING_WRITING = "readingWriting"


# Personality axes as (first pole, second pole).
AXES: tuple[tuple[str, str], ...] = (("E", "I"), ("S", "N"), ("T", "F"), ("J", "P"))

ARCHETYPES: dict[str, str] = {
    "INFP": "Meerkat",
    "ISFP": "Meerkat",
    "INFJ": "Panda",
    "INTJ": "Panda",
    "ISTP": "Owl",
    "INTP": "Owl",
    "ISFJ": "Beaver",
    "ISTJ": "Beaver",
    "ESFJ": "Elephant",
    "ENFJ": "Elephant",
    "ESFP": "Otter",
    "ESTP": "Otter",
    "ENFP": "Parrot",
    "ENTP": "Parrot",
    "ESTJ": "Border Collie",
    "ENTJ": "Border Collie",
}

GENIUS_TYPES: dict[str, str] = {
    "Owl": "Thinker",
    "Parrot": "Thinker",
    "Meerkat": "Feeler",
    "Elephant": "Feeler",
    "Panda": "Feeler",
    "Beaver": "Doer",
    "Otter": "Doer",
    "Border Collie": "Doer",
}


@dataclass(frozen=True)
class Question:
    """One scored question.

    Attributes:
        question_id: 1-based question number.
        kind: Whether the question scores personality or learning style.
        options: Answer letter to the pole or learning style it counts toward.
    """

    question_id: int
    kind: QuestionKind
    options: Mapping[str, str]


def _personality(question_id: int, pole: str, letter: str) -> Question:
    """Build an A/B question where `letter` counts toward `pole`."""
    opposite = next(b if a == pole else a for a, b in AXES if pole in (a, b))
    other = "B" if letter == "A" else "A"
    return Question(question_id, QuestionKind.PERSONALITY, {letter: pole, other: opposite})


def _learning_style(question_id: int) -> Question:
    return Question(
        question_id,
        QuestionKind.LEARNING_STYLE,
        {
            "A": LearningStyle.VISUAL.value,
            "B": LearningStyle.AUDITORY.value,
            "C": LearningStyle.READING_WRITING.value,
            "D": LearningStyle.KINESTHETIC.value,
        },
    )


@dataclass(frozen=True)
class AnswerKey:
    """Ordered, injectable answer key.

    Attributes:
        questions: Questions in order, numbered 1..n without gaps.
    """

    questions: tuple[Question, ...]

    def __post_init__(self) -> None:
        expected = list(range(1, len(self.questions) + 1))
        if [q.question_id for q in self.questions] != expected:
            raise ValueError("Answer key questions must be numbered 1..n in order")

    def __len__(self) -> int:
        return len(self.questions)

    def question(self, question_id: int) -> Question:
        """Return the question with the given 1-based id."""
        return self.questions[question_id - 1]

    @classmethod
    def default(cls) -> "AnswerKey":
        """Build the standard 20-question key.

        Questions 1-16 score personality, four per axis; questions 17-20
        score learning style.
        """
        personality = [
            # E/I
            _personality(1, "E", "B"),
            _personality(2, "E", "A"),
            _personality(3, "E", "A"),
            _personality(4, "E", "A"),
            # S/N
            _personality(5, "S", "A"),
            _personality(6, "S", "B"),
            _personality(7, "S", "A"),
            _personality(8, "S", "B"),
            # T/F
            _personality(9, "T", "A"),
            _personality(10, "T", "A"),
            _personality(11, "T", "B"),
            _personality(12, "T", "A"),
            # J/P
            _personality(13, "J", "A"),
            _personality(14, "J", "A"),
            _personality(15, "J", "A"),
            _personality(16, "J", "A"),
        ]
        learning = [_learning_style(question_id) for question_id in range(17, 21)]
        return cls(tuple(personality + learning))


@dataclass(frozen=True)
class QuizAnswer:
    """One normalized answer."""

    question_id: int
    answer: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored JSON shape."""
        return {"question_id": self.question_id, "answer": self.answer}


@dataclass(frozen=True)
class QuizResult:
    """Outcome of scoring one quiz.

    Attributes:
        personality_type: Four-letter type such as "INTJ".
        archetype: Animal archetype for the type.
        genius_type: Thinker, Feeler or Doer.
        learning_style: Primary learning style.
        pole_scores: Count per personality pole (E, I, S, N, T, F, J, P).
        learning_scores: Count per learning style.
        answers: The normalized answers that were scored.
    """

    personality_type: str
    archetype: str
    genius_type: str
    learning_style: str
    pole_scores: dict[str, int] = field(default_factory=dict)
    learning_scores: dict[str, int] = field(default_factory=dict)
    answers: tuple[QuizAnswer, ...] = ()


_QUESTION_NUMBER = re.compile(r"\d+")


def _question_id_from_key(key: Any) -> int:
    if isinstance(key, int) and not isinstance(key, bool):
        return key
    match = _QUESTION_NUMBER.search(str(key))
    if match is None:
        raise ValidationError(f"Unrecognized question identifier: {key!r}", field="answers")
    return int(match.group())


def _letter(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Every answer must be a letter", field="answers")
    return value.strip().upper()


def normalize_answers(raw_answers: Any) -> list[QuizAnswer]:
    """Normalize the accepted answer shapes into an ordered answer list.

    Accepted shapes:
    - a list of {"question_id": 1, "answer": "A"} items ("questionId" also
      accepted),
    - a list of answer letters in question order,
    - a mapping such as {"q1": "A", "q2": "B"}.

    Args:
        raw_answers: Answers as submitted.

    Returns:
        Answers sorted by question id.

    Raises:
        ValidationError: If the shape is not recognized or a question id
            appears twice.
    """
    pairs: list[tuple[int, str]] = []

    if isinstance(raw_answers, Mapping):
        for key, value in raw_answers.items():
            pairs.append((_question_id_from_key(key), _letter(value)))
    elif isinstance(raw_answers, Iterable) and not isinstance(raw_answers, (str, bytes)):
        for index, item in enumerate(raw_answers, start=1):
            if isinstance(item, str):
                pairs.append((index, _letter(item)))
            elif isinstance(item, Mapping):
                key = item.get("question_id", item.get("questionId"))
                if key is None or "answer" not in item:
                    raise ValidationError(
                        "Each answer needs a question_id and an answer", field="answers"
                    )
                pairs.append((_question_id_from_key(key), _letter(item["answer"])))
            elif isinstance(item, QuizAnswer):
                pairs.append((item.question_id, _letter(item.answer)))
            else:
                raise ValidationError("Invalid answers format", field="answers")
    else:
        raise ValidationError("Invalid answers format", field="answers")

    seen: set[int] = set()
    for question_id, _ in pairs:
        if question_id in seen:
            raise ValidationError(f"Question {question_id} answered more than once", field="answers")
        seen.add(question_id)

    return [QuizAnswer(question_id, answer) for question_id, answer in sorted(pairs)]


class ScoringEngine:
    """Scores quiz answers against an answer key.

    Attributes:
        answer_key: The key used for scoring.
    """

    def __init__(self, answer_key: AnswerKey | None = None) -> None:
        """Initialize the engine.

        Args:
            answer_key: Answer key to score against. Defaults to the standard
                20-question key.
        """
        self.answer_key = answer_key or AnswerKey.default()

    def validate(self, answers: list[QuizAnswer]) -> None:
        """Check that answers cover the key exactly with valid letters.

        Raises:
            ValidationError: On wrong arity, unknown question ids or letters
                outside a question's options.
        """
        expected = len(self.answer_key)
        if len(answers) != expected:
            raise ValidationError(
                f"Incomplete quiz: expected {expected} answers, got {len(answers)}",
                field="answers",
            )
        for answer in answers:
            if not 1 <= answer.question_id <= expected:
                raise ValidationError(
                    f"Unknown question {answer.question_id}", field="answers"
                )
            question = self.answer_key.question(answer.question_id)
            if answer.answer not in question.options:
                allowed = ", ".join(sorted(question.options))
                raise ValidationError(
                    f"Question {answer.question_id} only accepts {allowed}",
                    field="answers",
                )

    def score(self, raw_answers: Any) -> QuizResult:
        """Score a quiz submission.

        Args:
            raw_answers: Answers in any accepted shape (see normalize_answers).

        Returns:
            The deterministic QuizResult.

        Raises:
            ValidationError: If the answers are malformed.
        """
        answers = normalize_answers(raw_answers)
        self.validate(answers)

        pole_scores = {pole: 0 for axis in AXES for pole in axis}
        learning_scores = {style.value: 0 for style in LearningStyle}

        for answer in answers:
            question = self.answer_key.question(answer.question_id)
            target = question.options[answer.answer]
            if question.kind is QuestionKind.PERSONALITY:
                pole_scores[target] += 1
            else:
                learning_scores[target] += 1

        personality_type = (
            ("E" if pole_scores["E"] > pole_scores["I"] else "I")
            + ("S" if pole_scores["S"] >= pole_scores["N"] else "N")
            + ("T" if pole_scores["T"] > pole_scores["F"] else "F")
            + ("J" if pole_scores["J"] >= pole_scores["P"] else "P")
        )
        archetype = ARCHETYPES[personality_type]

        # First maximum in enum order wins ties.
        learning_style = max(LearningStyle, key=lambda style: learning_scores[style.value]).value

        result = QuizResult(
            personality_type=personality_type,
            archetype=archetype,
            genius_type=GENIUS_TYPES[archetype],
            learning_style=learning_style,
            pole_scores=pole_scores,
            learning_scores=learning_scores,
            answers=tuple(answers),
        )
        logger.debug(
            "quiz_scored",
            personality_type=personality_type,
            archetype=archetype,
            learning_style=learning_style,
        )
        return result
