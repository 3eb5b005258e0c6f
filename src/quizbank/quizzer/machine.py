"""Immutable state machines for quiz/review and exam sessions.

Every transition returns a new session object. Transitions that should touch
the question store (flagging a question incorrect or mastered) do not call it
themselves; they return ``FlagUpdate`` effects for the caller to apply, which
keeps the machines free of IO and easy to test.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Literal, Optional, Sequence

from .errors import EmptyPoolError, InvalidTransition
from .models import Question, QuestionId, SessionAnswer, SessionResult

QuizMode = Literal["quiz", "review"]


class QuizPhase(str, Enum):
    PRESENTING = "presenting"
    REVEALED = "revealed"
    FINISHED = "finished"


class ExamPhase(str, Enum):
    ANSWERING = "answering"
    GRADED = "graded"


@dataclass(frozen=True)
class FlagUpdate:
    """Request to set a question's ``is_incorrect`` flag in the store."""

    question_id: QuestionId
    is_incorrect: bool


Effects = tuple[FlagUpdate, ...]


@dataclass(frozen=True)
class QuizSession:
    """Immediate-feedback session: each answer is revealed before moving on."""

    questions: tuple[Question, ...]
    mode: QuizMode = "quiz"
    index: int = 0
    phase: QuizPhase = QuizPhase.PRESENTING
    last_answer: Optional[SessionAnswer] = None
    answered: int = 0
    correct_count: int = 0

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def finished(self) -> bool:
        return self.phase is QuizPhase.FINISHED

    @property
    def current(self) -> Question:
        if self.finished:
            raise InvalidTransition("session is finished")
        return self.questions[self.index]

    def select(self, option: str) -> tuple["QuizSession", Effects]:
        """Answer the current question; ignored unless it is still open."""
        if self.phase is not QuizPhase.PRESENTING:
            return self, ()
        question = self.current
        if option not in question.options:
            raise ValueError(f"'{option}' is not an option of this question")
        correct = option == question.answer
        answer = SessionAnswer(question.id, option, correct)
        effects: Effects = ()
        if not correct:
            effects = (FlagUpdate(question.id, True),)
        advanced = replace(
            self,
            phase=QuizPhase.REVEALED,
            last_answer=answer,
            answered=self.answered + 1,
            correct_count=self.correct_count + int(correct),
        )
        return advanced, effects

    def advance(self) -> "QuizSession":
        if self.phase is not QuizPhase.REVEALED:
            return self
        return self._step()

    def mastered(self) -> tuple["QuizSession", Effects]:
        """Clear the current question's incorrect flag and move on."""
        if self.mode != "review":
            raise InvalidTransition("'mastered' is only available in review")
        if self.finished:
            return self, ()
        effects = (FlagUpdate(self.current.id, False),)
        return self._step(), effects

    def quit(self) -> "QuizSession":
        if self.finished:
            return self
        return replace(self, phase=QuizPhase.FINISHED, last_answer=None)

    def _step(self) -> "QuizSession":
        if self.index + 1 >= self.total:
            return replace(self, phase=QuizPhase.FINISHED, last_answer=None)
        return replace(
            self,
            index=self.index + 1,
            phase=QuizPhase.PRESENTING,
            last_answer=None,
        )


def start_quiz(
    questions: Sequence[Question], mode: QuizMode = "quiz"
) -> QuizSession:
    if mode not in ("quiz", "review"):
        raise ValueError(f"Unknown quiz mode '{mode}'")
    if not questions:
        raise EmptyPoolError("No questions available for this session.")
    return QuizSession(tuple(questions), mode=mode)


def grade_answers(
    answers: Sequence[SessionAnswer],
) -> tuple[int, tuple[QuestionId, ...]]:
    """Return ``(correct_count, wrong_ids)``; unanswered counts as wrong."""
    correct = sum(1 for a in answers if a.correct)
    wrong = tuple(a.question_id for a in answers if not a.correct)
    return correct, wrong


@dataclass(frozen=True)
class ExamSession:
    """Deferred-feedback session graded after the last question."""

    questions: tuple[Question, ...]
    category: str
    session_id: str
    started_at: str
    answers: tuple[SessionAnswer, ...] = field(default_factory=tuple)
    index: int = 0
    phase: ExamPhase = ExamPhase.ANSWERING
    result: Optional[SessionResult] = None

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def graded(self) -> bool:
        return self.phase is ExamPhase.GRADED

    @property
    def current(self) -> Question:
        return self.questions[self.index]

    @property
    def is_last(self) -> bool:
        return self.index == self.total - 1

    def selected_for(self, index: Optional[int] = None) -> Optional[str]:
        return self.answers[self.index if index is None else index].selected

    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a.selected is not None)

    def select(self, option: str) -> "ExamSession":
        self._require_answering()
        question = self.current
        if option not in question.options:
            raise ValueError(f"'{option}' is not an option of this question")
        answers = list(self.answers)
        answers[self.index] = SessionAnswer(
            question.id, option, option == question.answer
        )
        return replace(self, answers=tuple(answers))

    def previous(self) -> "ExamSession":
        self._require_answering()
        return replace(self, index=max(0, self.index - 1))

    def next(self) -> "ExamSession":
        self._require_answering()
        if self.is_last:
            return self.submit()
        return replace(self, index=self.index + 1)

    def submit(self) -> "ExamSession":
        """Grade the exam regardless of the current position."""
        self._require_answering()
        correct, wrong = grade_answers(self.answers)
        result = SessionResult(
            id=self.session_id,
            started_at=self.started_at,
            category=self.category,
            total=self.total,
            correct_count=correct,
            wrong_question_ids=wrong,
        )
        return replace(self, phase=ExamPhase.GRADED, result=result)

    def _require_answering(self) -> None:
        if self.phase is not ExamPhase.ANSWERING:
            raise InvalidTransition("exam has already been graded")


def start_exam(
    questions: Sequence[Question],
    category: str,
    *,
    clock: Optional[Callable[[], datetime]] = None,
    id_factory: Optional[Callable[[], str]] = None,
) -> ExamSession:
    if not questions:
        raise EmptyPoolError("No questions available for this exam.")
    now = (clock or (lambda: datetime.now(timezone.utc)))()
    return ExamSession(
        questions=tuple(questions),
        category=category,
        session_id=(id_factory or (lambda: uuid.uuid4().hex))(),
        started_at=now.isoformat(),
        answers=tuple(SessionAnswer(q.id) for q in questions),
    )
