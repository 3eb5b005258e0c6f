"""Question and session records shared by the quizzer modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence, Union

from .errors import InvalidQuestionError

QuestionId = Union[int, str]


@dataclass(frozen=True)
class NewQuestion:
    """A question awaiting persistence (no id yet)."""

    question_text: str
    options: tuple[str, ...]
    answer: str
    explanation: str = ""
    category: str = ""

    def to_row(self) -> dict[str, object]:
        return {
            "question": self.question_text,
            "options": list(self.options),
            "answer": self.answer,
            "explanation": self.explanation,
            "category": self.category,
        }


@dataclass(frozen=True)
class Question:
    """A stored question; only ``is_incorrect`` changes after creation."""

    id: QuestionId
    question_text: str
    options: tuple[str, ...]
    answer: str
    explanation: str = ""
    category: str = ""
    is_incorrect: bool = False
    created_at: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Question":
        """Build a question from a table row (``question``/``is_incorrect``)."""

        if "id" not in row or row["id"] is None:
            raise InvalidQuestionError("question row is missing an id")
        options = row.get("options") or []
        if not isinstance(options, (list, tuple)):
            raise InvalidQuestionError(
                f"options for question {row['id']} must be a list"
            )
        return cls(
            id=row["id"],
            question_text=str(row.get("question") or ""),
            options=tuple(str(opt) for opt in options),
            answer=str(row.get("answer") or ""),
            explanation=str(row.get("explanation") or ""),
            category=str(row.get("category") or ""),
            is_incorrect=bool(row.get("is_incorrect", False)),
            created_at=str(row.get("created_at") or ""),
        )

    def to_row(self) -> dict[str, object]:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "question": self.question_text,
            "options": list(self.options),
            "answer": self.answer,
            "explanation": self.explanation,
            "category": self.category,
            "is_incorrect": self.is_incorrect,
        }


def validate_draft(draft: NewQuestion) -> NewQuestion:
    """Validate a draft before it is sent to the store.

    Raises InvalidQuestionError with an actionable message; returns the
    draft unchanged so callers can chain it.
    """
    if not draft.question_text.strip():
        raise InvalidQuestionError("question text is required")
    if len(draft.options) < 2:
        raise InvalidQuestionError("at least two options are required")
    if any(not opt.strip() for opt in draft.options):
        raise InvalidQuestionError("option text must be non-empty")
    if len(set(draft.options)) != len(draft.options):
        raise InvalidQuestionError("duplicate options detected")
    if draft.answer not in draft.options:
        raise InvalidQuestionError("answer must match one of the options")
    if not draft.category.strip():
        raise InvalidQuestionError("category is required")
    return draft


@dataclass(frozen=True)
class SessionAnswer:
    question_id: QuestionId
    selected: str | None = None
    correct: bool = False


@dataclass(frozen=True)
class SessionResult:
    """Summary of a graded exam, as stored in the history ledger."""

    id: str
    started_at: str
    category: str
    total: int
    correct_count: int
    wrong_question_ids: tuple[QuestionId, ...] = field(default_factory=tuple)

    @property
    def accuracy(self) -> float:
        if self.total == 0:
            return 0.0
        return self.correct_count / self.total

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "at": self.started_at,
            "category": self.category,
            "total": self.total,
            "correct": self.correct_count,
            "wrongIds": list(self.wrong_question_ids),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionResult":
        wrong = data.get("wrongIds", data.get("wrong_question_ids")) or []
        if not isinstance(wrong, Sequence) or isinstance(wrong, str):
            raise ValueError("wrongIds must be a list")
        return cls(
            id=str(data["id"]),
            started_at=str(data.get("at", data.get("started_at", ""))),
            category=str(data.get("category", "")),
            total=int(data["total"]),
            correct_count=int(data.get("correct", data.get("correct_count"))),
            wrong_question_ids=tuple(wrong),
        )
