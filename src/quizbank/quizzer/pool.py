"""Question pool selection for quiz, review and exam sessions."""

from __future__ import annotations

import random
from typing import List, Literal, Optional, Sequence

from .errors import EmptyPoolError
from .models import Question

SessionMode = Literal["quiz", "review", "exam"]
DEFAULT_EXAM_SIZE = 25


def select_pool(
    questions: Sequence[Question],
    *,
    mode: SessionMode,
    category: Optional[str] = None,
    cap: int = DEFAULT_EXAM_SIZE,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """Filter, shuffle and (for exams) cap the questions for a session.

    - category given: questions in that category
    - review without category: questions flagged incorrect
    - otherwise: every question
    The order is a uniform permutation (Fisher-Yates via ``Random.shuffle``);
    pass a seeded ``rng`` for reproducible draws.
    """
    if cap <= 0:
        raise ValueError("cap must be positive")
    if category is not None:
        pool = [q for q in questions if q.category == category]
    elif mode == "review":
        pool = [q for q in questions if q.is_incorrect]
    else:
        pool = list(questions)

    if not pool:
        raise EmptyPoolError(_empty_message(mode, category))

    (rng or random.Random()).shuffle(pool)
    if mode == "exam":
        pool = pool[:cap]
    return pool


def categories(questions: Sequence[Question]) -> List[str]:
    """Distinct non-empty categories in first-seen order."""
    seen: dict[str, None] = {}
    for q in questions:
        if q.category:
            seen.setdefault(q.category, None)
    return list(seen)


def _empty_message(mode: SessionMode, category: Optional[str]) -> str:
    if category is not None:
        return f"No questions in category '{category}'."
    if mode == "review":
        return "No questions are marked incorrect. Nothing to review."
    return "Question bank is empty. Add questions first."
