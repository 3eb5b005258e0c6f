"""Sample questions and upload text shared by tests."""

from __future__ import annotations

from typing import Iterable

from quizbank.quizzer.models import Question

SAMPLE_UPLOAD = """\
문제: 2+2=? ①3 ②4 ③5
답: ②
해설: 기본 연산
—
문제: 수도는? ①서울 ②부산
답: ①서울
해설: 상식
"""


def make_question(
    qid: int | str,
    *,
    category: str = "math",
    options: Iterable[str] = ("A", "B", "C"),
    answer: str = "A",
    is_incorrect: bool = False,
    explanation: str = "",
) -> Question:
    return Question(
        id=qid,
        question_text=f"Question {qid}?",
        options=tuple(options),
        answer=answer,
        explanation=explanation,
        category=category,
        is_incorrect=is_incorrect,
    )
