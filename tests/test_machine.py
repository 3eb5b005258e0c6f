from __future__ import annotations

from datetime import datetime, timezone

import pytest

from fixtures import make_question
from quizbank.quizzer.errors import EmptyPoolError, InvalidTransition
from quizbank.quizzer.machine import (
    ExamPhase,
    FlagUpdate,
    QuizPhase,
    grade_answers,
    start_exam,
    start_quiz,
)
from quizbank.quizzer.models import SessionAnswer


def _exam(questions, **kwargs):
    return start_exam(
        questions,
        "math",
        clock=lambda: datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc),
        id_factory=lambda: "exam-1",
        **kwargs,
    )


def test_quiz_wrong_answer_flags_question() -> None:
    session = start_quiz([make_question(1), make_question(2)])

    revealed, effects = session.select("B")

    assert revealed.phase is QuizPhase.REVEALED
    assert revealed.last_answer == SessionAnswer(1, "B", False)
    assert effects == (FlagUpdate(1, True),)
    assert session.phase is QuizPhase.PRESENTING


def test_quiz_correct_answer_has_no_effects() -> None:
    session = start_quiz([make_question(1)])

    revealed, effects = session.select("A")

    assert effects == ()
    assert revealed.correct_count == 1
    assert revealed.answered == 1


def test_quiz_ignores_second_selection_until_advanced() -> None:
    session, _ = start_quiz([make_question(1), make_question(2)]).select("B")

    again, effects = session.select("A")

    assert again is session
    assert effects == ()


def test_quiz_advance_walks_to_finish() -> None:
    session = start_quiz([make_question(1), make_question(2)])
    assert session.advance() is session

    session, _ = session.select("A")
    session = session.advance()
    assert (session.index, session.phase) == (1, QuizPhase.PRESENTING)

    session, _ = session.select("C")
    session = session.advance()
    assert session.finished
    assert (session.answered, session.correct_count) == (2, 1)
    with pytest.raises(InvalidTransition):
        session.current


def test_quiz_rejects_unknown_option() -> None:
    with pytest.raises(ValueError):
        start_quiz([make_question(1)]).select("Z")


def test_quit_is_idempotent() -> None:
    session = start_quiz([make_question(1)]).quit()
    assert session.finished
    assert session.quit() is session


def test_mastered_only_in_review() -> None:
    with pytest.raises(InvalidTransition):
        start_quiz([make_question(1)]).mastered()


def test_review_mastered_clears_flag_and_steps() -> None:
    flagged = [
        make_question(1, is_incorrect=True),
        make_question(2, is_incorrect=True),
    ]
    session = start_quiz(flagged, "review")

    session, effects = session.mastered()

    assert effects == (FlagUpdate(1, False),)
    assert session.index == 1
    session, effects = session.mastered()
    assert effects == (FlagUpdate(2, False),)
    assert session.finished


def test_start_quiz_requires_questions_and_known_mode() -> None:
    with pytest.raises(EmptyPoolError):
        start_quiz([])
    with pytest.raises(ValueError):
        start_quiz([make_question(1)], "exam")  # type: ignore[arg-type]


def test_grade_counts_unanswered_as_wrong() -> None:
    answers = [
        SessionAnswer(1, "A", True),
        SessionAnswer(2, "B", False),
        SessionAnswer(3),
    ]
    assert grade_answers(answers) == (1, (2, 3))


def test_exam_three_questions_one_wrong() -> None:
    questions = [make_question(i) for i in (1, 2, 3)]
    exam = _exam(questions)

    exam = exam.select("A").next().select("B").next()
    assert not exam.graded
    exam = exam.select("A").next()

    assert exam.phase is ExamPhase.GRADED
    result = exam.result
    assert result.id == "exam-1"
    assert result.started_at == "2024-03-01T09:30:00+00:00"
    assert (result.total, result.correct_count) == (3, 2)
    assert result.wrong_question_ids == (2,)


def test_exam_reselection_overwrites_previous_answer() -> None:
    exam = _exam([make_question(1), make_question(2)])

    exam = exam.select("B").select("A")

    assert exam.selected_for() == "A"
    assert exam.answers[0].correct
    assert exam.answered_count() == 1


def test_exam_navigation_keeps_answers() -> None:
    exam = _exam([make_question(1), make_question(2)])

    exam = exam.previous()
    assert exam.index == 0
    exam = exam.select("C").next().previous()

    assert exam.index == 0
    assert exam.selected_for() == "C"
    assert exam.selected_for(1) is None


def test_exam_submit_early_counts_unanswered() -> None:
    exam = _exam([make_question(i) for i in range(1, 5)])

    exam = exam.select("A").submit()

    assert exam.result.correct_count == 1
    assert exam.result.wrong_question_ids == (2, 3, 4)


def test_graded_exam_rejects_transitions() -> None:
    exam = _exam([make_question(1)]).submit()

    for action in (
        lambda: exam.select("A"),
        exam.next,
        exam.previous,
        exam.submit,
    ):
        with pytest.raises(InvalidTransition):
            action()


def test_start_exam_defaults_and_empty_pool() -> None:
    exam = start_exam([make_question(1)], "all")

    assert len(exam.session_id) == 32
    assert datetime.fromisoformat(exam.started_at).tzinfo is not None
    assert exam.answers == (SessionAnswer(1),)
    with pytest.raises(EmptyPoolError):
        start_exam([], "all")
