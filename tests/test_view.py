from __future__ import annotations

from types import SimpleNamespace

import pytest

from fixtures import make_question
from quizbank.quizzer.errors import StoreError
from quizbank.quizzer.view import app as view


class RecordingSink:
    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    def set_incorrect(self, question_id, flag):
        self.calls.append((question_id, flag))
        if self.fail:
            raise StoreError(f"update question {question_id}", "offline")
        return make_question(question_id, is_incorrect=flag)


class StubStatic:
    def __init__(self, text: str, id: str | None = None):
        self.text = text
        self.id = id


def _questions():
    return [make_question(1, explanation="why"), make_question(2)]


def test_quiz_flow_reveals_and_finishes() -> None:
    sink = RecordingSink()
    app = view.SessionApp(_questions(), sink=sink)

    assert app.choose(2)
    assert app.status_text == "Incorrect. Answer: A why"
    assert not app.choose(1)
    app.go_next()
    assert app.choose(1)
    assert app.status_text == "Correct."
    app.go_next()

    assert app.session_finished
    assert not app.choose(1)
    assert sink.calls == [(1, True)]
    assert app.summary_text() == "Answered 2/2, correct 1."


def test_invalid_choice_sets_status() -> None:
    app = view.SessionApp(_questions(), sink=RecordingSink())

    assert not app.choose(9)
    assert app.status_text == "'9' is not a valid choice."


def test_explanations_can_be_hidden() -> None:
    app = view.SessionApp(
        _questions(), sink=RecordingSink(), show_explanations=False
    )

    app.choose(2)

    assert app.status_text == "Incorrect. Answer: A"


def test_store_failures_are_collected() -> None:
    app = view.SessionApp(_questions(), sink=RecordingSink(fail=True))

    app.choose(2)

    assert len(app.store_errors) == 1
    assert "warning: update question 1 failed" in app.status_text


def test_review_mastered_updates_flag_and_ledger(ledger) -> None:
    ledger.record_missed([1, 2])
    sink = RecordingSink()
    app = view.SessionApp(
        _questions(), sink=sink, mode="review", ledger=ledger
    )

    app.mark_mastered()

    assert sink.calls == [(1, False)]
    assert ledger.missed() == [2]
    assert app.active_session.index == 1
    assert app.status_text == "Marked as mastered."


def test_mastered_ignored_in_quiz_mode() -> None:
    sink = RecordingSink()
    app = view.SessionApp(_questions(), sink=sink)

    app.mark_mastered()

    assert sink.calls == []
    assert app.active_session.index == 0


def test_exam_mode_needs_ledger() -> None:
    with pytest.raises(ValueError):
        view.SessionApp(_questions(), sink=RecordingSink(), mode="exam")


def test_exam_flow_grades_and_records(ledger) -> None:
    sink = RecordingSink()
    app = view.SessionApp(
        _questions(),
        sink=sink,
        mode="exam",
        ledger=ledger,
        category="math",
    )

    app.choose(1)
    assert app.status_text == "Selected A"
    app.go_next()
    app.go_prev()
    assert app.active_session.index == 0
    assert app.active_session.selected_for() == "A"
    app.submit_exam()

    assert app.session_finished
    assert app.summary_text() == "Score: 1 / 2 (1 wrong)"
    assert sink.calls == [(2, True)]
    assert [r.category for r in ledger.load()] == ["math"]
    assert ledger.missed() == [2]
    app.submit_exam()
    assert len(ledger.load()) == 1


def test_exam_next_on_last_question_grades(ledger) -> None:
    app = view.SessionApp(
        _questions(), sink=RecordingSink(), mode="exam", ledger=ledger
    )

    app.go_next()
    app.go_next()

    assert app.session_finished
    assert ledger.load()[0].category == "all"


def test_buttons_route_to_actions() -> None:
    app = view.SessionApp(_questions(), sink=RecordingSink())

    app.on_button_pressed(
        SimpleNamespace(button=SimpleNamespace(id="choice-1"))
    )
    app.on_button_pressed(SimpleNamespace(button=SimpleNamespace(id="next")))

    assert app.active_session.index == 1


def test_stage_widget_tracks_selection(
    monkeypatch: pytest.MonkeyPatch, ledger
) -> None:
    app = view.SessionApp(
        _questions(), sink=RecordingSink(), mode="exam", ledger=ledger
    )
    app.choose(2)

    widget = app._stage_widget()

    assert isinstance(widget, view.QuestionView)
    assert (widget.index, widget.total, widget.selected) == (1, 2, "B")

    monkeypatch.setattr(view, "Static", StubStatic)
    app.submit_exam()
    summary = app._stage_widget()
    assert summary.id == "summary"
    assert summary.text.startswith("Score: 0 / 2")


def test_quit_session_exits(monkeypatch: pytest.MonkeyPatch) -> None:
    app = view.SessionApp(_questions(), sink=RecordingSink())
    exits = []
    monkeypatch.setattr(app, "exit", lambda *args: exits.append(args))

    app.quit_session()

    assert exits == [()]
    assert app.session_finished
