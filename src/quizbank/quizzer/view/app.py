from typing import List, Optional, Sequence

from textual.app import App, ComposeResult
from textual.containers import Container, Vertical
from textual.widget import Widget
from textual.widgets import Button, Static

from ..errors import StoreError
from ..ledger import HistoryLedger
from ..machine import (
    ExamSession,
    QuizMode,
    QuizPhase,
    QuizSession,
    start_exam,
    start_quiz,
)
from ..models import Question
from ..session import FlagSink, apply_effects, complete_exam


class SessionApp(App):
    CSS_PATH = None
    CSS = """
#choices Button.selected { background: $accent; color: black; }
#status { color: $text-muted; }
"""
    BINDINGS = [
        ("1", "choose(1)", "Option 1"),
        ("2", "choose(2)", "Option 2"),
        ("3", "choose(3)", "Option 3"),
        ("4", "choose(4)", "Option 4"),
        ("5", "choose(5)", "Option 5"),
        ("n", "next", "Next"),
        ("p", "prev", "Prev"),
        ("m", "mastered", "Mastered"),
        ("s", "submit", "Submit"),
        ("q", "quit_session", "Quit"),
    ]

    def __init__(
        self,
        questions: Sequence[Question],
        *,
        sink: FlagSink,
        mode: str = "quiz",
        ledger: Optional[HistoryLedger] = None,
        category: str = "all",
        show_explanations: bool = True,
    ):
        super().__init__()
        self._sink = sink
        self._ledger = ledger
        self._show_explanations = show_explanations
        self._quiz: Optional[QuizSession] = None
        self._exam: Optional[ExamSession] = None
        if mode == "exam":
            if ledger is None:
                raise ValueError("exam mode needs a history ledger")
            self._exam = start_exam(questions, category)
        else:
            quiz_mode: QuizMode = "review" if mode == "review" else "quiz"
            self._quiz = start_quiz(questions, quiz_mode)
        self.status_text = ""
        self.store_errors: List[StoreError] = []

    def compose(self) -> ComposeResult:
        with Container(id="stage"):
            yield self._stage_widget()
        with Container(id="footer"):
            yield Button("Prev", id="prev")
            yield Button("Next", id="next")
            yield Button("Submit", id="submit")
            yield Static(self.status_text, id="status")

    # Pure helpers (usable without running the app)
    @property
    def session_finished(self) -> bool:
        if self._exam is not None:
            return self._exam.graded
        return self._quiz is not None and self._quiz.finished

    @property
    def active_session(self):
        return self._exam if self._exam is not None else self._quiz

    def choose(self, number: int) -> bool:
        if self.session_finished:
            return False
        question = self.active_session.current
        if not 1 <= number <= len(question.options):
            self.status_text = f"'{number}' is not a valid choice."
            self._refresh_stage()
            return False
        option = question.options[number - 1]
        if self._exam is not None:
            self._exam = self._exam.select(option)
            self.status_text = f"Selected {option}"
        else:
            assert self._quiz is not None
            if self._quiz.phase is not QuizPhase.PRESENTING:
                return False
            self._quiz, effects = self._quiz.select(option)
            self.status_text = self._feedback_text()
            self._collect(apply_effects(effects, self._sink))
        self._refresh_stage()
        return True

    def go_next(self) -> None:
        if self.session_finished:
            return
        if self._exam is not None:
            self._exam = self._exam.next()
            if self._exam.graded:
                self._grade()
        else:
            assert self._quiz is not None
            self._quiz = self._quiz.advance()
            self.status_text = ""
        self._refresh_stage()

    def go_prev(self) -> None:
        if self._exam is not None and not self._exam.graded:
            self._exam = self._exam.previous()
            self._refresh_stage()

    def submit_exam(self) -> None:
        if self._exam is not None and not self._exam.graded:
            self._exam = self._exam.submit()
            self._grade()
            self._refresh_stage()

    def mark_mastered(self) -> None:
        if self._quiz is None or self._quiz.mode != "review":
            return
        if self._quiz.finished:
            return
        mastered_id = self._quiz.current.id
        self._quiz, effects = self._quiz.mastered()
        self._collect(apply_effects(effects, self._sink))
        if self._ledger is not None:
            self._ledger.clear_missed([mastered_id])
        self.status_text = "Marked as mastered."
        self._refresh_stage()

    def quit_session(self) -> None:
        if self._quiz is not None:
            self._quiz = self._quiz.quit()
        self.exit()

    def summary_text(self) -> str:
        if self._exam is not None and self._exam.result is not None:
            result = self._exam.result
            return (
                f"Score: {result.correct_count} / {result.total} "
                f"({len(result.wrong_question_ids)} wrong)"
            )
        if self._quiz is not None:
            return (
                f"Answered {self._quiz.answered}/{self._quiz.total}, "
                f"correct {self._quiz.correct_count}."
            )
        return ""

    def _grade(self) -> None:
        assert self._exam is not None and self._ledger is not None
        self._collect(complete_exam(self._exam, self._sink, self._ledger))
        self.status_text = self.summary_text()

    def _collect(self, errors: List[StoreError]) -> None:
        self.store_errors.extend(errors)
        if errors:
            self.status_text += f"  (warning: {errors[-1]})"

    def _feedback_text(self) -> str:
        assert self._quiz is not None
        answer = self._quiz.last_answer
        question = self._quiz.current
        if answer is None:
            return ""
        if answer.correct:
            text = "Correct."
        else:
            text = f"Incorrect. Answer: {question.answer}"
        if self._show_explanations and question.explanation:
            text += f" {question.explanation}"
        return text

    def _stage_widget(self) -> Widget:
        if self.session_finished:
            return Static(self.summary_text(), id="summary")
        session = self.active_session
        selected = None
        if self._exam is not None:
            selected = self._exam.selected_for()
        elif self._quiz is not None and self._quiz.last_answer is not None:
            selected = self._quiz.last_answer.selected
        return QuestionView(
            session.current,
            index=session.index + 1,
            total=session.total,
            selected=selected,
        )

    def _refresh_stage(self) -> None:
        try:
            stage = self.query_one("#stage", Container)
            status = self.query_one("#status", Static)
        except Exception:
            return
        stage.remove_children()
        stage.mount(self._stage_widget())
        status.update(self.status_text)

    def action_choose(self, number: int) -> None:
        self.choose(number)

    def action_next(self) -> None:
        self.go_next()

    def action_prev(self) -> None:
        self.go_prev()

    def action_submit(self) -> None:
        self.submit_exam()

    def action_mastered(self) -> None:
        self.mark_mastered()

    def action_quit_session(self) -> None:
        self.quit_session()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = getattr(event.button, "id", "") or ""
        if bid.startswith("choice-"):
            self.choose(int(bid.split("-", 1)[1]))
        elif bid == "submit":
            self.submit_exam()
        elif bid == "next":
            self.go_next()
        elif bid == "prev":
            self.go_prev()


class QuestionView(Widget):
    """Renders a single question with numbered option buttons."""

    def __init__(
        self,
        question: Question,
        index: int,
        total: int,
        *,
        selected: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.question = question
        self.index = index
        self.total = total
        self.selected = selected

    def compose(self) -> ComposeResult:
        yield Static(self.question.question_text, id="stem")
        with Vertical(id="choices"):
            for number, option in enumerate(self.question.options, start=1):
                btn = Button(f"{number}) {option}", id=f"choice-{number}")
                if option == self.selected:
                    btn.add_class("selected")
                yield btn
        yield Static(f"{self.index}/{self.total}", id="progress")
