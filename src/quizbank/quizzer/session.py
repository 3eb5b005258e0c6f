"""Rich-powered quiz, review and exam sessions.

The console loops here only translate user input into state-machine
transitions, render the resulting state and execute the store side effects
the machines ask for. Store failures while flagging questions are reported to
the user but never interrupt the session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Literal, Optional, Protocol, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .errors import StoreError
from .ledger import HistoryLedger, wrong_questions
from .machine import (
    Effects,
    ExamSession,
    QuizMode,
    QuizPhase,
    QuizSession,
    start_exam,
    start_quiz,
)
from .models import Question, QuestionId, SessionResult
from .parser import OPTION_MARKERS

logger = logging.getLogger(__name__)

InputProvider = Callable[[], str]
ExitAction = Literal["finished", "submitted", "quit"]


class FlagSink(Protocol):
    def set_incorrect(self, question_id: QuestionId, flag: bool) -> Question:
        ...


@dataclass(frozen=True)
class SessionCommand:
    """Normalized user command parsed from console input."""

    type: Literal["next", "prev", "submit", "quit", "select", "mastered"]
    choice: Optional[int] = None


@dataclass(frozen=True)
class QuizOutcome:
    session: QuizSession
    exit_action: ExitAction
    errors: List[StoreError] = field(default_factory=list)


@dataclass(frozen=True)
class ExamOutcome:
    session: ExamSession
    exit_action: ExitAction
    result: Optional[SessionResult]
    errors: List[StoreError] = field(default_factory=list)


def parse_session_command(raw: Optional[str]) -> Optional[SessionCommand]:
    """Parse raw user input into a structured command.

    Options are chosen by their 1-based number or their circled marker.
    """

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered in {"n", "next"}:
        return SessionCommand("next")
    if lowered in {"p", "prev", "previous"}:
        return SessionCommand("prev")
    if lowered in {"s", "submit"}:
        return SessionCommand("submit")
    if lowered in {"q", "quit", "exit"}:
        return SessionCommand("quit")
    if lowered in {"m", "mastered"}:
        return SessionCommand("mastered")
    if text.isdigit():
        return SessionCommand("select", int(text))
    if text[0] in OPTION_MARKERS:
        return SessionCommand("select", OPTION_MARKERS.index(text[0]) + 1)
    return None


def apply_effects(effects: Effects, sink: FlagSink) -> List[StoreError]:
    """Push flag updates to the store, collecting (not raising) failures."""
    errors: List[StoreError] = []
    for effect in effects:
        try:
            sink.set_incorrect(effect.question_id, effect.is_incorrect)
        except StoreError as exc:
            logger.warning(
                "Could not update question flag",
                extra={
                    "question_id": effect.question_id,
                    "error": exc.message,
                },
            )
            errors.append(exc)
    return errors


def complete_exam(
    session: ExamSession, sink: FlagSink, ledger: HistoryLedger
) -> List[StoreError]:
    """Record a graded exam: flag wrong answers, append history, note misses."""
    result = session.result
    if result is None:
        raise ValueError("exam has not been graded")
    errors: List[StoreError] = []
    for question_id in result.wrong_question_ids:
        try:
            sink.set_incorrect(question_id, True)
        except StoreError as exc:
            logger.warning(
                "Could not flag missed question",
                extra={"question_id": question_id, "error": exc.message},
            )
            errors.append(exc)
    ledger.append(result)
    ledger.record_missed(result.wrong_question_ids)
    logger.info(
        "Graded exam",
        extra={
            "category": result.category,
            "total": result.total,
            "correct": result.correct_count,
        },
    )
    return errors


def run_quiz_session(
    questions: Sequence[Question],
    console: Console,
    input_provider: InputProvider,
    *,
    sink: FlagSink,
    mode: QuizMode = "quiz",
    ledger: Optional[HistoryLedger] = None,
    show_explanations: bool = True,
    on_complete: Optional[Callable[[], None]] = None,
) -> QuizOutcome:
    """Run an immediate-feedback quiz (or review) in the console."""

    session = start_quiz(questions, mode)
    errors: List[StoreError] = []
    exit_action: ExitAction = "finished"

    while not session.finished:
        if session.phase is QuizPhase.PRESENTING:
            _render_question(
                console, session.current, session.index, session.total
            )
            _render_quiz_hint(console, session)
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Session interrupted.[/]")
            session, exit_action = session.quit(), "quit"
            break
        command = parse_session_command(raw)
        if command is None and session.phase is QuizPhase.REVEALED:
            command = SessionCommand("next")
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue

        if command.type == "quit":
            console.print("\n[bold yellow]Ending session early.[/]")
            session, exit_action = session.quit(), "quit"
            break
        if command.type == "mastered":
            if session.mode != "review":
                console.print(
                    "[red]'mastered' is only available in review.[/]"
                )
                continue
            mastered_id = session.current.id
            session, effects = session.mastered()
            errors.extend(_report(console, apply_effects(effects, sink)))
            if ledger is not None:
                ledger.clear_missed([mastered_id])
            console.print("[green]Marked as mastered.[/]")
            continue
        if command.type == "select" and command.choice is not None:
            if session.phase is not QuizPhase.PRESENTING:
                continue
            option = _option_for(session.current, command.choice)
            if option is None:
                console.print(
                    f"[red]'{command.choice}' is not a valid choice for this "
                    "question.[/]"
                )
                continue
            session, effects = session.select(option)
            _render_reveal(console, session, show_explanations)
            errors.extend(_report(console, apply_effects(effects, sink)))
            continue
        if command.type == "next":
            session = session.advance()
        else:
            console.print("[red]That command is not available in a quiz.[/]")

    if exit_action == "finished":
        console.print(
            Panel(
                f"Answered {session.answered}/{session.total}, "
                f"correct {session.correct_count}.",
                title="Quiz complete",
                border_style="green",
            )
        )
        if on_complete is not None:
            on_complete()
    return QuizOutcome(session, exit_action, errors)


def run_exam_session(
    questions: Sequence[Question],
    console: Console,
    input_provider: InputProvider,
    *,
    sink: FlagSink,
    ledger: HistoryLedger,
    category: str,
    all_questions: Optional[Sequence[Question]] = None,
) -> ExamOutcome:
    """Run a deferred-feedback exam and record it when graded."""

    session = start_exam(questions, category)
    while not session.graded:
        question = session.current
        _render_question(
            console,
            question,
            session.index,
            session.total,
            selected=session.selected_for(),
        )
        console.print(
            Text(
                f"Answered {session.answered_count()}/{session.total} | "
                f"Commands: 1-{len(question.options)}, n (next"
                f"{' / grade' if session.is_last else ''}), p (prev), "
                "submit, quit",
                style="dim",
            )
        )
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Exam interrupted; not recorded.[/]")
            return ExamOutcome(session, "quit", None)
        command = parse_session_command(raw)
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        if command.type == "quit":
            console.print("\n[bold yellow]Exam abandoned; not recorded.[/]")
            return ExamOutcome(session, "quit", None)
        if command.type == "select" and command.choice is not None:
            option = _option_for(question, command.choice)
            if option is None:
                console.print(
                    f"[red]'{command.choice}' is not a valid choice for this "
                    "question.[/]"
                )
                continue
            session = session.select(option)
        elif command.type == "next":
            session = session.next()
        elif command.type == "prev":
            session = session.previous()
        elif command.type == "submit":
            session = session.submit()
        else:
            console.print("[red]That command is not available in an exam.[/]")

    errors = _report(console, complete_exam(session, sink, ledger))
    result = session.result
    if result is None:
        raise ValueError("exam has not been graded")
    render_exam_result(console, result, all_questions or session.questions)
    return ExamOutcome(session, "submitted", result, errors)


def render_exam_result(
    console: Console,
    result: SessionResult,
    questions: Sequence[Question],
) -> None:
    console.print()
    console.rule(Text("Exam Result", style="bold magenta"))
    overview = Table(show_header=False, box=box.MINIMAL_DOUBLE_HEAD)
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Taken", _format_timestamp(result.started_at))
    overview.add_row("Category", result.category)
    overview.add_row("Score", f"{result.correct_count} / {result.total}")
    overview.add_row("Accuracy", f"{result.accuracy * 100:.1f}%")
    overview.add_row("Wrong", str(len(result.wrong_question_ids)))
    console.print(overview)
    render_wrong_questions(console, result, questions)


def render_wrong_questions(
    console: Console,
    result: SessionResult,
    questions: Sequence[Question],
) -> None:
    missed = wrong_questions(result, questions)
    if not missed:
        console.print("[green]No wrong answers.[/]")
        return
    for question in missed:
        body = Text.assemble(
            ("Answer: ", "bold"),
            question.answer,
        )
        if question.explanation:
            body.append("\n")
            body.append("Explanation: ", style="bold")
            body.append(question.explanation)
        console.print(
            Panel(body, title=question.question_text, border_style="red")
        )


def render_history(console: Console, results: Sequence[SessionResult]) -> None:
    if not results:
        console.print("[yellow]No exam history yet.[/]")
        return
    table = Table(title="Exam history", box=box.SIMPLE, expand=True)
    table.add_column("ID")
    table.add_column("Taken")
    table.add_column("Category")
    table.add_column("Score", justify="right")
    table.add_column("Wrong", justify="right")
    for result in results:
        table.add_row(
            result.id[:8],
            _format_timestamp(result.started_at),
            result.category,
            f"{result.correct_count} / {result.total}",
            str(len(result.wrong_question_ids)),
        )
    console.print(table)


def _render_question(
    console: Console,
    question: Question,
    index: int,
    total: int,
    *,
    selected: Optional[str] = None,
) -> None:
    header = Text.assemble(
        (f"Question {index + 1}", "bold cyan"),
        (f" / {total}", "dim"),
    )
    console.print()
    console.rule(header)
    console.print(Text(question.question_text, style="bold"))

    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("Key", justify="center", style="cyan")
    table.add_column("Option")
    for number, option in enumerate(question.options, start=1):
        indicator = "•" if option == selected else " "
        row_text = Text(indicator + " ")
        row_text.append(
            option, style="bold green" if option == selected else ""
        )
        table.add_row(str(number), row_text)
    console.print(table)


def _render_quiz_hint(console: Console, session: QuizSession) -> None:
    extra = ", m (mastered)" if session.mode == "review" else ""
    console.print(
        Text(
            f"Correct {session.correct_count}/{session.answered} | Commands: "
            f"1-{len(session.current.options)}{extra}, quit",
            style="dim",
        )
    )


def _render_reveal(
    console: Console, session: QuizSession, show_explanations: bool
) -> None:
    answer = session.last_answer
    question = session.current
    if answer is None:
        return
    if answer.correct:
        body = Text("Correct!", style="bold green")
    else:
        body = Text.assemble(
            ("Incorrect. ", "bold red"),
            ("Answer: ", "bold"),
            question.answer,
        )
    if show_explanations and question.explanation:
        body.append("\n")
        body.append(question.explanation)
    console.print(
        Panel(
            body,
            border_style="green" if answer.correct else "red",
            subtitle="Enter / n to continue",
        )
    )


def _option_for(question: Question, number: int) -> Optional[str]:
    if 1 <= number <= len(question.options):
        return question.options[number - 1]
    return None


def _report(console: Console, errors: List[StoreError]) -> List[StoreError]:
    for exc in errors:
        console.print(f"[yellow]Warning: {exc}[/]")
    return errors


def _format_timestamp(value: str) -> str:
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return value or "-"
