import argparse
import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence

from rich import box
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from ..core import (
    ConfigError,
    QuizBankConfig,
    WorkspaceError,
    WorkspaceLayout,
    configure_logger,
    load_config,
    read_text_file,
)
from .bank import QuestionBank
from .errors import (
    BankBusyError,
    BulkParseError,
    EmptyPoolError,
    InvalidQuestionError,
    StoreError,
)
from .ledger import HistoryLedger, JsonFileStorage
from .models import NewQuestion, Question, QuestionId
from .pool import SessionMode, select_pool
from .session import (
    render_exam_result,
    render_history,
    run_exam_session,
    run_quiz_session,
)
from .store import build_store, dump_questions

logger = logging.getLogger(__name__)


@dataclass
class _Context:
    config: QuizBankConfig
    layout: WorkspaceLayout
    ledger: HistoryLedger
    console: Console
    input_provider: Callable[[], str]
    env: Optional[Mapping[str, str]]
    _bank: Optional[QuestionBank] = None

    def bank(self) -> QuestionBank:
        """Build the store on first use and load the current questions."""
        if self._bank is None:
            store = build_store(self.config, self.layout, env=self.env)
            self._bank = QuestionBank(store)
            self._bank.refresh()
        return self._bank


def _coerce_id(raw: str) -> QuestionId:
    text = raw.strip()
    return int(text) if text.isdigit() else text


def _resolve_answer(raw: str, options: Sequence[str]) -> str:
    text = raw.strip()
    if text.isdigit() and 1 <= int(text) <= len(options):
        return options[int(text) - 1]
    return text


def _questions_table(questions: Sequence[Question]) -> Table:
    table = Table(title="Questions", box=box.SIMPLE, expand=True)
    table.add_column("ID", justify="right")
    table.add_column("Category")
    table.add_column("Question")
    table.add_column("Answer")
    table.add_column("Missed", justify="center")
    for q in questions:
        table.add_row(
            str(q.id),
            q.category,
            q.question_text[:80],
            q.answer,
            "x" if q.is_incorrect else "",
        )
    return table


def _cmd_questions_add(ctx: _Context, args: argparse.Namespace) -> int:
    options = tuple(args.option or ())
    draft = NewQuestion(
        question_text=args.question,
        options=options,
        answer=_resolve_answer(args.answer, options),
        explanation=args.explanation or "",
        category=args.category,
    )
    try:
        created = ctx.bank().add(draft)
    except InvalidQuestionError as exc:
        print(f"Error: {exc}")
        return 2
    ctx.console.print(
        f"[green]Added question {created.id} to '{created.category}'.[/]"
    )
    return 0


def _cmd_questions_upload(ctx: _Context, args: argparse.Namespace) -> int:
    path = Path(args.file).expanduser()
    if not path.is_file():
        print(f"Error: file not found: {path}")
        return 2
    try:
        text = read_text_file(path)
    except (OSError, UnicodeDecodeError) as exc:
        logger.info("Unreadable upload file", extra={"path": str(path)})
        print(f"Error: cannot read {path} as UTF-8 text ({exc})")
        return 2
    try:
        created = ctx.bank().upload(text, args.category)
    except BulkParseError as exc:
        logger.info(
            "Rejected bulk upload",
            extra={"kind": exc.kind.value, "record": exc.index},
        )
        print(f"Error: {exc}")
        print("Nothing was imported.")
        return 1
    except InvalidQuestionError as exc:
        print(f"Error: {exc}")
        print("Nothing was imported.")
        return 1
    if not created:
        ctx.console.print("[yellow]No questions found in the file.[/]")
        return 1
    ctx.console.print(
        f"[green]Uploaded {len(created)} question(s) to "
        f"'{args.category}'.[/]"
    )
    return 0


def _cmd_questions_list(ctx: _Context, args: argparse.Namespace) -> int:
    questions: List[Question] = list(ctx.bank().questions)
    if args.category:
        questions = [q for q in questions if q.category == args.category]
    if args.incorrect:
        questions = [q for q in questions if q.is_incorrect]
    if args.json:
        if questions:
            print(dump_questions(questions))
        return 0 if questions else 1
    if not questions:
        ctx.console.print("[yellow]No questions to show.[/]")
        return 1
    ctx.console.print(_questions_table(questions))
    return 0


def _cmd_questions_delete(ctx: _Context, args: argparse.Namespace) -> int:
    bank = ctx.bank()
    ids = [_coerce_id(raw) for raw in args.ids]
    unknown = [str(qid) for qid in ids if bank.get(qid) is None]
    if unknown:
        print(f"Error: unknown question id(s): {', '.join(unknown)}")
        return 1
    if not args.yes:
        confirmed = Confirm.ask(
            f"Delete {len(ids)} question(s)?",
            console=ctx.console,
            default=False,
        )
        if not confirmed:
            ctx.console.print("[yellow]Nothing deleted.[/]")
            return 1
    bank.delete(ids)
    ctx.ledger.clear_missed(ids)
    ctx.console.print(f"[green]Deleted {len(ids)} question(s).[/]")
    return 0


def _cmd_questions_categories(
    ctx: _Context, args: argparse.Namespace
) -> int:
    names = ctx.bank().categories()
    if not names:
        ctx.console.print("[yellow]No categories yet.[/]")
        return 1
    for name in names:
        count = sum(1 for q in ctx.bank().questions if q.category == name)
        print(f"- {name} ({count})")
    return 0


def _draw(
    ctx: _Context,
    mode: SessionMode,
    args: argparse.Namespace,
) -> List[Question]:
    seed = getattr(args, "seed", None)
    cap = getattr(args, "size", None) or ctx.config.session.exam_size
    return select_pool(
        ctx.bank().questions,
        mode=mode,
        category=args.category,
        cap=cap,
        rng=random.Random(seed) if seed is not None else None,
    )


def _cmd_quiz(ctx: _Context, args: argparse.Namespace) -> int:
    mode: SessionMode = args.command
    pool = _draw(ctx, mode, args)
    run_quiz_session(
        pool,
        ctx.console,
        ctx.input_provider,
        sink=ctx.bank(),
        mode="review" if mode == "review" else "quiz",
        ledger=ctx.ledger,
        show_explanations=(
            args.explain
            if args.explain is not None
            else ctx.config.session.show_explanations
        ),
    )
    return 0


def _cmd_exam(ctx: _Context, args: argparse.Namespace) -> int:
    pool = _draw(ctx, "exam", args)
    run_exam_session(
        pool,
        ctx.console,
        ctx.input_provider,
        sink=ctx.bank(),
        ledger=ctx.ledger,
        category=args.category or ctx.config.session.all_label,
        all_questions=ctx.bank().questions,
    )
    return 0


def _cmd_history(ctx: _Context, args: argparse.Namespace) -> int:
    if args.show:
        result = ctx.ledger.find(args.show)
        if result is None:
            print(f"Error: no exam result matches '{args.show}'.")
            return 1
        render_exam_result(ctx.console, result, ctx.bank().questions)
        return 0
    if args.missed:
        missed = ctx.ledger.missed()
        if not missed:
            ctx.console.print("[yellow]No missed questions recorded.[/]")
            return 1
        bank = ctx.bank()
        known = [q for q in (bank.get(qid) for qid in missed) if q]
        ctx.console.print(_questions_table(known))
        gone = len(missed) - len(known)
        if gone:
            ctx.console.print(
                f"[dim]{gone} missed question(s) no longer in the bank.[/]"
            )
        return 0
    results = ctx.ledger.load()
    render_history(ctx.console, results)
    return 0 if results else 1


def _cmd_tui(ctx: _Context, args: argparse.Namespace) -> int:
    from .view.app import SessionApp

    pool = _draw(ctx, args.mode, args)
    app = SessionApp(
        pool,
        sink=ctx.bank(),
        mode=args.mode,
        ledger=ctx.ledger,
        category=args.category or ctx.config.session.all_label,
        show_explanations=ctx.config.session.show_explanations,
    )
    app.run()
    summary = app.summary_text()
    if summary:
        ctx.console.print(summary)
    return 0


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return value


def _add_category(parser: argparse.ArgumentParser, help_text: str) -> None:
    parser.add_argument("--category", "-c", help=help_text)


def _add_seed(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--seed", type=int, help="Seed the shuffle for a repeatable order"
    )


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, help="Path to quizbank.toml")
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Mirror log records to stderr",
    )
    return common


def build_arg_parser() -> argparse.ArgumentParser:
    common = _common_options()
    p = argparse.ArgumentParser(
        prog="quizbank",
        description="Question bank with quiz, review and exam sessions",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    sub = p.add_subparsers(dest="command", required=True)

    sp_q = sub.add_parser("questions", help="Manage the question bank")
    q_sub = sp_q.add_subparsers(dest="action", required=True)

    sp_add = q_sub.add_parser(
        "add",
        help="Add a single question",
        parents=[common],
    )
    sp_add.add_argument("--question", "-q", required=True)
    sp_add.add_argument(
        "--option",
        "-o",
        action="append",
        help="Answer option (repeat for each option)",
    )
    sp_add.add_argument(
        "--answer",
        "-a",
        required=True,
        help="Correct option text or its 1-based number",
    )
    sp_add.add_argument("--explanation", "-e", default="")
    sp_add.add_argument("--category", "-c", required=True)

    sp_up = q_sub.add_parser(
        "upload",
        help="Import questions from a bulk text file",
        parents=[common],
    )
    sp_up.add_argument("file")
    sp_up.add_argument("--category", "-c", required=True)

    sp_list = q_sub.add_parser(
        "list",
        help="List stored questions",
        parents=[common],
    )
    _add_category(sp_list, "Only show this category")
    sp_list.add_argument(
        "--incorrect",
        action="store_true",
        help="Only show questions flagged as missed",
    )
    sp_list.add_argument(
        "--json", action="store_true", help="Print rows as JSON lines"
    )

    sp_del = q_sub.add_parser(
        "delete",
        help="Delete questions by id",
        parents=[common],
    )
    sp_del.add_argument("ids", nargs="+")
    sp_del.add_argument(
        "--yes", "-y", action="store_true", help="Skip the confirmation"
    )

    q_sub.add_parser(
        "categories",
        help="List categories with counts",
        parents=[common],
    )

    sp_quiz = sub.add_parser(
        "quiz",
        help="Practice with immediate feedback",
        parents=[common],
    )
    _add_category(sp_quiz, "Practice one category (default: all)")
    _add_seed(sp_quiz)

    sp_rev = sub.add_parser(
        "review",
        help="Re-practice questions flagged as missed",
        parents=[common],
    )
    _add_category(sp_rev, "Restrict the review to one category")
    _add_seed(sp_rev)

    for sp in (sp_quiz, sp_rev):
        sp.add_argument("--explain", dest="explain", action="store_true")
        sp.add_argument("--no-explain", dest="explain", action="store_false")
        sp.set_defaults(explain=None)

    sp_exam = sub.add_parser(
        "exam",
        help="Take a graded exam with deferred feedback",
        parents=[common],
    )
    _add_category(sp_exam, "Draw the exam from one category")
    sp_exam.add_argument(
        "--size",
        type=_positive_int,
        help="Override [session] exam_size",
    )
    _add_seed(sp_exam)

    sp_hist = sub.add_parser(
        "history",
        help="Show recorded exam results",
        parents=[common],
    )
    group = sp_hist.add_mutually_exclusive_group()
    group.add_argument(
        "--missed",
        action="store_true",
        help="List every question missed in an exam",
    )
    group.add_argument(
        "--show", metavar="ID", help="Show one result (id or id prefix)"
    )

    sp_tui = sub.add_parser(
        "tui",
        help="Run a session in the Textual UI",
        parents=[common],
    )
    sp_tui.add_argument(
        "--mode", choices=["quiz", "review", "exam"], default="quiz"
    )
    _add_category(sp_tui, "Restrict the session to one category")
    sp_tui.add_argument("--size", type=_positive_int)
    _add_seed(sp_tui)
    return p


_HANDLERS = {
    ("questions", "add"): _cmd_questions_add,
    ("questions", "upload"): _cmd_questions_upload,
    ("questions", "list"): _cmd_questions_list,
    ("questions", "delete"): _cmd_questions_delete,
    ("questions", "categories"): _cmd_questions_categories,
    ("quiz", None): _cmd_quiz,
    ("review", None): _cmd_quiz,
    ("exam", None): _cmd_exam,
    ("history", None): _cmd_history,
    ("tui", None): _cmd_tui,
}


def _build_context(
    args: argparse.Namespace,
    *,
    console: Console,
    input_provider: Callable[[], str],
    env: Optional[Mapping[str, str]],
) -> _Context:
    config = load_config(explicit_path=args.config, env=env)
    layout = config.workspace()
    configure_logger(
        log_dir=layout.path_for("logs"),
        level=config.logging.level,
        verbose=args.verbose or config.logging.verbose,
    )
    ledger = HistoryLedger(JsonFileStorage(layout.path_for("ledger")))
    return _Context(config, layout, ledger, console, input_provider, env)


def run(
    argv: Optional[Sequence[str]] = None,
    *,
    console: Optional[Console] = None,
    input_provider: Optional[Callable[[], str]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    console = console or Console()
    handler = _HANDLERS.get((args.command, getattr(args, "action", None)))
    if handler is None:  # pragma: no cover - argparse enforces choices
        parser.print_help()
        return 2
    try:
        ctx = _build_context(
            args,
            console=console,
            input_provider=input_provider or (lambda: console.input("> ")),
            env=env,
        )
    except (ConfigError, WorkspaceError) as exc:
        print(f"Error: {exc}")
        return 2
    try:
        return handler(ctx, args)
    except EmptyPoolError as exc:
        console.print(f"[yellow]{exc}[/]")
        return 1
    except BankBusyError as exc:
        print(f"Error: {exc}")
        return 1
    except StoreError as exc:
        logger.error(
            "Store failure",
            extra={"operation": exc.operation, "error": exc.message},
        )
        print(f"Error: {exc}")
        if exc.operation == "configure store":
            return 2
        print("Check the connection and try again.")
        return 1


def main(argv: Optional[Sequence[str]] = None) -> None:
    raise SystemExit(run(argv))
