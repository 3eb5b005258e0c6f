from ._main import build_arg_parser
from .bank import QuestionBank
from .errors import (
    BankBusyError,
    BulkParseError,
    EmptyPoolError,
    InvalidQuestionError,
    InvalidTransition,
    ParseErrorKind,
    QuizBankError,
    StoreError,
)
from .ledger import HistoryLedger, JsonFileStorage, MemoryStorage
from .machine import (
    ExamSession,
    FlagUpdate,
    QuizSession,
    start_exam,
    start_quiz,
)
from .models import NewQuestion, Question, SessionAnswer, SessionResult
from .parser import ParseErr, ParseOk, attach_category, parse_bulk_text
from .pool import categories, select_pool
from .session import run_exam_session, run_quiz_session
from .store import JsonlQuestionStore, SupabaseQuestionStore, build_store
from .view.app import QuestionView, SessionApp

__all__ = [
    "build_arg_parser",
    "QuestionBank",
    "BankBusyError",
    "BulkParseError",
    "EmptyPoolError",
    "InvalidQuestionError",
    "InvalidTransition",
    "ParseErrorKind",
    "QuizBankError",
    "StoreError",
    "HistoryLedger",
    "JsonFileStorage",
    "MemoryStorage",
    "ExamSession",
    "FlagUpdate",
    "QuizSession",
    "start_exam",
    "start_quiz",
    "NewQuestion",
    "Question",
    "SessionAnswer",
    "SessionResult",
    "ParseErr",
    "ParseOk",
    "attach_category",
    "parse_bulk_text",
    "categories",
    "select_pool",
    "run_exam_session",
    "run_quiz_session",
    "JsonlQuestionStore",
    "SupabaseQuestionStore",
    "build_store",
    "QuestionView",
    "SessionApp",
]
