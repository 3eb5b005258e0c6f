"""Exception types raised by the quizzer package."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "QuizBankError",
    "ParseErrorKind",
    "BulkParseError",
    "InvalidQuestionError",
    "StoreError",
    "EmptyPoolError",
    "InvalidTransition",
    "BankBusyError",
]


class QuizBankError(RuntimeError):
    """Base class for recoverable quiz-bank failures."""


class ParseErrorKind(str, Enum):
    MALFORMED_RECORD = "MalformedRecord"
    INSUFFICIENT_OPTIONS = "InsufficientOptions"
    EMPTY_PROMPT = "EmptyPrompt"
    ANSWER_MISMATCH = "AnswerMismatch"


class BulkParseError(QuizBankError):
    """A bulk upload record failed validation; the whole batch is rejected."""

    def __init__(self, kind: ParseErrorKind, index: int, message: str):
        super().__init__(f"Record {index}: {message}")
        self.kind = kind
        self.index = index
        self.message = message


class InvalidQuestionError(ValueError):
    """A question draft violates the question invariants."""


class StoreError(QuizBankError):
    """The question store failed while performing ``operation``."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.message = message


class EmptyPoolError(QuizBankError):
    """No questions are eligible for the requested session."""


class InvalidTransition(QuizBankError):
    """A session action is not allowed in the current phase."""


class BankBusyError(QuizBankError):
    """A mutating bank action is already in flight."""

    def __init__(self, action: str):
        super().__init__(f"'{action}' is already in progress.")
        self.action = action
