"""Shared testing fixtures for the quizbank test suite."""

from .questions import SAMPLE_UPLOAD, make_question  # noqa: F401
from .store import FakeHttpSession, FakeResponse, FakeStore  # noqa: F401

__all__ = [
    "FakeHttpSession",
    "FakeResponse",
    "FakeStore",
    "SAMPLE_UPLOAD",
    "make_question",
]
