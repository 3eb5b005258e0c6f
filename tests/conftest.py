from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
for extra in (TESTS_DIR, ROOT / "src"):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import FakeStore, make_question  # noqa: E402
from quizbank.quizzer.ledger import HistoryLedger, MemoryStorage  # noqa: E402


@pytest.fixture
def questions():
    """Five math questions and two history questions, one flagged missed."""

    return [
        *(make_question(i) for i in range(1, 6)),
        make_question(6, category="history", is_incorrect=True),
        make_question(7, category="history"),
    ]


@pytest.fixture
def store(questions) -> FakeStore:
    return FakeStore(questions)


@pytest.fixture
def ledger() -> HistoryLedger:
    return HistoryLedger(MemoryStorage())


@pytest.fixture
def data_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the workspace and config lookups at a per-test directory."""

    home = tmp_path / "data-home"
    monkeypatch.setenv("QUIZBANK_DATA_HOME", str(home))
    monkeypatch.delenv("QUIZBANK_CONFIG", raising=False)
    return home


@pytest.fixture(autouse=True)
def _detach_quizbank_handlers() -> Iterator[None]:
    yield
    logger = logging.getLogger("quizbank")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
