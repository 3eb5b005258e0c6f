from __future__ import annotations

import json
from pathlib import Path

from fixtures import make_question
from quizbank.quizzer.ledger import (
    HISTORY_KEY,
    MISSED_KEY,
    HistoryLedger,
    JsonFileStorage,
    MemoryStorage,
    wrong_questions,
)
from quizbank.quizzer.models import SessionResult


def _result(rid: str, wrong=(), correct: int = 1) -> SessionResult:
    return SessionResult(
        id=rid,
        started_at="2024-03-01T09:30:00+00:00",
        category="math",
        total=correct + len(wrong),
        correct_count=correct,
        wrong_question_ids=tuple(wrong),
    )


def test_append_prepends_most_recent(ledger: HistoryLedger) -> None:
    ledger.append(_result("first"))
    ledger.append(_result("second"))

    assert [r.id for r in ledger.load()] == ["second", "first"]


def test_stored_shape_uses_history_keys() -> None:
    storage = MemoryStorage()
    HistoryLedger(storage).append(_result("abc", wrong=[7]))

    stored = json.loads(storage.items[HISTORY_KEY])

    assert stored == [
        {
            "id": "abc",
            "at": "2024-03-01T09:30:00+00:00",
            "category": "math",
            "total": 2,
            "correct": 1,
            "wrongIds": [7],
        }
    ]


def test_corrupt_storage_reads_as_empty() -> None:
    storage = MemoryStorage({HISTORY_KEY: "{not json", MISSED_KEY: '"x"'})
    ledger = HistoryLedger(storage)

    assert ledger.load() == []
    assert ledger.missed() == []

    ledger.append(_result("fresh"))
    assert [r.id for r in ledger.load()] == ["fresh"]


def test_undecodable_entries_are_skipped() -> None:
    entries = [{"id": "ok", "total": 1, "correct": 1}, {"id": "bad"}, 5]
    ledger = HistoryLedger(MemoryStorage({HISTORY_KEY: json.dumps(entries)}))

    assert [r.id for r in ledger.load()] == ["ok"]


def test_missed_is_an_ordered_union(ledger: HistoryLedger) -> None:
    ledger.record_missed([3, 1])
    ledger.record_missed([1, "q-9", 4])

    assert ledger.missed() == [3, 1, "q-9", 4]


def test_clear_missed_some_or_all(ledger: HistoryLedger) -> None:
    ledger.record_missed([1, 2, 3])

    ledger.clear_missed([2])
    assert ledger.missed() == [1, 3]

    ledger.clear_missed()
    assert ledger.missed() == []


def test_find_accepts_prefix(ledger: HistoryLedger) -> None:
    ledger.append(_result("a1b2c3d4e5"))

    assert ledger.find("a1b2").id == "a1b2c3d4e5"
    assert ledger.find("zzz") is None


def test_json_file_storage_round_trip(tmp_path: Path) -> None:
    storage = JsonFileStorage(tmp_path / "ledger")
    ledger = HistoryLedger(storage)

    ledger.append(_result("one", wrong=[5]))
    ledger.record_missed([5])

    reopened = HistoryLedger(JsonFileStorage(tmp_path / "ledger"))
    assert [r.id for r in reopened.load()] == ["one"]
    assert reopened.missed() == [5]
    assert (tmp_path / "ledger" / "examHistory.json").exists()

    storage.remove_item(MISSED_KEY)
    storage.remove_item(MISSED_KEY)
    assert storage.get_item(MISSED_KEY) is None


def test_wrong_questions_skips_deleted_ids() -> None:
    bank = [make_question(1), make_question(2)]
    result = _result("r", wrong=[2, 99])

    assert [q.id for q in wrong_questions(result, bank)] == [2]
