"""Local exam history and missed-question note.

Both live in a small key-value storage: one JSON document per key. Reads are
forgiving (missing or unparseable data reads as empty) because history is a
convenience, never a reason to block a session.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from .models import Question, QuestionId, SessionResult

logger = logging.getLogger(__name__)

HISTORY_KEY = "examHistory"
MISSED_KEY = "wrongNote"


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """In-process storage, handy for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileStorage:
    """Storage keeping ``<key>.json`` files under ``directory``."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug(
                "Unreadable ledger file",
                extra={"key": key, "error": str(exc)},
            )
            return None

    def set_item(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class HistoryLedger:
    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    def load(self) -> List[SessionResult]:
        """Stored results, most recent first."""
        results: List[SessionResult] = []
        for entry in self._read_list(HISTORY_KEY):
            if not isinstance(entry, dict):
                continue
            try:
                results.append(SessionResult.from_dict(entry))
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping undecodable history entry")
        return results

    def append(self, result: SessionResult) -> None:
        entries = [
            entry
            for entry in self._read_list(HISTORY_KEY)
            if isinstance(entry, dict)
        ]
        entries.insert(0, result.to_dict())
        self._write(HISTORY_KEY, entries)
        logger.info(
            "Recorded exam result",
            extra={
                "result_id": result.id,
                "total": result.total,
                "correct": result.correct_count,
            },
        )

    def find(self, result_id: str) -> Optional[SessionResult]:
        for result in self.load():
            if result.id == result_id or result.id.startswith(result_id):
                return result
        return None

    def missed(self) -> List[QuestionId]:
        return [
            item
            for item in self._read_list(MISSED_KEY)
            if isinstance(item, (int, str)) and not isinstance(item, bool)
        ]

    def record_missed(self, ids: Iterable[QuestionId]) -> None:
        merged = dict.fromkeys(self.missed())
        merged.update(dict.fromkeys(ids))
        self._write(MISSED_KEY, list(merged))

    def clear_missed(self, ids: Optional[Iterable[QuestionId]] = None) -> None:
        if ids is None:
            self.storage.remove_item(MISSED_KEY)
            return
        drop = set(ids)
        self._write(MISSED_KEY, [i for i in self.missed() if i not in drop])

    def _read_list(self, key: str) -> list:
        raw = self.storage.get_item(key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.debug("Ignoring corrupt ledger entry", extra={"key": key})
            return []
        return data if isinstance(data, list) else []

    def _write(self, key: str, value: list) -> None:
        self.storage.set_item(key, json.dumps(value, ensure_ascii=False))


def wrong_questions(
    result: SessionResult, questions: Sequence[Question]
) -> List[Question]:
    """Questions a result got wrong that are still in the bank."""
    by_id = {q.id: q for q in questions}
    return [by_id[qid] for qid in result.wrong_question_ids if qid in by_id]
