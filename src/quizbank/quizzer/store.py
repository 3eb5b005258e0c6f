"""Question store backends.

``SupabaseQuestionStore`` talks to the hosted ``questions`` table over the
PostgREST API; ``JsonlQuestionStore`` keeps the same rows in a local JSONL
file for offline use. Both raise ``StoreError`` for every failure so callers
can treat them interchangeably.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol, Sequence

import requests
from dotenv import load_dotenv

from ..core.config import QuizBankConfig
from ..core.files import read_jsonl, write_jsonl
from ..core.workspace import WorkspaceLayout
from .errors import InvalidQuestionError, StoreError
from .models import NewQuestion, Question, QuestionId

logger = logging.getLogger(__name__)


class QuestionStore(Protocol):
    def fetch_all(self) -> List[Question]: ...

    def insert_one(self, draft: NewQuestion) -> Question: ...

    def insert_many(self, drafts: Sequence[NewQuestion]) -> List[Question]: ...

    def set_incorrect_flag(
        self, question_id: QuestionId, flag: bool
    ) -> Question: ...

    def delete_many(self, ids: Sequence[QuestionId]) -> None: ...


def _rows_to_questions(operation: str, rows: Any) -> List[Question]:
    if not isinstance(rows, list):
        raise StoreError(operation, "unexpected response payload")
    try:
        return [Question.from_row(row) for row in rows]
    except (InvalidQuestionError, AttributeError, TypeError) as exc:
        raise StoreError(operation, f"malformed question row: {exc}") from exc


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(data, dict):
        for key in ("message", "msg", "error_description", "error"):
            if data.get(key):
                return str(data[key])
    return f"HTTP {response.status_code}"


class SupabaseQuestionStore:
    """Question store backed by a Supabase table."""

    def __init__(
        self,
        url: str,
        key: str,
        *,
        table: str = "questions",
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self.key = key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, *, returning: bool = False) -> dict[str, str]:
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
        }
        if returning:
            headers["Prefer"] = "return=representation"
        return headers

    def _request(
        self,
        operation: str,
        method: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        payload: Any = None,
        returning: bool = False,
    ) -> Any:
        logger.debug(
            "Store request",
            extra={"operation": operation, "method": method},
        )
        try:
            response = self.session.request(
                method,
                self.endpoint,
                headers=self._headers(returning=returning),
                params=params,
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise StoreError(operation, str(exc)) from exc
        if not 200 <= response.status_code < 300:
            raise StoreError(operation, _error_message(response))
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError(operation, "response was not JSON") from exc

    def fetch_all(self) -> List[Question]:
        rows = self._request(
            "fetch questions",
            "GET",
            params={"select": "*", "order": "created_at.desc"},
        )
        return _rows_to_questions("fetch questions", rows or [])

    def insert_one(self, draft: NewQuestion) -> Question:
        inserted = self.insert_many([draft])
        if len(inserted) != 1:
            raise StoreError("insert question", "no row returned")
        return inserted[0]

    def insert_many(self, drafts: Sequence[NewQuestion]) -> List[Question]:
        if not drafts:
            return []
        rows = self._request(
            "insert questions",
            "POST",
            payload=[draft.to_row() for draft in drafts],
            returning=True,
        )
        return _rows_to_questions("insert questions", rows)

    def set_incorrect_flag(
        self, question_id: QuestionId, flag: bool
    ) -> Question:
        operation = f"update question {question_id}"
        rows = self._request(
            operation,
            "PATCH",
            params={"id": f"eq.{question_id}"},
            payload={"is_incorrect": flag},
            returning=True,
        )
        updated = _rows_to_questions(operation, rows)
        if not updated:
            raise StoreError(operation, "question not found")
        return updated[0]

    def delete_many(self, ids: Sequence[QuestionId]) -> None:
        if not ids:
            return
        joined = ",".join(str(i) for i in ids)
        self._request(
            "delete questions", "DELETE", params={"id": f"in.({joined})"}
        )


class JsonlQuestionStore:
    """Question store kept in a local JSONL file, oldest row first."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load_rows(self, operation: str) -> List[dict]:
        if not self.path.exists():
            return []
        try:
            rows = read_jsonl(self.path)
        except (OSError, ValueError) as exc:
            raise StoreError(
                operation, f"cannot read {self.path}: {exc}"
            ) from exc
        for number, row in enumerate(rows, start=1):
            if not isinstance(row, dict):
                raise StoreError(
                    operation,
                    f"{self.path} row {number} is not a JSON object",
                )
        return rows

    def _save_rows(self, operation: str, rows: List[dict]) -> None:
        try:
            write_jsonl(self.path, rows)
        except OSError as exc:
            raise StoreError(
                operation, f"cannot write {self.path}: {exc}"
            ) from exc

    def fetch_all(self) -> List[Question]:
        rows = self._load_rows("fetch questions")
        return list(reversed(_rows_to_questions("fetch questions", rows)))

    def insert_one(self, draft: NewQuestion) -> Question:
        return self.insert_many([draft])[0]

    def insert_many(self, drafts: Sequence[NewQuestion]) -> List[Question]:
        rows = self._load_rows("insert questions")
        next_id = 1 + max(
            (row["id"] for row in rows if isinstance(row.get("id"), int)),
            default=0,
        )
        created_at = datetime.now(timezone.utc).isoformat()
        inserted: List[Question] = []
        for offset, draft in enumerate(drafts):
            row = {
                "id": next_id + offset,
                "created_at": created_at,
                **draft.to_row(),
                "is_incorrect": False,
            }
            rows.append(row)
            inserted.append(Question.from_row(row))
        self._save_rows("insert questions", rows)
        return inserted

    def set_incorrect_flag(
        self, question_id: QuestionId, flag: bool
    ) -> Question:
        operation = f"update question {question_id}"
        rows = self._load_rows(operation)
        for row in rows:
            if row.get("id") == question_id:
                row["is_incorrect"] = flag
                self._save_rows(operation, rows)
                return Question.from_row(row)
        raise StoreError(operation, "question not found")

    def delete_many(self, ids: Sequence[QuestionId]) -> None:
        drop = set(ids)
        rows = self._load_rows("delete questions")
        kept = [row for row in rows if row.get("id") not in drop]
        if len(kept) != len(rows):
            self._save_rows("delete questions", kept)


def build_store(
    config: QuizBankConfig,
    layout: WorkspaceLayout,
    *,
    env: Optional[Mapping[str, str]] = None,
) -> QuestionStore:
    """Create the store selected by ``[store] backend``."""

    settings = config.store
    if settings.backend == "local":
        return JsonlQuestionStore(
            layout.path_for("bank") / settings.local_file
        )
    if env is None:
        load_dotenv()
        env = os.environ
    url = (env.get(settings.url_env) or "").strip()
    key = (env.get(settings.key_env) or "").strip()
    if not url or not key:
        raise StoreError(
            "configure store",
            f"set {settings.url_env} and {settings.key_env} (environment or "
            ".env), or switch [store] backend to \"local\"",
        )
    return SupabaseQuestionStore(
        url,
        key,
        table=settings.table,
        timeout=settings.timeout_seconds,
    )


def dump_questions(questions: Sequence[Question]) -> str:
    """Serialize questions as JSON lines (used by ``questions list --json``)."""
    return "\n".join(
        json.dumps(q.to_row(), ensure_ascii=False) for q in questions
    )
