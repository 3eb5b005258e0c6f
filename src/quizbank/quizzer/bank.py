"""In-memory view of the question store used by the commands and the TUI."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Iterator, List, Optional, Sequence

from .errors import (
    BankBusyError,
    BulkParseError,
    InvalidQuestionError,
    ParseErrorKind,
)
from .models import NewQuestion, Question, QuestionId, validate_draft
from .optimistic import optimistic_update
from .parser import attach_category, parse_bulk_text
from .pool import categories
from .store import QuestionStore

logger = logging.getLogger(__name__)


class QuestionBank:
    """Cached question list kept in step with a ``QuestionStore``.

    Deletes and flag changes are applied locally first and rolled back if the
    store rejects them. A mutating action cannot start while another one with
    the same name is still running.
    """

    def __init__(self, store: QuestionStore):
        self.store = store
        self.questions: tuple[Question, ...] = ()
        self._in_flight: set[str] = set()

    def refresh(self) -> List[Question]:
        self.questions = tuple(self.store.fetch_all())
        logger.info("Loaded %d question(s)", len(self.questions))
        return list(self.questions)

    def categories(self) -> List[str]:
        return categories(self.questions)

    def get(self, question_id: QuestionId) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def add(self, draft: NewQuestion) -> Question:
        validate_draft(draft)
        with self._busy("add"):
            created = self.store.insert_one(draft)
        self.questions = (created, *self.questions)
        return created

    def upload(self, text: str, category: str) -> List[Question]:
        """Parse a bulk upload and insert every record, or none of them."""
        if not category.strip():
            raise InvalidQuestionError("category is required")
        drafts = attach_category(parse_bulk_text(text).unwrap(), category)
        for index, draft in enumerate(drafts, start=1):
            try:
                validate_draft(draft)
            except InvalidQuestionError as exc:
                raise BulkParseError(
                    ParseErrorKind.MALFORMED_RECORD, index, str(exc)
                ) from exc
        if not drafts:
            return []
        with self._busy("upload"):
            created = self.store.insert_many(drafts)
        self.questions = (*reversed(created), *self.questions)
        logger.info(
            "Uploaded %d question(s)",
            len(created),
            extra={"category": category},
        )
        return created

    def delete(self, ids: Sequence[QuestionId]) -> None:
        drop = set(ids)
        with self._busy("delete"):
            optimistic_update(
                self._get,
                self._set,
                lambda qs: tuple(q for q in qs if q.id not in drop),
                lambda: self.store.delete_many(list(ids)),
                action="delete",
            )

    def set_incorrect(self, question_id: QuestionId, flag: bool) -> Question:
        def mutate(qs: tuple[Question, ...]) -> tuple[Question, ...]:
            return tuple(
                replace(q, is_incorrect=flag) if q.id == question_id else q
                for q in qs
            )

        with self._busy(f"flag:{question_id}"):
            updated = optimistic_update(
                self._get,
                self._set,
                mutate,
                lambda: self.store.set_incorrect_flag(question_id, flag),
                action="flag update",
            )
        self.questions = tuple(
            updated if q.id == question_id else q for q in self.questions
        )
        return updated

    def _get(self) -> tuple[Question, ...]:
        return self.questions

    def _set(self, questions: tuple[Question, ...]) -> None:
        self.questions = questions

    @contextmanager
    def _busy(self, action: str) -> Iterator[None]:
        if action in self._in_flight:
            raise BankBusyError(action)
        self._in_flight.add(action)
        try:
            yield
        finally:
            self._in_flight.discard(action)
