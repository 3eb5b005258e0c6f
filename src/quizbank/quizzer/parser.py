"""Bulk question upload parser.

Upload files hold one question per record, records separated by an em-dash
(``—``). Each record carries three labelled sections::

    문제: 2+2=? ①3 ②4 ③5
    답: ②
    해설: 기본 연산
    —

The question section lists its options after circled-digit markers; the
answer section names the correct option by a prefix of its text (usually just
the marker). Parsing never raises for bad input: it returns a ``ParseErr``
describing the first offending record, so a batch is imported whole or not at
all.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import List, Sequence, Union

from .errors import BulkParseError, ParseErrorKind
from .models import NewQuestion

RECORD_SEPARATOR = "—"
QUESTION_MARKER = "문제:"
ANSWER_MARKER = "답:"
EXPLANATION_MARKER = "해설:"
OPTION_MARKERS = "①②③④⑤"

_option_re = re.compile(f"([{OPTION_MARKERS}])([^{OPTION_MARKERS}]*)")


@dataclass(frozen=True)
class ParseOk:
    drafts: tuple[NewQuestion, ...]

    ok = True

    def unwrap(self) -> tuple[NewQuestion, ...]:
        return self.drafts


@dataclass(frozen=True)
class ParseErr:
    kind: ParseErrorKind
    index: int
    message: str

    ok = False

    def unwrap(self) -> tuple[NewQuestion, ...]:
        raise BulkParseError(self.kind, self.index, self.message)


ParseResult = Union[ParseOk, ParseErr]


class _RecordError(Exception):
    def __init__(self, kind: ParseErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


def parse_bulk_text(text: str) -> ParseResult:
    """Parse an upload blob into drafts, in input order."""

    drafts: List[NewQuestion] = []
    blocks = [b.strip() for b in text.split(RECORD_SEPARATOR)]
    for index, block in enumerate((b for b in blocks if b), start=1):
        try:
            drafts.append(_parse_record(block))
        except _RecordError as exc:
            return ParseErr(exc.kind, index, exc.message)
    return ParseOk(tuple(drafts))


def attach_category(
    drafts: Sequence[NewQuestion], category: str
) -> List[NewQuestion]:
    """Return copies of ``drafts`` carrying the batch ``category``."""
    return [replace(draft, category=category) for draft in drafts]


def _parse_record(block: str) -> NewQuestion:
    question_section, answer_section, explanation = _split_sections(block)
    prompt, options = _split_options(question_section)
    answer = _match_answer(answer_section, options)
    return NewQuestion(
        question_text=prompt,
        options=tuple(options),
        answer=answer,
        explanation=explanation,
    )


def _split_sections(block: str) -> tuple[str, str, str]:
    q_at = block.find(QUESTION_MARKER)
    a_at = block.find(ANSWER_MARKER, q_at + len(QUESTION_MARKER))
    e_at = block.find(EXPLANATION_MARKER, a_at + len(ANSWER_MARKER))
    if q_at < 0 or a_at < 0 or e_at < 0:
        missing = [
            marker
            for marker, pos in (
                (QUESTION_MARKER, q_at),
                (ANSWER_MARKER, a_at),
                (EXPLANATION_MARKER, e_at),
            )
            if pos < 0
        ]
        raise _RecordError(
            ParseErrorKind.MALFORMED_RECORD,
            "missing or out-of-order section marker(s): " + ", ".join(missing),
        )
    return (
        block[q_at + len(QUESTION_MARKER) : a_at],
        block[a_at + len(ANSWER_MARKER) : e_at].strip(),
        block[e_at + len(EXPLANATION_MARKER) :].strip(),
    )


def _split_options(section: str) -> tuple[str, List[str]]:
    matches = list(_option_re.finditer(section))
    if len(matches) < 2:
        raise _RecordError(
            ParseErrorKind.INSUFFICIENT_OPTIONS,
            f"expected at least 2 options marked with {OPTION_MARKERS}, "
            f"found {len(matches)}",
        )
    prompt = section[: matches[0].start()].strip()
    if not prompt:
        raise _RecordError(
            ParseErrorKind.EMPTY_PROMPT,
            "question text before the first option is empty",
        )
    options = [(m.group(1) + m.group(2)).strip() for m in matches]
    return prompt, options


def _match_answer(answer_text: str, options: Sequence[str]) -> str:
    if not answer_text:
        raise _RecordError(
            ParseErrorKind.ANSWER_MISMATCH, "answer section is empty"
        )
    matched = [opt for opt in options if opt.startswith(answer_text)]
    if not matched:
        raise _RecordError(
            ParseErrorKind.ANSWER_MISMATCH,
            f"answer '{answer_text}' does not match any option",
        )
    if len(matched) > 1:
        raise _RecordError(
            ParseErrorKind.ANSWER_MISMATCH,
            f"answer '{answer_text}' matches more than one option",
        )
    return matched[0]
