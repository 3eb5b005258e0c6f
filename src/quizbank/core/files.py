"""File helpers shared across quizbank modules."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Sequence

__all__ = [
    "read_text_file",
    "read_jsonl",
    "write_jsonl",
]


def read_text_file(path: Path) -> str:
    """Read an upload file as UTF-8, dropping a leading byte-order mark."""
    with Path(path).open("r", encoding="utf-8-sig") as fh:
        return fh.read()


def read_jsonl(path: Path) -> List[dict]:
    data: List[dict] = []
    with Path(path).open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            data.append(json.loads(line))
    return data


def write_jsonl(path: Path, records: Sequence[dict]) -> None:
    """Rewrite ``path`` with one JSON object per line."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(p.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        for rec in records:
            fh.write(json.dumps(rec, ensure_ascii=False))
            fh.write("\n")
    tmp.replace(p)
