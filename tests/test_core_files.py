from __future__ import annotations

from pathlib import Path

import pytest

from quizbank.core import files


def test_read_text_file_strips_bom(tmp_path: Path) -> None:
    path = tmp_path / "upload.txt"
    path.write_bytes("\ufeff문제: x".encode("utf-8"))

    assert files.read_text_file(path) == "문제: x"


def test_read_write_jsonl(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "data.jsonl"
    records = [{"id": 1, "question": "수도는?"}, {"id": 2}]

    files.write_jsonl(path, records)
    path.write_text(path.read_text(encoding="utf-8") + "\n\n", encoding="utf-8")

    assert files.read_jsonl(path) == records
    assert "수도는?" in path.read_text(encoding="utf-8")
    assert not path.with_suffix(".jsonl.tmp").exists()


def test_read_jsonl_rejects_garbage(tmp_path: Path) -> None:
    path = tmp_path / "bad.jsonl"
    path.write_text("{oops\n", encoding="utf-8")

    with pytest.raises(ValueError):
        files.read_jsonl(path)
