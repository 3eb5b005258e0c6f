from __future__ import annotations

from pathlib import Path

import pytest
import requests

from fixtures import FakeHttpSession, FakeResponse
from quizbank.core.config import load_config
from quizbank.core.workspace import ensure_workspace
from quizbank.quizzer.errors import StoreError
from quizbank.quizzer.models import NewQuestion
from quizbank.quizzer.store import (
    JsonlQuestionStore,
    SupabaseQuestionStore,
    build_store,
    dump_questions,
)

ROW = {
    "id": 12,
    "created_at": "2024-03-01T09:30:00+00:00",
    "question": "2+2=?",
    "options": ["①3", "②4"],
    "answer": "②4",
    "explanation": "",
    "category": "math",
    "is_incorrect": False,
}


def _draft(text: str = "2+2=?") -> NewQuestion:
    return NewQuestion(text, ("①3", "②4"), "②4", "", "math")


@pytest.fixture
def http() -> FakeHttpSession:
    return FakeHttpSession()


@pytest.fixture
def remote(http: FakeHttpSession) -> SupabaseQuestionStore:
    return SupabaseQuestionStore(
        "https://demo.supabase.co/", "anon-key", session=http
    )


def test_fetch_all_queries_newest_first(remote, http) -> None:
    http.queue(FakeResponse(200, [ROW]))

    questions = remote.fetch_all()

    assert questions[0].id == 12
    assert questions[0].options == ("①3", "②4")
    call = http.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://demo.supabase.co/rest/v1/questions"
    assert call["params"] == {"select": "*", "order": "created_at.desc"}
    assert call["headers"]["apikey"] == "anon-key"
    assert call["headers"]["Authorization"] == "Bearer anon-key"
    assert call["timeout"] == 10


def test_insert_many_posts_rows_and_returns_created(remote, http) -> None:
    http.queue(FakeResponse(201, [ROW]))

    created = remote.insert_many([_draft()])

    assert [q.id for q in created] == [12]
    call = http.calls[0]
    assert call["method"] == "POST"
    assert call["headers"]["Prefer"] == "return=representation"
    assert call["json"] == [
        {
            "question": "2+2=?",
            "options": ["①3", "②4"],
            "answer": "②4",
            "explanation": "",
            "category": "math",
        }
    ]


def test_insert_many_skips_request_for_empty_batch(remote, http) -> None:
    assert remote.insert_many([]) == []
    assert http.calls == []


def test_set_incorrect_flag_patches_by_id(remote, http) -> None:
    http.queue(FakeResponse(200, [{**ROW, "is_incorrect": True}]))

    updated = remote.set_incorrect_flag(12, True)

    assert updated.is_incorrect
    call = http.calls[0]
    assert call["method"] == "PATCH"
    assert call["params"] == {"id": "eq.12"}
    assert call["json"] == {"is_incorrect": True}


def test_set_incorrect_flag_unknown_id(remote, http) -> None:
    http.queue(FakeResponse(200, []))

    with pytest.raises(StoreError, match="question not found"):
        remote.set_incorrect_flag(99, True)


def test_delete_many_uses_in_filter(remote, http) -> None:
    http.queue(FakeResponse(204))

    remote.delete_many([3, 5])

    assert http.calls[0]["method"] == "DELETE"
    assert http.calls[0]["params"] == {"id": "in.(3,5)"}


def test_http_error_message_is_surfaced(remote, http) -> None:
    http.queue(FakeResponse(401, {"message": "Invalid API key"}))

    with pytest.raises(StoreError) as info:
        remote.fetch_all()

    assert info.value.operation == "fetch questions"
    assert info.value.message == "Invalid API key"
    assert str(info.value) == "fetch questions failed: Invalid API key"


def test_network_failure_becomes_store_error(remote, http) -> None:
    http.queue(requests.ConnectionError("connection refused"))

    with pytest.raises(StoreError, match="connection refused"):
        remote.delete_many([1])


def test_malformed_rows_become_store_error(remote, http) -> None:
    http.queue(FakeResponse(200, [{"question": "no id"}]))

    with pytest.raises(StoreError, match="malformed"):
        remote.fetch_all()


def test_jsonl_store_lifecycle(tmp_path: Path) -> None:
    store = JsonlQuestionStore(tmp_path / "bank" / "questions.jsonl")
    assert store.fetch_all() == []

    first = store.insert_one(_draft("first"))
    second, third = store.insert_many([_draft("second"), _draft("third")])

    assert (first.id, second.id, third.id) == (1, 2, 3)
    assert [q.question_text for q in store.fetch_all()] == [
        "third",
        "second",
        "first",
    ]

    flagged = store.set_incorrect_flag(2, True)
    assert flagged.is_incorrect
    store.delete_many([1, 3])
    remaining = store.fetch_all()
    assert [(q.id, q.is_incorrect) for q in remaining] == [(2, True)]

    with pytest.raises(StoreError):
        store.set_incorrect_flag(42, True)


def test_jsonl_store_rejects_non_object_rows(tmp_path: Path) -> None:
    path = tmp_path / "questions.jsonl"
    path.write_text('{"id": 1, "question": "ok"}\n[1]\n', encoding="utf-8")
    store = JsonlQuestionStore(path)

    with pytest.raises(StoreError, match="row 2 is not a JSON object"):
        store.insert_many([_draft("next")])
    with pytest.raises(StoreError, match="fetch questions"):
        store.fetch_all()


def test_build_store_local_backend(tmp_path: Path) -> None:
    cfg_path = tmp_path / "quizbank.toml"
    cfg_path.write_text('[store]\nbackend = "local"\n', encoding="utf-8")
    config = load_config(explicit_path=cfg_path, env={})
    layout = ensure_workspace(path=tmp_path / "home")

    store = build_store(config, layout, env={})

    assert isinstance(store, JsonlQuestionStore)
    assert store.path == layout.path_for("bank") / "questions.jsonl"


def test_build_store_supabase_needs_credentials(tmp_path: Path) -> None:
    config = load_config(env={"QUIZBANK_DATA_HOME": str(tmp_path)})
    layout = ensure_workspace(path=tmp_path)

    with pytest.raises(StoreError, match="SUPABASE_URL"):
        build_store(config, layout, env={})

    store = build_store(
        config,
        layout,
        env={
            "SUPABASE_URL": "https://x.supabase.co",
            "SUPABASE_ANON_KEY": "k",
        },
    )
    assert isinstance(store, SupabaseQuestionStore)
    assert store.endpoint == "https://x.supabase.co/rest/v1/questions"


def test_dump_questions_emits_json_lines(tmp_path: Path) -> None:
    store = JsonlQuestionStore(tmp_path / "q.jsonl")
    store.insert_many([_draft("a"), _draft("b")])

    lines = dump_questions(store.fetch_all()).splitlines()

    assert len(lines) == 2
    assert '"question": "b"' in lines[0]
