"""PostgresDatastore tests against a fake psycopg module."""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from zonaroja.errors import PersistenceError
from zonaroja.models.schemas import Answer, WeaknessTopic
from zonaroja.orchestration import datastore as datastore_module
from zonaroja.orchestration.datastore import (
    LocalDatastore,
    PostgresDatastore,
    build_datastore,
)

_NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


class _FakeCursor:
    def __init__(self, db: "_FakePsycopg"):
        self._db = db
        self._result = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, query: str, params=None) -> None:
        normalized = " ".join(query.split())
        self._db.executed.append((normalized, params))
        if normalized.lower().startswith("create table"):
            return
        self._result = None
        for marker, result in self._db.responses:
            if marker in normalized:
                self._result = result
                return

    def executemany(self, query: str, rows) -> None:
        self._db.executed.append((" ".join(query.split()), list(rows)))

    def fetchone(self):
        if isinstance(self._result, list):
            return self._result[0] if self._result else None
        return self._result

    def fetchall(self):
        return self._result or []


class _FakeConnection:
    def __init__(self, db: "_FakePsycopg"):
        self._db = db

    def cursor(self):
        return _FakeCursor(self._db)

    def close(self) -> None:
        self._db.closed += 1


class _FakePsycopg:
    def __init__(self):
        self.executed = []
        self.responses = []
        self.connect_kwargs = []
        self.closed = 0

    def connect(self, conninfo, **kwargs):
        self.connect_kwargs.append((conninfo, kwargs))
        return _FakeConnection(self)


class _BrokenPsycopg:
    def connect(self, _conninfo, **_kwargs):
        raise RuntimeError("db unavailable")


@pytest.fixture
def fake_pg(monkeypatch):
    fake = _FakePsycopg()
    monkeypatch.setitem(sys.modules, "psycopg", fake)
    return fake


def _queries(fake: _FakePsycopg):
    return [q for q, _ in fake.executed if not q.lower().startswith("create table")]


def test_connect_uses_timeouts_and_creates_schema_once(fake_pg):
    store = PostgresDatastore("postgresql://fake", timeout_seconds=7, table_prefix="zr_")

    store.find_exam_id("ucr")
    store.find_exam_id("tec")

    conninfo, kwargs = fake_pg.connect_kwargs[0]
    assert conninfo == "postgresql://fake"
    assert kwargs["autocommit"] is True
    assert kwargs["connect_timeout"] == 7
    assert kwargs["options"] == "-c statement_timeout=7000"
    creates = [q for q, _ in fake_pg.executed if q.lower().startswith("create table")]
    assert len(creates) == 7
    assert all("zr_" in q for q in creates)
    assert fake_pg.closed == 2


def test_invalid_table_prefix_is_ignored(fake_pg):
    store = PostgresDatastore("postgresql://fake", table_prefix="drop table;")
    store.get_topic("t1")
    assert "FROM topics t" in _queries(fake_pg)[0]


def test_find_exam_and_session_round_trip(fake_pg):
    fake_pg.responses = [
        ("FROM exams", ("exam-ucr",)),
        (
            "FROM diagnostic_sessions WHERE id",
            ("s1", "u1", "exam-ucr", "diagnostic", "in_progress", None, None, _NOW),
        ),
    ]
    store = PostgresDatastore("postgresql://fake")

    assert store.find_exam_id("ucr") == "exam-ucr"
    session = store.create_session("u1", "exam-ucr")
    assert session.status == "in_progress"

    topics = [WeaknessTopic(title=t, description="d") for t in "ABC"]
    store.complete_session("s1", topics)

    update_sql, update_params = fake_pg.executed[-1]
    assert "SET status = 'completed'" in update_sql
    assert "AND status = 'in_progress'" in update_sql
    assert json.loads(update_params[0])[0]["title"] == "A"


def test_completing_a_finished_session_is_refused(fake_pg):
    fake_pg.responses = [
        (
            "FROM diagnostic_sessions WHERE id",
            ("s1", "u1", "exam-ucr", "diagnostic", "completed", "[]", _NOW, _NOW),
        ),
    ]
    store = PostgresDatastore("postgresql://fake")

    with pytest.raises(PersistenceError) as excinfo:
        store.complete_session("s1", [WeaknessTopic(title="A", description="d")])
    assert excinfo.value.code == "SESSION_ERROR"


def test_insert_answers_batches_rows(fake_pg):
    store = PostgresDatastore("postgresql://fake")
    answers = [
        Answer(
            question_id=f"q{i}",
            selected_option_id="o",
            is_correct=bool(i % 2),
            response_time_ms=1000,
            topic_id="t",
        )
        for i in range(3)
    ]

    store.insert_answers("s1", "u1", answers)

    sql, rows = fake_pg.executed[-1]
    assert sql.startswith("INSERT INTO user_answers")
    assert [r[3] for r in rows] == ["q0", "q1", "q2"]
    assert all(r[1] == "s1" and r[2] == "u1" for r in rows)


def test_question_pool_groups_options(fake_pg):
    content = json.dumps({"text": "¿2+2?"})
    fake_pg.responses = [
        (
            "FROM questions q LEFT JOIN",
            [
                ("q1", content, "facil", "q1-a", "3", False, "Restaste."),
                ("q1", content, "facil", "q1-b", "4", True, "Correcto."),
                ("q2", {"text": "otra"}, None, None, None, None, None),
            ],
        )
    ]
    store = PostgresDatastore("postgresql://fake")

    pool = store.list_topic_questions("t1")

    assert [q.id for q in pool] == ["q1", "q2"]
    assert pool[0].text == "¿2+2?"
    assert [o.is_correct for o in pool[0].options] == [False, True]
    assert pool[1].options == []


def test_history_and_evidence_mapping(fake_pg):
    fake_pg.responses = [
        ("DISTINCT ON (question_id)", [("q1", False), ("q2", True)]),
        ("a.is_correct = FALSE", [(json.dumps({"text": "Q"}), None, None, None)]),
    ]
    store = PostgresDatastore("postgresql://fake")

    history = store.answer_history("u1", ["q1", "q2"])
    evidence = store.error_evidence("u1", "t1")

    assert [(h.question_id, h.is_correct) for h in history] == [
        ("q1", False),
        ("q2", True),
    ]
    assert evidence[0].question_text == "Q"
    assert evidence[0].question_difficulty == "unknown"
    assert evidence[0].error_rationale == "No rationale available"
    assert store.answer_history("u1", []) == []


def test_learning_module_touch_returns_updated_row(fake_pg):
    content = {
        "title": "T",
        "explanation": {"validation": "v", "analogy": "a", "core_concept": "c"},
        "machote": {"title": "M", "steps": ["1"], "common_mistakes": []},
    }
    fake_pg.responses = [
        (
            "RETURNING",
            ("u1", "t1", json.dumps(content), "h", 2, 5, _NOW, _NOW, "gpt", 1200),
        ),
    ]
    store = PostgresDatastore("postgresql://fake")

    record = store.touch_learning_module("u1", "t1")

    assert record.access_count == 5
    assert record.content.explanation.core_concept == "c"
    assert "access_count = access_count + 1" in _queries(fake_pg)[0]


def test_driver_failures_become_persistence_errors(monkeypatch):
    monkeypatch.setitem(sys.modules, "psycopg", _BrokenPsycopg())
    store = PostgresDatastore("postgresql://fake")

    with pytest.raises(PersistenceError):
        store.get_topic("t1")


def test_build_datastore_prefers_postgres(monkeypatch, tmp_path):
    for name in ("POSTGRES_DSN", "DATABASE_URL", "POSTGRES_HOST"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    assert isinstance(build_datastore(), LocalDatastore)

    monkeypatch.setenv("POSTGRES_HOST", "db")
    monkeypatch.setenv("POSTGRES_DB", "zonaroja")
    monkeypatch.setenv("POSTGRES_USER", "app")
    monkeypatch.setenv("POSTGRES_PASSWORD", "pw")
    monkeypatch.setenv("POSTGRES_TIMEOUT_SECONDS", "oops")
    store = build_datastore()
    assert isinstance(store, PostgresDatastore)
    assert "sslmode=require" in datastore_module._build_pg_conninfo()
