"""Datastore boundary for sessions, answers, the question catalog and modules.

Two backends share one interface: Postgres (when configured) and a local
JSON-file store used for development and tests. Backend failures surface as
``PersistenceError``; a missing record is a normal ``None``.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Union
from uuid import uuid4

from ..errors import PersistenceError
from ..models.schemas import (
    Answer,
    AnswerHistoryRecord,
    CachedModule,
    DiagnosticSession,
    EvidenceItem,
    PracticeAnswer,
    QuestionPoolEntry,
    SessionKind,
    Topic,
    WeaknessTopic,
    utc_now,
)
from ..util.jsonio import load_json, save_json
from .demo_catalog import DEMO_CATALOG

_logger = logging.getLogger("zonaroja.datastore")

AnyAnswer = Union[Answer, PracticeAnswer]


class Datastore(Protocol):
    def find_exam_id(self, exam_type: str) -> Optional[str]: ...

    def create_session(
        self, user_id: str, exam_id: str, kind: SessionKind = "diagnostic"
    ) -> DiagnosticSession: ...

    def get_session(self, session_id: str) -> Optional[DiagnosticSession]: ...

    def complete_session(
        self, session_id: str, result_summary: Optional[List[WeaknessTopic]]
    ) -> None: ...

    def abandon_session(self, session_id: str) -> None: ...

    def insert_answers(
        self, session_id: str, user_id: str, answers: Sequence[AnyAnswer]
    ) -> None: ...

    def get_topic(self, topic_id: str) -> Optional[Topic]: ...

    def list_topic_questions(self, topic_id: str) -> List[QuestionPoolEntry]: ...

    def answer_history(
        self, user_id: str, question_ids: Iterable[str]
    ) -> List[AnswerHistoryRecord]: ...

    def error_evidence(self, user_id: str, topic_id: str) -> List[EvidenceItem]: ...

    def get_learning_module(
        self, user_id: str, topic_id: str
    ) -> Optional[CachedModule]: ...

    def upsert_learning_module(self, record: CachedModule) -> None: ...

    def touch_learning_module(
        self, user_id: str, topic_id: str
    ) -> Optional[CachedModule]: ...


def check_completion(
    session: DiagnosticSession, result_summary: Optional[List[WeaknessTopic]]
) -> None:
    """Enforce ``in_progress -> completed`` with a summary on diagnostics."""
    if session.status != "in_progress":
        raise PersistenceError(
            f"Session {session.id} is {session.status}; cannot complete it",
            code="SESSION_ERROR",
        )
    if session.kind == "diagnostic" and not result_summary:
        raise PersistenceError(
            "Diagnostic sessions complete only with a result summary",
            code="SESSION_ERROR",
        )


def abandon_quietly(datastore: Datastore, session_id: str) -> None:
    """Mark a session abandoned; a failure here is logged, not raised."""
    try:
        datastore.abandon_session(session_id)
    except PersistenceError as exc:
        _logger.error(
            "session_abandon_failed",
            extra={
                "event": "session_abandon_failed",
                "session_id": session_id,
                "error": str(exc),
            },
        )


def _answer_row(session_id: str, user_id: str, answer: AnyAnswer) -> Dict[str, Any]:
    return {
        "id": uuid4().hex,
        "session_id": session_id,
        "user_id": user_id,
        "question_id": answer.question_id,
        "selected_option_id": answer.selected_option_id,
        "is_correct": answer.is_correct,
        "response_time_ms": answer.response_time_ms,
        "created_at": utc_now().isoformat(),
    }


# ── Local JSON-file backend ────────────────────────────────────────
class LocalDatastore:
    """In-process tables, optionally mirrored to JSON files under *data_dir*."""

    _TABLES = ("sessions", "answers", "learning_modules")

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        catalog: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._data_dir = data_dir
        self._lock = RLock()
        self._tables: Dict[str, Any] = {
            "sessions": {},
            "answers": [],
            "learning_modules": {},
        }
        if data_dir is not None:
            for name in self._TABLES:
                stored = load_json(data_dir / f"{name}.json")
                if stored:
                    self._tables[name] = stored
            if catalog is None:
                catalog = load_json(data_dir / "catalog.json") or None
        self.load_catalog(catalog if catalog is not None else DEMO_CATALOG)

    def load_catalog(self, catalog: Dict[str, Any]) -> None:
        with self._lock:
            self._exams = {e["id"]: e for e in catalog.get("exams", [])}
            self._topics = {t["id"]: t for t in catalog.get("topics", [])}
            self._questions = {q["id"]: q for q in catalog.get("questions", [])}

    def _commit(self, name: str, table: Any) -> None:
        """Write *table* to disk, then swap it in; memory is unchanged on failure."""
        if self._data_dir is not None:
            try:
                save_json(self._data_dir / f"{name}.json", table)
            except OSError as exc:
                raise PersistenceError(
                    f"Local datastore write failed: {exc}"
                ) from exc
        self._tables[name] = table

    def _put_session(self, session: DiagnosticSession) -> None:
        sessions = dict(self._tables["sessions"])
        sessions[session.id] = session.model_dump(mode="json")
        self._commit("sessions", sessions)

    # sessions
    def find_exam_id(self, exam_type: str) -> Optional[str]:
        needle = exam_type.strip().lower()
        if not needle:
            return None
        for exam in self._exams.values():
            if needle in exam["name"].lower() or exam["id"].lower().endswith(needle):
                return exam["id"]
        return None

    def create_session(
        self, user_id: str, exam_id: str, kind: SessionKind = "diagnostic"
    ) -> DiagnosticSession:
        session = DiagnosticSession(
            id=uuid4().hex, user_id=user_id, exam_id=exam_id, kind=kind
        )
        with self._lock:
            self._put_session(session)
        return session

    def get_session(self, session_id: str) -> Optional[DiagnosticSession]:
        with self._lock:
            row = self._tables["sessions"].get(session_id)
        return DiagnosticSession.model_validate(row) if row else None

    def complete_session(
        self, session_id: str, result_summary: Optional[List[WeaknessTopic]]
    ) -> None:
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                raise PersistenceError(
                    f"Session {session_id} not found", code="SESSION_ERROR"
                )
            check_completion(session, result_summary)
            updated = session.model_copy(
                update={
                    "status": "completed",
                    "result_summary": result_summary,
                    "completed_at": utc_now(),
                }
            )
            self._put_session(updated)

    def abandon_session(self, session_id: str) -> None:
        with self._lock:
            session = self.get_session(session_id)
            if session is None or session.status != "in_progress":
                return
            updated = session.model_copy(update={"status": "abandoned"})
            self._put_session(updated)

    # answers
    def insert_answers(
        self, session_id: str, user_id: str, answers: Sequence[AnyAnswer]
    ) -> None:
        rows = [_answer_row(session_id, user_id, a) for a in answers]
        with self._lock:
            self._commit("answers", self._tables["answers"] + rows)

    # catalog
    def get_topic(self, topic_id: str) -> Optional[Topic]:
        topic = self._topics.get(topic_id)
        if topic is None:
            return None
        exam = self._exams.get(topic["exam_id"], {})
        return Topic(
            id=topic["id"],
            name=topic["name"],
            exam_id=topic["exam_id"],
            exam_name=exam.get("name", "Unknown Exam"),
        )

    def list_topic_questions(self, topic_id: str) -> List[QuestionPoolEntry]:
        return [
            QuestionPoolEntry.model_validate(q)
            for q in self._questions.values()
            if q["topic_id"] == topic_id
        ]

    def answer_history(
        self, user_id: str, question_ids: Iterable[str]
    ) -> List[AnswerHistoryRecord]:
        wanted = set(question_ids)
        latest: Dict[str, bool] = {}
        with self._lock:
            for row in self._tables["answers"]:
                if row["user_id"] == user_id and row["question_id"] in wanted:
                    latest[row["question_id"]] = row["is_correct"]
        return [
            AnswerHistoryRecord(user_id=user_id, question_id=qid, is_correct=ok)
            for qid, ok in latest.items()
        ]

    def error_evidence(self, user_id: str, topic_id: str) -> List[EvidenceItem]:
        evidence: List[EvidenceItem] = []
        with self._lock:
            rows = list(self._tables["answers"])
        for row in rows:
            if row["user_id"] != user_id or row["is_correct"]:
                continue
            question = self._questions.get(row["question_id"])
            if question is None or question["topic_id"] != topic_id:
                continue
            option = next(
                (
                    o
                    for o in question.get("options", [])
                    if o["id"] == row["selected_option_id"]
                ),
                {},
            )
            evidence.append(
                EvidenceItem(
                    question_text=question.get("text") or "Unknown question",
                    question_difficulty=question.get("difficulty") or "unknown",
                    chosen_distractor_text=option.get("text") or "Unknown option",
                    error_rationale=option.get("rationale")
                    or "No rationale available",
                )
            )
        return evidence

    # learning modules
    @staticmethod
    def _module_key(user_id: str, topic_id: str) -> str:
        return f"{user_id}::{topic_id}"

    def get_learning_module(
        self, user_id: str, topic_id: str
    ) -> Optional[CachedModule]:
        with self._lock:
            row = self._tables["learning_modules"].get(
                self._module_key(user_id, topic_id)
            )
        return CachedModule.model_validate(row) if row else None

    def upsert_learning_module(self, record: CachedModule) -> None:
        with self._lock:
            modules = dict(self._tables["learning_modules"])
            modules[self._module_key(record.user_id, record.topic_id)] = (
                record.model_dump(mode="json")
            )
            self._commit("learning_modules", modules)

    def touch_learning_module(
        self, user_id: str, topic_id: str
    ) -> Optional[CachedModule]:
        with self._lock:
            current = self.get_learning_module(user_id, topic_id)
            if current is None:
                return None
            updated = current.model_copy(
                update={
                    "access_count": current.access_count + 1,
                    "last_accessed_at": utc_now(),
                }
            )
            self.upsert_learning_module(updated)
        return updated


# ── Postgres backend ───────────────────────────────────────────────
def _normalize_table_prefix(name: str) -> str:
    candidate = (name or "").strip()
    if re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", candidate):
        return candidate
    return ""


def _build_pg_conninfo() -> Optional[str]:
    dsn = os.environ.get("POSTGRES_DSN") or os.environ.get("DATABASE_URL")
    if dsn:
        return dsn

    host = os.environ.get("POSTGRES_HOST")
    dbname = os.environ.get("POSTGRES_DB")
    user = os.environ.get("POSTGRES_USER")
    password = os.environ.get("POSTGRES_PASSWORD")
    if not (host and dbname and user and password):
        return None

    port = os.environ.get("POSTGRES_PORT", "5432")
    sslmode = os.environ.get("POSTGRES_SSLMODE", "require")
    return (
        f"host={host} "
        f"port={port} "
        f"dbname={dbname} "
        f"user={user} "
        f"password={password} "
        f"sslmode={sslmode}"
    )


def _json_value(raw: Any) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        return json.loads(raw.decode("utf-8"))
    if isinstance(raw, str):
        return json.loads(raw)
    return raw


_SCHEMA = """
CREATE TABLE IF NOT EXISTS {p}exams (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS {p}topics (
    id TEXT PRIMARY KEY,
    exam_id TEXT NOT NULL REFERENCES {p}exams (id),
    name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS {p}questions (
    id TEXT PRIMARY KEY,
    topic_id TEXT NOT NULL REFERENCES {p}topics (id),
    content JSONB NOT NULL,
    difficulty TEXT
);
CREATE TABLE IF NOT EXISTS {p}question_options (
    id TEXT PRIMARY KEY,
    question_id TEXT NOT NULL REFERENCES {p}questions (id),
    text TEXT NOT NULL,
    is_correct BOOLEAN NOT NULL DEFAULT FALSE,
    rationale TEXT
);
CREATE TABLE IF NOT EXISTS {p}diagnostic_sessions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    exam_id TEXT NOT NULL,
    kind TEXT NOT NULL DEFAULT 'diagnostic',
    status TEXT NOT NULL,
    result_summary JSONB,
    completed_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE TABLE IF NOT EXISTS {p}user_answers (
    id TEXT PRIMARY KEY,
    diagnostic_session_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    question_id TEXT NOT NULL,
    selected_option_id TEXT NOT NULL,
    is_correct BOOLEAN NOT NULL,
    response_time_ms INTEGER NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE TABLE IF NOT EXISTS {p}learning_modules (
    user_id TEXT NOT NULL,
    topic_id TEXT NOT NULL,
    title TEXT NOT NULL,
    content JSONB NOT NULL,
    evidence_hash TEXT NOT NULL,
    evidence_count INTEGER NOT NULL,
    ai_model TEXT,
    generation_time_ms INTEGER,
    access_count INTEGER NOT NULL DEFAULT 1,
    last_accessed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (user_id, topic_id)
)
"""


class PostgresDatastore:
    """Datastore over psycopg; one short-lived connection per operation."""

    def __init__(
        self,
        conninfo: str,
        timeout_seconds: int = 10,
        table_prefix: str = "",
    ) -> None:
        self._conninfo = conninfo
        self._timeout_seconds = max(1, timeout_seconds)
        self._p = _normalize_table_prefix(table_prefix)
        self._schema_ready = False

    def _connect(self):
        try:
            import psycopg
        except ImportError as exc:
            raise PersistenceError("psycopg is not installed") from exc
        try:
            return psycopg.connect(
                self._conninfo,
                autocommit=True,
                connect_timeout=self._timeout_seconds,
                options=f"-c statement_timeout={self._timeout_seconds * 1000}",
            )
        except Exception as exc:
            raise PersistenceError(f"Database connection failed: {exc}") from exc

    def _run(
        self,
        query: str,
        params: Sequence[Any] = (),
        fetch: Optional[str] = None,
        many: Optional[List[Sequence[Any]]] = None,
    ) -> Any:
        conn = self._connect()
        try:
            with conn.cursor() as cur:
                if not self._schema_ready:
                    for statement in _SCHEMA.format(p=self._p).split(";"):
                        if statement.strip():
                            cur.execute(statement)
                    self._schema_ready = True
                sql = query.format(p=self._p)
                if many is not None:
                    cur.executemany(sql, many)
                else:
                    cur.execute(sql, params)
                if fetch == "one":
                    return cur.fetchone()
                if fetch == "all":
                    return cur.fetchall()
                return None
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Database operation failed: {exc}") from exc
        finally:
            try:
                conn.close()
            except Exception:
                _logger.debug("connection_close_failed", exc_info=True)

    # sessions
    def find_exam_id(self, exam_type: str) -> Optional[str]:
        row = self._run(
            "SELECT id FROM {p}exams WHERE name ILIKE %s ORDER BY id LIMIT 1",
            (f"%{exam_type}%",),
            fetch="one",
        )
        return row[0] if row else None

    def create_session(
        self, user_id: str, exam_id: str, kind: SessionKind = "diagnostic"
    ) -> DiagnosticSession:
        session = DiagnosticSession(
            id=uuid4().hex, user_id=user_id, exam_id=exam_id, kind=kind
        )
        self._run(
            "INSERT INTO {p}diagnostic_sessions "
            "(id, user_id, exam_id, kind, status, created_at) "
            "VALUES (%s, %s, %s, %s, %s, %s)",
            (
                session.id,
                user_id,
                exam_id,
                kind,
                session.status,
                session.created_at,
            ),
        )
        return session

    def get_session(self, session_id: str) -> Optional[DiagnosticSession]:
        row = self._run(
            "SELECT id, user_id, exam_id, kind, status, result_summary, "
            "completed_at, created_at FROM {p}diagnostic_sessions WHERE id = %s",
            (session_id,),
            fetch="one",
        )
        if not row:
            return None
        return DiagnosticSession(
            id=row[0],
            user_id=row[1],
            exam_id=row[2],
            kind=row[3],
            status=row[4],
            result_summary=_json_value(row[5]),
            completed_at=row[6],
            created_at=row[7],
        )

    def complete_session(
        self, session_id: str, result_summary: Optional[List[WeaknessTopic]]
    ) -> None:
        session = self.get_session(session_id)
        if session is None:
            raise PersistenceError(
                f"Session {session_id} not found", code="SESSION_ERROR"
            )
        check_completion(session, result_summary)
        summary_json = (
            json.dumps(
                [t.model_dump() for t in result_summary], ensure_ascii=False
            )
            if result_summary
            else None
        )
        # The status guard keeps a concurrent writer from completing twice.
        self._run(
            "UPDATE {p}diagnostic_sessions "
            "SET status = 'completed', result_summary = %s::jsonb, "
            "completed_at = %s WHERE id = %s AND status = 'in_progress'",
            (summary_json, utc_now(), session_id),
        )

    def abandon_session(self, session_id: str) -> None:
        self._run(
            "UPDATE {p}diagnostic_sessions SET status = 'abandoned' "
            "WHERE id = %s AND status = 'in_progress'",
            (session_id,),
        )

    # answers
    def insert_answers(
        self, session_id: str, user_id: str, answers: Sequence[AnyAnswer]
    ) -> None:
        rows = [_answer_row(session_id, user_id, a) for a in answers]
        self._run(
            "INSERT INTO {p}user_answers "
            "(id, diagnostic_session_id, user_id, question_id, "
            "selected_option_id, is_correct, response_time_ms) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s)",
            many=[
                (
                    r["id"],
                    r["session_id"],
                    r["user_id"],
                    r["question_id"],
                    r["selected_option_id"],
                    r["is_correct"],
                    r["response_time_ms"],
                )
                for r in rows
            ],
        )

    # catalog
    def get_topic(self, topic_id: str) -> Optional[Topic]:
        row = self._run(
            "SELECT t.id, t.name, t.exam_id, e.name FROM {p}topics t "
            "LEFT JOIN {p}exams e ON e.id = t.exam_id WHERE t.id = %s",
            (topic_id,),
            fetch="one",
        )
        if not row:
            return None
        return Topic(
            id=row[0], name=row[1], exam_id=row[2], exam_name=row[3] or "Unknown Exam"
        )

    def list_topic_questions(self, topic_id: str) -> List[QuestionPoolEntry]:
        rows = self._run(
            "SELECT q.id, q.content, q.difficulty, o.id, o.text, o.is_correct, "
            "o.rationale FROM {p}questions q "
            "LEFT JOIN {p}question_options o ON o.question_id = q.id "
            "WHERE q.topic_id = %s ORDER BY q.id, o.id",
            (topic_id,),
            fetch="all",
        )
        entries: Dict[str, Dict[str, Any]] = {}
        for qid, content, difficulty, oid, text, is_correct, rationale in rows or []:
            entry = entries.get(qid)
            if entry is None:
                body = _json_value(content) or {}
                entry = {
                    "id": qid,
                    "text": body.get("text", "") if isinstance(body, dict) else "",
                    "topic_id": topic_id,
                    "difficulty": difficulty,
                    "options": [],
                }
                entries[qid] = entry
            if oid is not None:
                entry["options"].append(
                    {
                        "id": oid,
                        "text": text,
                        "is_correct": bool(is_correct),
                        "rationale": rationale,
                    }
                )
        return [QuestionPoolEntry.model_validate(e) for e in entries.values()]

    def answer_history(
        self, user_id: str, question_ids: Iterable[str]
    ) -> List[AnswerHistoryRecord]:
        ids = list(question_ids)
        if not ids:
            return []
        rows = self._run(
            "SELECT DISTINCT ON (question_id) question_id, is_correct "
            "FROM {p}user_answers WHERE user_id = %s AND question_id = ANY(%s) "
            "ORDER BY question_id, created_at DESC",
            (user_id, ids),
            fetch="all",
        )
        return [
            AnswerHistoryRecord(user_id=user_id, question_id=qid, is_correct=ok)
            for qid, ok in rows or []
        ]

    def error_evidence(self, user_id: str, topic_id: str) -> List[EvidenceItem]:
        rows = self._run(
            "SELECT q.content, q.difficulty, o.text, o.rationale "
            "FROM {p}user_answers a "
            "JOIN {p}questions q ON q.id = a.question_id "
            "LEFT JOIN {p}question_options o ON o.id = a.selected_option_id "
            "WHERE a.user_id = %s AND q.topic_id = %s AND a.is_correct = FALSE",
            (user_id, topic_id),
            fetch="all",
        )
        evidence: List[EvidenceItem] = []
        for content, difficulty, option_text, rationale in rows or []:
            body = _json_value(content) or {}
            evidence.append(
                EvidenceItem(
                    question_text=(
                        body.get("text") if isinstance(body, dict) else None
                    )
                    or "Unknown question",
                    question_difficulty=difficulty or "unknown",
                    chosen_distractor_text=option_text or "Unknown option",
                    error_rationale=rationale or "No rationale available",
                )
            )
        return evidence

    # learning modules
    _MODULE_COLUMNS = (
        "user_id, topic_id, content, evidence_hash, evidence_count, "
        "access_count, last_accessed_at, created_at, ai_model, generation_time_ms"
    )

    @staticmethod
    def _module_from_row(row: Sequence[Any]) -> CachedModule:
        return CachedModule(
            user_id=row[0],
            topic_id=row[1],
            content=_json_value(row[2]),
            evidence_hash=row[3],
            evidence_count=row[4],
            access_count=row[5],
            last_accessed_at=row[6],
            created_at=row[7],
            ai_model=row[8],
            generation_time_ms=row[9],
        )

    def get_learning_module(
        self, user_id: str, topic_id: str
    ) -> Optional[CachedModule]:
        row = self._run(
            f"SELECT {self._MODULE_COLUMNS} FROM {{p}}learning_modules "
            "WHERE user_id = %s AND topic_id = %s",
            (user_id, topic_id),
            fetch="one",
        )
        return self._module_from_row(row) if row else None

    def upsert_learning_module(self, record: CachedModule) -> None:
        self._run(
            """
            INSERT INTO {p}learning_modules (
                user_id, topic_id, title, content, evidence_hash, evidence_count,
                ai_model, generation_time_ms, access_count, last_accessed_at,
                created_at
            )
            VALUES (%s, %s, %s, %s::jsonb, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, topic_id)
            DO UPDATE SET
              title = EXCLUDED.title,
              content = EXCLUDED.content,
              evidence_hash = EXCLUDED.evidence_hash,
              evidence_count = EXCLUDED.evidence_count,
              ai_model = EXCLUDED.ai_model,
              generation_time_ms = EXCLUDED.generation_time_ms,
              access_count = EXCLUDED.access_count,
              last_accessed_at = EXCLUDED.last_accessed_at,
              created_at = EXCLUDED.created_at
            """,
            (
                record.user_id,
                record.topic_id,
                record.content.title,
                json.dumps(record.content.model_dump(), ensure_ascii=False),
                record.evidence_hash,
                record.evidence_count,
                record.ai_model,
                record.generation_time_ms,
                record.access_count,
                record.last_accessed_at,
                record.created_at,
            ),
        )

    def touch_learning_module(
        self, user_id: str, topic_id: str
    ) -> Optional[CachedModule]:
        row = self._run(
            "UPDATE {p}learning_modules "
            "SET access_count = access_count + 1, last_accessed_at = %s "
            "WHERE user_id = %s AND topic_id = %s "
            f"RETURNING {self._MODULE_COLUMNS}",
            (utc_now(), user_id, topic_id),
            fetch="one",
        )
        return self._module_from_row(row) if row else None


def build_datastore() -> Datastore:
    """Postgres when configured, otherwise the local JSON-file store."""
    conninfo = _build_pg_conninfo()
    if conninfo:
        timeout = os.environ.get("POSTGRES_TIMEOUT_SECONDS", "10")
        try:
            timeout_seconds = int(timeout)
        except ValueError:
            timeout_seconds = 10
        return PostgresDatastore(
            conninfo,
            timeout_seconds=timeout_seconds,
            table_prefix=os.environ.get("POSTGRES_TABLE_PREFIX", ""),
        )
    return LocalDatastore(data_dir=Path(os.environ.get("DATA_DIR", ".data")))
