"""Practice selection priority and practice recording tests."""

from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from zonaroja.errors import EmptyPoolError, NotFoundError, PersistenceError, ValidationError
from zonaroja.models.schemas import (
    AnswerHistoryRecord,
    PracticeAnswer,
    QuestionOption,
    QuestionPoolEntry,
)
from zonaroja.orchestration.datastore import LocalDatastore
from zonaroja.orchestration.practice import (
    DEFAULT_RATIONALE,
    PracticeService,
    score_practice,
    select_practice,
)


def _question(qid: str, rationale=None) -> QuestionPoolEntry:
    return QuestionPoolEntry(
        id=qid,
        text=f"Pregunta {qid}",
        topic_id="t1",
        options=[
            QuestionOption(id=f"{qid}-a", text="A", is_correct=False),
            QuestionOption(
                id=f"{qid}-b", text="B", is_correct=True, rationale=rationale
            ),
        ],
    )


def _pool_4_3_3():
    pool = [_question(f"q{i}") for i in range(10)]
    incorrect = {"q0", "q1", "q2", "q3"}
    correct = {"q7", "q8", "q9"}
    history = [
        AnswerHistoryRecord(user_id="u1", question_id=qid, is_correct=False)
        for qid in sorted(incorrect)
    ] + [
        AnswerHistoryRecord(user_id="u1", question_id=qid, is_correct=True)
        for qid in sorted(correct)
    ]
    return pool, history, incorrect, {"q4", "q5", "q6"}, correct


@pytest.mark.parametrize("seed", range(20))
def test_selector_priority_on_mixed_pool(seed):
    pool, history, incorrect, unseen, correct = _pool_4_3_3()

    items = select_practice(pool, history, limit=5, rng=random.Random(seed))
    ids = {item.id for item in items}

    assert len(items) == 5
    assert len(ids & incorrect) == 3
    assert len(ids & unseen) == 2
    assert not ids & correct


def test_unseen_fill_before_correct_tier():
    pool = [_question(f"q{i}") for i in range(6)]
    history = [
        AnswerHistoryRecord(user_id="u1", question_id="q0", is_correct=False),
        AnswerHistoryRecord(user_id="u1", question_id="q4", is_correct=True),
        AnswerHistoryRecord(user_id="u1", question_id="q5", is_correct=True),
    ]

    ids = {i.id for i in select_practice(pool, history, limit=5, rng=random.Random(3))}

    assert {"q0", "q1", "q2", "q3"} <= ids
    assert len(ids & {"q4", "q5"}) == 1


def test_latest_history_record_wins():
    pool = [_question("q0"), _question("q1")]
    history = [
        AnswerHistoryRecord(user_id="u1", question_id="q0", is_correct=False),
        AnswerHistoryRecord(user_id="u1", question_id="q0", is_correct=True),
    ]

    items = select_practice(pool, history, limit=1, rng=random.Random(0))

    assert [i.id for i in items] == ["q1"]


def test_small_pool_returns_fewer_items():
    items = select_practice([_question("q0"), _question("q1")], [], limit=5)
    assert len(items) == 2


def test_empty_pool_raises():
    with pytest.raises(EmptyPoolError):
        select_practice([], [], limit=5)


def test_practice_item_exposes_correct_option_and_rationale():
    item = select_practice([_question("q0", rationale="Porque sí.")], [])[0]
    assert item.correct_option_id == "q0-b"
    assert item.rationale == "Porque sí."
    assert [o.id for o in item.options] == ["q0-a", "q0-b"]

    fallback = select_practice([_question("q1")], [])[0]
    assert fallback.rationale == DEFAULT_RATIONALE


def test_score_practice_rounds_percentage():
    answers = [
        PracticeAnswer(question_id="a", selected_option_id="x", is_correct=True),
        PracticeAnswer(question_id="b", selected_option_id="x", is_correct=False),
        PracticeAnswer(question_id="c", selected_option_id="x", is_correct=False),
    ]
    summary = score_practice(answers, "t1", "s1")
    assert summary.total_questions == 3
    assert summary.correct_answers == 1
    assert summary.score_percentage == 33


@pytest.mark.parametrize(
    "correct, total, expected", [(1, 8, 13), (3, 8, 38), (1, 200, 1), (0, 4, 0), (4, 4, 100)]
)
def test_score_percentage_rounds_half_up(correct, total, expected):
    answers = [
        PracticeAnswer(
            question_id=f"q{i}", selected_option_id="x", is_correct=i < correct
        )
        for i in range(total)
    ]
    assert score_practice(answers, "t1", "s1").score_percentage == expected


def test_practice_results_feed_later_selection():
    store = LocalDatastore()
    service = PracticeService(store, limit=1, rng=random.Random(1))

    summary = service.record(
        "u1",
        "ucr-series",
        [
            PracticeAnswer(
                question_id="q-ser-1",
                selected_option_id="q-ser-1-a",
                is_correct=False,
            )
        ],
    )
    session = store.get_session(summary.session_id)
    assert session.kind == "practice"
    assert session.status == "completed"

    items = service.fetch("u1", "ucr-series")
    assert [i.id for i in items] == ["q-ser-1"]


def test_record_rejects_empty_answers_and_unknown_topic():
    service = PracticeService(LocalDatastore())
    with pytest.raises(ValidationError):
        service.record("u1", "ucr-series", [])
    with pytest.raises(NotFoundError) as excinfo:
        service.record(
            "u1",
            "missing-topic",
            [PracticeAnswer(question_id="q", selected_option_id="o", is_correct=True)],
        )
    assert excinfo.value.code == "TOPIC_NOT_FOUND"


class _InsertFailingStore(LocalDatastore):
    def insert_answers(self, session_id, user_id, answers):
        raise PersistenceError("disk full")


def test_record_abandons_session_when_answers_fail_to_save():
    store = _InsertFailingStore()
    service = PracticeService(store)

    with pytest.raises(PersistenceError) as excinfo:
        service.record(
            "u1",
            "ucr-series",
            [PracticeAnswer(question_id="q", selected_option_id="o", is_correct=True)],
        )

    assert excinfo.value.code == "SAVE_ERROR"
    statuses = [row["status"] for row in store._tables["sessions"].values()]
    assert statuses == ["abandoned"]
