"""Practice-set selection and practice-answer recording."""

from __future__ import annotations

import logging
import random
from typing import Dict, List, Optional, Sequence

from ..errors import EmptyPoolError, NotFoundError, PersistenceError, ValidationError
from ..models.schemas import (
    AnswerHistoryRecord,
    PracticeAnswer,
    PracticeItem,
    PracticeOption,
    PracticeSummary,
    QuestionPoolEntry,
)
from .datastore import Datastore, abandon_quietly

_logger = logging.getLogger("zonaroja.practice")

DEFAULT_PRACTICE_SIZE = 5
MAX_INCORRECT_REPEATS = 3
DEFAULT_RATIONALE = "¡Esta es la respuesta correcta!"


def _to_practice_item(question: QuestionPoolEntry) -> PracticeItem:
    correct = next((o for o in question.options if o.is_correct), None)
    return PracticeItem(
        id=question.id,
        text=question.text,
        options=[PracticeOption(id=o.id, text=o.text) for o in question.options],
        correct_option_id=correct.id if correct else "",
        rationale=(correct.rationale if correct and correct.rationale else None)
        or DEFAULT_RATIONALE,
    )


def select_practice(
    pool: Sequence[QuestionPoolEntry],
    history: Sequence[AnswerHistoryRecord],
    limit: int = DEFAULT_PRACTICE_SIZE,
    rng: Optional[random.Random] = None,
) -> List[PracticeItem]:
    """Pick up to *limit* questions: past mistakes, then unseen, then mastered.

    Past mistakes are capped at ``min(3, limit)`` so a set is never only
    repeats. When a question appears more than once in *history* the last
    record wins.
    """
    if not pool:
        raise EmptyPoolError()
    if limit <= 0:
        return []
    rng = rng or random.SystemRandom()

    outcome: Dict[str, bool] = {}
    for record in history:
        outcome[record.question_id] = record.is_correct

    incorrect = [q for q in pool if outcome.get(q.id) is False]
    unseen = [q for q in pool if q.id not in outcome]
    correct = [q for q in pool if outcome.get(q.id) is True]
    for tier in (incorrect, unseen, correct):
        rng.shuffle(tier)

    selected = incorrect[: min(MAX_INCORRECT_REPEATS, limit)]
    for tier in (unseen, correct):
        remaining = limit - len(selected)
        if remaining <= 0:
            break
        selected.extend(tier[:remaining])

    rng.shuffle(selected)
    return [_to_practice_item(q) for q in selected[:limit]]


def _percent_half_up(part: int, total: int) -> int:
    if not total:
        return 0
    return (part * 200 + total) // (total * 2)


def score_practice(
    answers: Sequence[PracticeAnswer], topic_id: str, session_id: str
) -> PracticeSummary:
    total = len(answers)
    correct = sum(1 for a in answers if a.is_correct)
    return PracticeSummary(
        total_questions=total,
        correct_answers=correct,
        score_percentage=_percent_half_up(correct, total),
        topic_id=topic_id,
        session_id=session_id,
    )


class PracticeService:
    def __init__(
        self,
        datastore: Datastore,
        limit: int = DEFAULT_PRACTICE_SIZE,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._datastore = datastore
        self._limit = limit
        self._rng = rng

    def fetch(self, user_id: str, topic_id: str) -> List[PracticeItem]:
        pool = self._datastore.list_topic_questions(topic_id)
        if not pool:
            raise EmptyPoolError()
        history = self._datastore.answer_history(user_id, [q.id for q in pool])
        items = select_practice(pool, history, limit=self._limit, rng=self._rng)
        _logger.info(
            "practice_set_selected",
            extra={
                "event": "practice_set_selected",
                "user_id": user_id,
                "topic_id": topic_id,
                "pool_size": len(pool),
                "history_size": len(history),
                "selected": len(items),
            },
        )
        return items

    def record(
        self, user_id: str, topic_id: str, answers: Sequence[PracticeAnswer]
    ) -> PracticeSummary:
        """Persist practice answers through the regular answer path and score them."""
        if not answers:
            raise ValidationError("Answers array is required and must not be empty")

        topic = self._datastore.get_topic(topic_id)
        if topic is None:
            raise NotFoundError("Topic not found", code="TOPIC_NOT_FOUND")

        try:
            session = self._datastore.create_session(
                user_id, topic.exam_id, kind="practice"
            )
        except PersistenceError as exc:
            raise PersistenceError(
                "Failed to create practice session", code="SESSION_ERROR"
            ) from exc

        try:
            self._datastore.insert_answers(session.id, user_id, answers)
        except PersistenceError as exc:
            abandon_quietly(self._datastore, session.id)
            raise PersistenceError(
                "Failed to save practice results", code="SAVE_ERROR"
            ) from exc

        try:
            self._datastore.complete_session(session.id, None)
        except PersistenceError as exc:
            _logger.warning(
                "session_completion_failed",
                extra={
                    "event": "session_completion_failed",
                    "session_id": session.id,
                    "error": str(exc),
                },
            )

        summary = score_practice(answers, topic_id, session.id)
        _logger.info(
            "practice_recorded",
            extra={
                "event": "practice_recorded",
                "user_id": user_id,
                "topic_id": topic_id,
                "session_id": session.id,
                "score_percentage": summary.score_percentage,
            },
        )
        return summary
