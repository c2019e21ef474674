"""Diagnostic submission: validate, limit, persist, analyze, complete."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from ..agents.weakness import run_weakness_analysis
from ..config import EXAM_TYPES
from ..errors import (
    NotFoundError,
    PersistenceError,
    ProcessingError,
    RateLimitError,
    ValidationError,
)
from ..models.schemas import Answer, WeaknessTopic
from .datastore import Datastore, abandon_quietly
from .rate_limit import NoopRateLimiter, RateLimiter

_logger = logging.getLogger("zonaroja.submission")

DEFAULT_MAX_ANSWERS = 50


def validate_submission(
    exam_type: str,
    answers: Sequence[Union[Answer, Mapping[str, Any]]],
    max_answers: int = DEFAULT_MAX_ANSWERS,
) -> List[Answer]:
    """Check exam type and batch bounds, coercing raw dicts into ``Answer``."""
    if not isinstance(exam_type, str) or exam_type.strip().lower() not in EXAM_TYPES:
        raise ValidationError(
            "Unknown exam type",
            details={"examType": exam_type, "allowed": list(EXAM_TYPES)},
        )
    if not answers:
        raise ValidationError("At least one answer is required")
    if len(answers) > max_answers:
        raise ValidationError(
            f"Too many answers; the limit is {max_answers}",
            details={"count": len(answers), "limit": max_answers},
        )

    validated: List[Answer] = []
    for index, raw in enumerate(answers):
        if isinstance(raw, Answer):
            validated.append(raw)
            continue
        try:
            validated.append(Answer.model_validate(raw))
        except PydanticValidationError as exc:
            raise ValidationError(
                "Invalid answer format",
                details={
                    "index": index,
                    "errors": [
                        {"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()
                    ],
                },
            ) from exc
    return validated


class SubmissionOrchestrator:
    """Runs one diagnostic submission through its session lifecycle.

    Sessions move ``in_progress -> completed`` only once a non-empty result is
    ready; persistence failures before that leave the session ``abandoned``.
    """

    def __init__(
        self,
        datastore: Datastore,
        rate_limiter: Optional[RateLimiter] = None,
        generation_run: Optional[Callable[..., str]] = None,
        max_answers: int = DEFAULT_MAX_ANSWERS,
    ) -> None:
        self._datastore = datastore
        self._rate_limiter = rate_limiter or NoopRateLimiter()
        self._generation_run = generation_run
        self._max_answers = max_answers

    def submit(
        self,
        user_id: str,
        exam_type: str,
        answers: Sequence[Union[Answer, Mapping[str, Any]]],
    ) -> List[WeaknessTopic]:
        started = perf_counter()
        validated = validate_submission(exam_type, answers, self._max_answers)
        exam_type = exam_type.strip().lower()

        retry_after = self._rate_limiter.check(f"submission:{user_id}")
        if retry_after is not None:
            _logger.info(
                "submission_rate_limited",
                extra={
                    "event": "submission_rate_limited",
                    "user_id": user_id,
                    "retry_after": retry_after,
                },
            )
            raise RateLimitError(retry_after)

        exam_id = self._datastore.find_exam_id(exam_type)
        if exam_id is None:
            raise NotFoundError(
                f"Could not find exam for type: {exam_type}", code="EXAM_NOT_FOUND"
            )

        try:
            session = self._datastore.create_session(user_id, exam_id)
        except PersistenceError as exc:
            _logger.error(
                "session_create_failed",
                extra={
                    "event": "session_create_failed",
                    "user_id": user_id,
                    "exam_type": exam_type,
                    "error": str(exc),
                },
            )
            raise PersistenceError(
                "Failed to create diagnostic session", code="SESSION_ERROR"
            ) from exc

        try:
            self._datastore.insert_answers(session.id, user_id, validated)
        except PersistenceError as exc:
            _logger.error(
                "answers_save_failed",
                extra={
                    "event": "answers_save_failed",
                    "session_id": session.id,
                    "answer_count": len(validated),
                    "error": str(exc),
                },
            )
            abandon_quietly(self._datastore, session.id)
            raise PersistenceError(
                "Failed to save diagnostic answers", code="SAVE_ERROR"
            ) from exc

        try:
            topics = run_weakness_analysis(
                validated,
                exam_type=exam_type,
                generation_run=self._generation_run,
            )
        except Exception as exc:
            _logger.exception(
                "analysis_failed",
                extra={"event": "analysis_failed", "session_id": session.id},
            )
            abandon_quietly(self._datastore, session.id)
            raise ProcessingError() from exc

        try:
            self._datastore.complete_session(session.id, topics)
        except PersistenceError as exc:
            _logger.warning(
                "session_completion_failed",
                extra={
                    "event": "session_completion_failed",
                    "session_id": session.id,
                    "error": str(exc),
                },
            )

        _logger.info(
            "diagnostic_submitted",
            extra={
                "event": "diagnostic_submitted",
                "user_id": user_id,
                "exam_type": exam_type,
                "session_id": session.id,
                "answer_count": len(validated),
                "duration_ms": round((perf_counter() - started) * 1000, 2),
            },
        )
        return topics
