"""Topic visit: error evidence -> fingerprint -> cache -> generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Callable, Optional

from ..agents.tutor import offline_learning_module, run_tutor
from ..errors import NotFoundError, RateLimitError
from ..models.schemas import LearningModule
from .cache import ContentCache, evidence_matches
from .datastore import Datastore
from .evidence import hash_evidence
from .rate_limit import NoopRateLimiter, RateLimiter

_logger = logging.getLogger("zonaroja.learning")


@dataclass(frozen=True)
class LearningOutcome:
    """Either a module to show, or a note that the user made no errors."""

    module: Optional[LearningModule]
    topic_name: str
    cached: bool = False

    @property
    def no_errors(self) -> bool:
        return self.module is None

    @property
    def message(self) -> str:
        return (
            f"¡Excelente! No tenés errores registrados en \"{self.topic_name}\". "
            "Tu dominio de este tema es sólido."
        )


class LearningModuleService:
    def __init__(
        self,
        datastore: Datastore,
        rate_limiter: Optional[RateLimiter] = None,
        generation_run: Optional[Callable[..., str]] = None,
        model_name: Optional[str] = None,
    ) -> None:
        self._datastore = datastore
        self._cache = ContentCache(datastore)
        self._rate_limiter = rate_limiter or NoopRateLimiter()
        self._generation_run = generation_run
        self._model_name = model_name

    def load(
        self, user_id: str, topic_id: str, student_name: str = "Estudiante"
    ) -> LearningOutcome:
        topic = self._datastore.get_topic(topic_id)
        if topic is None:
            raise NotFoundError(
                f"Could not find topic with ID: {topic_id}", code="TOPIC_NOT_FOUND"
            )

        evidence = self._datastore.error_evidence(user_id, topic_id)
        if not evidence:
            return LearningOutcome(module=None, topic_name=topic.name)

        evidence_hash = hash_evidence(evidence)
        cached = self._cache.get(user_id, topic_id, evidence_matches(evidence_hash))
        if cached is not None:
            _logger.info(
                "learning_module_cache_hit",
                extra={
                    "event": "learning_module_cache_hit",
                    "user_id": user_id,
                    "topic_id": topic_id,
                    "access_count": cached.access_count,
                },
            )
            return LearningOutcome(
                module=cached.content, topic_name=topic.name, cached=True
            )

        if self._generation_run is None:
            return LearningOutcome(
                module=offline_learning_module(topic, evidence), topic_name=topic.name
            )

        retry_after = self._rate_limiter.check(f"generation:{user_id}")
        if retry_after is not None:
            raise RateLimitError(retry_after)

        started = perf_counter()
        try:
            module = run_tutor(
                topic,
                evidence,
                generation_run=self._generation_run,
                student_name=student_name,
            )
        except Exception as exc:
            # Templated modules are not cached so the next visit retries generation.
            _logger.warning(
                "learning_module_fallback_used",
                extra={
                    "event": "learning_module_fallback_used",
                    "user_id": user_id,
                    "topic_id": topic_id,
                    "error": str(exc)[:240],
                },
            )
            return LearningOutcome(
                module=offline_learning_module(topic, evidence), topic_name=topic.name
            )

        generation_ms = int((perf_counter() - started) * 1000)
        self._cache.put(
            user_id,
            topic_id,
            module,
            evidence_hash=evidence_hash,
            evidence_count=len(evidence),
            ai_model=self._model_name,
            generation_time_ms=generation_ms,
        )
        _logger.info(
            "learning_module_generated",
            extra={
                "event": "learning_module_generated",
                "user_id": user_id,
                "topic_id": topic_id,
                "evidence_count": len(evidence),
                "generation_time_ms": generation_ms,
            },
        )
        return LearningOutcome(module=module, topic_name=topic.name)
