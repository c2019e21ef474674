"""Evidence-keyed learning-module cache.

Records live one per ``(user, topic)`` and are overwritten whenever the user's
error evidence changes. Validity is decided by a caller-supplied predicate,
never by age.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..errors import PersistenceError
from ..models.schemas import CachedModule, LearningModule, utc_now
from .datastore import Datastore

_logger = logging.getLogger("zonaroja.cache")

ValidityPredicate = Callable[[CachedModule], bool]


def evidence_matches(evidence_hash: str) -> ValidityPredicate:
    def _predicate(record: CachedModule) -> bool:
        return record.evidence_hash == evidence_hash

    return _predicate


class ContentCache:
    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore

    def get(
        self, user_id: str, topic_id: str, is_valid: ValidityPredicate
    ) -> Optional[CachedModule]:
        """Return the record on a valid hit, bumping its access tracking.

        Read failures count as a miss; a failed access update still serves the
        stored content.
        """
        try:
            record = self._datastore.get_learning_module(user_id, topic_id)
        except PersistenceError as exc:
            _logger.warning(
                "cache_read_failed",
                extra={
                    "event": "cache_read_failed",
                    "user_id": user_id,
                    "topic_id": topic_id,
                    "error": str(exc),
                },
            )
            return None

        if record is None or not is_valid(record):
            return None

        try:
            touched = self._datastore.touch_learning_module(user_id, topic_id)
        except PersistenceError as exc:
            _logger.warning(
                "cache_touch_failed",
                extra={
                    "event": "cache_touch_failed",
                    "user_id": user_id,
                    "topic_id": topic_id,
                    "error": str(exc),
                },
            )
            touched = None
        return touched or record

    def put(
        self,
        user_id: str,
        topic_id: str,
        content: LearningModule,
        evidence_hash: str,
        evidence_count: int,
        ai_model: Optional[str] = None,
        generation_time_ms: Optional[int] = None,
    ) -> Optional[CachedModule]:
        """Upsert a fresh record; returns None (after logging) if the write fails."""
        now = utc_now()
        record = CachedModule(
            user_id=user_id,
            topic_id=topic_id,
            content=content,
            evidence_hash=evidence_hash,
            evidence_count=evidence_count,
            access_count=1,
            last_accessed_at=now,
            created_at=now,
            ai_model=ai_model,
            generation_time_ms=generation_time_ms,
        )
        try:
            self._datastore.upsert_learning_module(record)
        except PersistenceError as exc:
            _logger.error(
                "cache_write_failed",
                extra={
                    "event": "cache_write_failed",
                    "user_id": user_id,
                    "topic_id": topic_id,
                    "error": str(exc),
                },
            )
            return None
        return record
