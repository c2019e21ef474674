"""Deterministic fingerprint of a user's error pattern on a topic."""

from __future__ import annotations

import hashlib
import json
from typing import Iterable, List, Tuple

from ..models.schemas import EvidenceItem

RATIONALE_PREFIX_LENGTH = 50


def _normalized_patterns(
    items: Iterable[Tuple[str, str]],
) -> List[Tuple[str, str]]:
    patterns = [
        ((rationale or "")[:RATIONALE_PREFIX_LENGTH], difficulty or "unknown")
        for rationale, difficulty in items
    ]
    # Sorting makes the digest independent of query order.
    return sorted(patterns)


def hash_patterns(items: Iterable[Tuple[str, str]]) -> str:
    """Hash ``(rationale_text, difficulty)`` pairs.

    Rationales are truncated so near-duplicate wording past the prefix maps to
    the same fingerprint.
    """
    patterns = _normalized_patterns(items)
    serialized = json.dumps(
        [{"rationale_type": r, "difficulty": d} for r, d in patterns],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def hash_evidence(evidence: Iterable[EvidenceItem]) -> str:
    return hash_patterns(
        (item.error_rationale, item.question_difficulty) for item in evidence
    )
