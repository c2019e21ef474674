"""Exponential backoff settings for boundary calls."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    initial_delay: float = 1.0
    exponential_base: float = 2.0
    max_delay: float = 30.0
    # Extra random delay of up to this fraction of the computed delay.
    jitter_factor: float = 0.0
    timeout_seconds: float = 30.0
    retry_on_status_codes: Tuple[int, ...] = (429, 500, 502, 503, 504)


def calculate_delay(
    attempt: int,
    config: RetryConfig,
    retry_after: Optional[float] = None,
) -> float:
    """Seconds to wait after the failed *attempt* (0-indexed).

    A server-supplied ``Retry-After`` wins over the computed backoff; both are
    capped at ``max_delay``.
    """
    if retry_after is not None and retry_after > 0:
        base_delay = retry_after
    else:
        base_delay = config.initial_delay * (config.exponential_base ** attempt)
    jitter = (
        random.uniform(0, config.jitter_factor * base_delay)
        if config.jitter_factor > 0
        else 0.0
    )
    return min(base_delay + jitter, config.max_delay)
