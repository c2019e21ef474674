"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

EXAM_TYPES: Tuple[str, ...] = ("ucr", "tec")


def truthy(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return max(minimum, value)


def env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        return default
    return max(minimum, value)


@dataclass(frozen=True)
class Settings:
    app_env: str
    submission_rate_limit: int
    generation_rate_limit: int
    rate_limit_window_seconds: int
    max_answers_per_submission: int
    practice_set_size: int
    generation_timeout_seconds: float

    @property
    def development(self) -> bool:
        return self.app_env == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            app_env=os.environ.get("APP_ENV", "production").strip().lower(),
            submission_rate_limit=env_int("SUBMISSION_RATE_LIMIT_PER_HOUR", 10),
            generation_rate_limit=env_int("GENERATION_RATE_LIMIT_PER_HOUR", 30),
            rate_limit_window_seconds=env_int(
                "RATE_LIMIT_WINDOW_SECONDS", 3600, minimum=1
            ),
            max_answers_per_submission=env_int(
                "MAX_ANSWERS_PER_SUBMISSION", 50, minimum=1
            ),
            practice_set_size=env_int("PRACTICE_SET_SIZE", 5, minimum=1),
            generation_timeout_seconds=env_float(
                "GENERATION_TIMEOUT_SECONDS", 30.0, minimum=1.0
            ),
        )
