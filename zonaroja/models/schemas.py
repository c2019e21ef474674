"""Pydantic schemas for answers, sessions, questions and generated content."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    field_validator,
)
from pydantic.alias_generators import to_camel

MAX_RESPONSE_TIME_MS = 300_000

SessionStatus = Literal["in_progress", "completed", "abandoned"]
SessionKind = Literal["diagnostic", "practice"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Accepts both camelCase wire names and snake_case attribute names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Answers ────────────────────────────────────────────────────────
class Answer(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    question_id: str = Field(..., min_length=1)
    selected_option_id: str = Field(..., min_length=1)
    is_correct: StrictBool
    response_time_ms: StrictInt = Field(..., ge=0, lt=MAX_RESPONSE_TIME_MS)
    topic_id: str = Field(..., min_length=1)
    topic_name: str = ""
    difficulty: Optional[str] = None

    @field_validator("question_id", "selected_option_id", "topic_id")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("identifier must not be blank")
        return value


class PracticeAnswer(CamelModel):
    question_id: str = Field(..., min_length=1)
    selected_option_id: str = Field(..., min_length=1)
    is_correct: StrictBool
    response_time_ms: StrictInt = Field(default=0, ge=0, lt=MAX_RESPONSE_TIME_MS)


# ── Diagnostic results ─────────────────────────────────────────────
class WeaknessTopic(CamelModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


class DiagnosticSession(CamelModel):
    id: str
    user_id: str
    exam_id: str
    kind: SessionKind = "diagnostic"
    status: SessionStatus = "in_progress"
    result_summary: Optional[List[WeaknessTopic]] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)


# ── Question catalog ───────────────────────────────────────────────
class QuestionOption(CamelModel):
    id: str
    text: str
    is_correct: bool = False
    rationale: Optional[str] = None


class QuestionPoolEntry(CamelModel):
    id: str
    text: str
    options: List[QuestionOption] = Field(default_factory=list)
    topic_id: str
    difficulty: Optional[str] = None


class Topic(CamelModel):
    id: str
    name: str
    exam_id: str
    exam_name: str = "Unknown Exam"


class AnswerHistoryRecord(CamelModel):
    user_id: str
    question_id: str
    is_correct: bool


# ── Practice ───────────────────────────────────────────────────────
class PracticeOption(CamelModel):
    id: str
    text: str


class PracticeItem(CamelModel):
    id: str
    text: str
    options: List[PracticeOption]
    correct_option_id: str
    rationale: str


class PracticeSummary(CamelModel):
    total_questions: int
    correct_answers: int
    score_percentage: int
    topic_id: str
    session_id: str


# ── Learning modules ───────────────────────────────────────────────
class EvidenceItem(CamelModel):
    """One wrong answer on a topic, as shown to the module generator."""

    question_text: str = "Unknown question"
    question_difficulty: str = "unknown"
    chosen_distractor_text: str = "Unknown option"
    error_rationale: str = "No rationale available"


class Explanation(CamelModel):
    validation: str = Field(..., min_length=1)
    analogy: str = Field(..., min_length=1)
    core_concept: str = Field(..., min_length=1)


class Machote(CamelModel):
    title: str = Field(..., min_length=1)
    steps: List[str] = Field(..., min_length=1)
    common_mistakes: List[str] = Field(default_factory=list)


class LearningModule(CamelModel):
    title: str = Field(..., min_length=1)
    explanation: Explanation
    machote: Machote


class CachedModule(CamelModel):
    user_id: str
    topic_id: str
    content: LearningModule
    evidence_hash: str
    evidence_count: int = Field(..., ge=0)
    access_count: int = Field(default=1, ge=0)
    last_accessed_at: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=utc_now)
    ai_model: Optional[str] = None
    generation_time_ms: Optional[int] = None
