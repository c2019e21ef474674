"""Pydantic data models shared across the engine."""

from .schemas import (
    Answer,
    AnswerHistoryRecord,
    CachedModule,
    DiagnosticSession,
    EvidenceItem,
    LearningModule,
    PracticeAnswer,
    PracticeItem,
    PracticeSummary,
    QuestionOption,
    QuestionPoolEntry,
    Topic,
    WeaknessTopic,
)

__all__ = [
    "Answer",
    "AnswerHistoryRecord",
    "CachedModule",
    "DiagnosticSession",
    "EvidenceItem",
    "LearningModule",
    "PracticeAnswer",
    "PracticeItem",
    "PracticeSummary",
    "QuestionOption",
    "QuestionPoolEntry",
    "Topic",
    "WeaknessTopic",
]
