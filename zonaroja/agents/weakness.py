"""WeaknessAgent — ranks the three topics a student most needs to work on."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from ..errors import ValidationError
from ..models.schemas import Answer, WeaknessTopic
from ..util.jsonio import Malformed, ParseResult, Parsed, parse_generated_json

_logger = logging.getLogger("zonaroja.analysis")

TOPIC_COUNT = 3
STRENGTH_SUFFIX = "(Zona de Fortaleza)"

WEAKNESS_SYSTEM_PROMPT = """\
ROLE: Expert psychometrician and academic advisor specializing in Costa Rican
university admission tests.
TASK: Analyze the student's diagnostic answers and identify the 3 topics most
in need of improvement ("Zonas Rojas").
1. Rank topics first by the highest percentage of incorrect answers and, as a
   tie-breaker, by the more foundational skill.
2. If every answer is correct, do NOT return an empty list. Return the 3 topics
   of the hardest-rated questions answered correctly, framed as
   "Zonas de Fortaleza" (append "(Zona de Fortaleza)" to each title).
3. Each description is one encouraging sentence in natural Costa Rican Spanish.
Output ONLY a JSON array of exactly three objects, no markdown:
[
  {"title": "<topic name>", "description": "<one sentence>"},
  {"title": "<topic name>", "description": "<one sentence>"},
  {"title": "<topic name>", "description": "<one sentence>"}
]
"""

_GENERIC_TOPICS = (
    (
        "Razonamiento Lógico",
        "Fortalecer cómo aplicás reglas generales a problemas concretos "
        "tendrá un gran impacto en todo el examen.",
    ),
    (
        "Comprensión de Lectura",
        "Dominar la inferencia en textos densos es clave para la sección "
        "verbal del examen.",
    ),
    (
        "Resolución de Problemas Numéricos",
        "Practicar el planteamiento de problemas numéricos paso a paso te "
        "dará más seguridad y velocidad.",
    ),
)

_DIFFICULTY_RANK = {
    "dificil": 3,
    "difícil": 3,
    "hard": 3,
    "media": 2,
    "medio": 2,
    "medium": 2,
    "facil": 1,
    "fácil": 1,
    "easy": 1,
}


@dataclass
class TopicAggregate:
    name: str
    first_seen: int
    correct_count: int = 0
    total_count: int = 0
    hardest_correct: int = 0

    @property
    def incorrect_count(self) -> int:
        return self.total_count - self.correct_count

    @property
    def ratio(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.correct_count / self.total_count


def _difficulty_rank(value: Optional[str]) -> int:
    if not value:
        return 0
    return _DIFFICULTY_RANK.get(value.strip().lower(), 0)


def aggregate_by_topic(answers: Sequence[Answer]) -> List[TopicAggregate]:
    """Per-topic correct/total counts in first-appearance order.

    Answers without a topic name are skipped.
    """
    by_name: Dict[str, TopicAggregate] = {}
    for answer in answers:
        name = " ".join(answer.topic_name.split())
        if not name:
            continue
        agg = by_name.get(name)
        if agg is None:
            agg = TopicAggregate(name=name, first_seen=len(by_name))
            by_name[name] = agg
        agg.total_count += 1
        if answer.is_correct:
            agg.correct_count += 1
            agg.hardest_correct = max(
                agg.hardest_correct, _difficulty_rank(answer.difficulty)
            )
    return list(by_name.values())


def _weakness_description(agg: TopicAggregate) -> str:
    correct, total = agg.correct_count, agg.total_count
    if correct == 0:
        return (
            f"No acertaste ninguna de las {total} preguntas de este tema; "
            "reforzarlo tendrá un gran impacto en tu resultado."
        )
    if agg.ratio < 0.5:
        return (
            f"Acertaste {correct} de {total} preguntas; dominar este tema es "
            "una gran oportunidad de mejora."
        )
    if agg.ratio < 1.0:
        return (
            f"Vas por buen camino con {correct} de {total} aciertos; un poco "
            "más de práctica va a consolidar este tema."
        )
    return (
        f"Acertaste las {total} preguntas de este tema; repasarlo de vez en "
        "cuando mantiene fresca esta base."
    )


def _strength_description(agg: TopicAggregate) -> str:
    return (
        f"¡Excelente! Respondiste correctamente las {agg.total_count} preguntas "
        "de este tema. ¡Seguí así!"
    )


def emergency_topics() -> List[WeaknessTopic]:
    """Fixed generic topics used when no topic can be derived from answers."""
    return [
        WeaknessTopic(title=title, description=description)
        for title, description in _GENERIC_TOPICS
    ]


def _pad_topics(topics: List[WeaknessTopic]) -> List[WeaknessTopic]:
    used = {t.title for t in topics}
    for generic in emergency_topics():
        if len(topics) >= TOPIC_COUNT:
            break
        if generic.title in used:
            continue
        topics.append(generic)
        used.add(generic.title)
    return topics[:TOPIC_COUNT]


def fallback_weaknesses(answers: Sequence[Answer]) -> List[WeaknessTopic]:
    """Deterministic ranking used when the generator is unavailable or wrong.

    Topics are ordered by ascending correctness ratio; ties go to the topic
    with more incorrect answers, then to the one seen first. A perfect score
    is framed as strengths, hardest-rated topics first.
    """
    aggregates = aggregate_by_topic(answers)
    if not aggregates:
        return emergency_topics()

    if all(a.is_correct for a in answers):
        ranked = sorted(
            aggregates,
            key=lambda a: (-a.hardest_correct, -a.total_count, a.first_seen),
        )
        topics = [
            WeaknessTopic(
                title=f"{agg.name} {STRENGTH_SUFFIX}",
                description=_strength_description(agg),
            )
            for agg in ranked[:TOPIC_COUNT]
        ]
    else:
        ranked = sorted(
            aggregates,
            key=lambda a: (a.ratio, -a.incorrect_count, a.first_seen),
        )
        topics = [
            WeaknessTopic(title=agg.name, description=_weakness_description(agg))
            for agg in ranked[:TOPIC_COUNT]
        ]
    return _pad_topics(topics)


def parse_weakness_topics(raw: str) -> ParseResult[List[WeaknessTopic]]:
    """Strictly validate generator output: exactly three titled entries."""
    result = parse_generated_json(raw)
    if isinstance(result, Malformed):
        return result

    data = result.value
    snippet = raw[:200]
    if not isinstance(data, list):
        return Malformed(raw_text=snippet, reason="expected a JSON array")
    if len(data) != TOPIC_COUNT:
        return Malformed(
            raw_text=snippet,
            reason=f"expected {TOPIC_COUNT} topics, got {len(data)}",
        )

    topics: List[WeaknessTopic] = []
    for item in data:
        if not isinstance(item, dict):
            return Malformed(raw_text=snippet, reason="topic is not an object")
        title = item.get("title")
        description = item.get("description")
        if not isinstance(title, str) or not title.strip():
            return Malformed(raw_text=snippet, reason="missing title")
        if not isinstance(description, str) or not description.strip():
            return Malformed(raw_text=snippet, reason="missing description")
        topics.append(
            WeaknessTopic(title=title.strip(), description=description.strip())
        )
    return Parsed(topics)


def build_analysis_prompt(answers: Sequence[Answer], exam_type: str = "") -> str:
    payload = []
    for answer in answers:
        entry = {"topic": answer.topic_name, "isCorrect": answer.is_correct}
        if answer.difficulty:
            entry["difficulty"] = answer.difficulty
        payload.append(entry)
    exam_label = exam_type.upper() if exam_type else "admission"
    return (
        f"Exam: {exam_label}\n"
        f"Answers:\n{json.dumps(payload, indent=2, ensure_ascii=False)}"
    )


def run_weakness_analysis(
    answers: Sequence[Answer],
    exam_type: str = "",
    offline: bool = False,
    generation_run: Optional[Callable[..., str]] = None,
) -> List[WeaknessTopic]:
    """Return exactly three topics; generator failures never escape."""
    if not answers:
        raise ValidationError("At least one answer is required for analysis")

    if offline or generation_run is None:
        return fallback_weaknesses(answers)

    prompt = build_analysis_prompt(answers, exam_type)
    try:
        raw = generation_run("WeaknessAgent", WEAKNESS_SYSTEM_PROMPT, prompt)
    except Exception as exc:
        _logger.warning(
            "analysis_fallback_used",
            extra={
                "event": "analysis_fallback_used",
                "reason": "generation_failed",
                "error": str(exc)[:240],
                "answer_count": len(answers),
            },
        )
        return fallback_weaknesses(answers)

    result = parse_weakness_topics(raw)
    if isinstance(result, Parsed):
        return result.value

    _logger.warning(
        "analysis_fallback_used",
        extra={
            "event": "analysis_fallback_used",
            "reason": result.reason,
            "raw_preview": result.raw_text[:120],
            "answer_count": len(answers),
        },
    )
    return fallback_weaknesses(answers)
