"""TutorAgent — generates a personalized learning module for one weak topic."""

from __future__ import annotations

import json
from typing import Callable, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from ..errors import UpstreamGenerationError
from ..models.schemas import EvidenceItem, LearningModule, Topic
from ..util.jsonio import Malformed, ParseResult, Parsed, parse_generated_json


TUTOR_SYSTEM_PROMPT = """\
ROLE: You are TutorCognitivo, an expert academic coach: a helpful, smart,
slightly older friend. Natural, direct and encouraging tone, addressing a
17-year-old respectfully but casually. Avoid clichés.
TASK: Using the student's "cognitive dossier", write a hyper-personalized
study micro-dose. The explanation and the machote MUST directly address the
error rationales in the evidence; start by fixing the specific
misunderstanding. The entire output must be natural Costa Rican Spanish.
Output ONLY a single JSON object with EXACTLY this structure, no markdown:
{
  "title": "<topic title>",
  "explanation": {
    "validation": "<sentence validating the difficulty>",
    "analogy": "<simple relatable analogy>",
    "core_concept": "<clear explanation of the core concept>"
  },
  "machote": {
    "title": "El Machote para <topic>",
    "steps": ["Paso 1: ...", "Paso 2: ...", "Paso 3: ..."],
    "common_mistakes": ["<most common mistake>"]
  }
}
"""


def parse_learning_module(raw: str) -> ParseResult[LearningModule]:
    result = parse_generated_json(raw)
    if isinstance(result, Malformed):
        return result
    if not isinstance(result.value, dict):
        return Malformed(raw_text=raw[:200], reason="expected a JSON object")
    try:
        return Parsed(LearningModule.model_validate(result.value))
    except PydanticValidationError as exc:
        return Malformed(
            raw_text=raw[:200],
            reason=f"schema mismatch ({exc.error_count()} errors)",
        )


def offline_learning_module(
    topic: Topic, evidence: Sequence[EvidenceItem]
) -> LearningModule:
    """Deterministic templated module built from the error rationales."""
    rationales: List[str] = []
    for item in evidence:
        text = " ".join(item.error_rationale.split())
        if text and text not in rationales:
            rationales.append(text)
    mistakes = rationales[:3] or [
        "Responder rápido sin revisar qué pide exactamente la pregunta."
    ]
    count = len(evidence)
    return LearningModule.model_validate(
        {
            "title": topic.name,
            "explanation": {
                "validation": (
                    f"Fallaste {count} pregunta{'s' if count != 1 else ''} de "
                    f"{topic.name}, y es totalmente normal: este tema confunde "
                    "a mucha gente al principio."
                ),
                "analogy": (
                    "Pensalo como aprender una ruta nueva: las primeras veces "
                    "te perdés en los mismos cruces, pero una vez que los "
                    "identificás ya no se te olvidan."
                ),
                "core_concept": (
                    f"Antes de responder una pregunta de {topic.name}, "
                    "identificá qué regla aplica y verificá que tu respuesta "
                    "la cumpla en todos los casos."
                ),
            },
            "machote": {
                "title": f"El Machote para {topic.name}",
                "steps": [
                    "Paso 1: Leé la pregunta completa y subrayá qué te piden.",
                    "Paso 2: Identificá la regla o concepto que aplica.",
                    "Paso 3: Descartá opciones que contradicen esa regla antes de elegir.",
                ],
                "common_mistakes": mistakes,
            },
        }
    )


def build_tutor_prompt(
    topic: Topic, evidence: Sequence[EvidenceItem], student_name: str = "Estudiante"
) -> str:
    dossier = [item.model_dump() for item in evidence]
    return (
        f"Student name: {student_name}\n"
        f"Exam context: {topic.exam_name}\n"
        f"Zona Roja (topic): {topic.name}\n"
        "Evidence of misunderstanding:\n"
        f"{json.dumps(dossier, indent=2, ensure_ascii=False)}"
    )


def run_tutor(
    topic: Topic,
    evidence: Sequence[EvidenceItem],
    offline: bool = False,
    generation_run: Optional[Callable[..., str]] = None,
    student_name: str = "Estudiante",
) -> LearningModule:
    """Generate a module online; raises ``UpstreamGenerationError`` on bad output."""
    if offline or generation_run is None:
        return offline_learning_module(topic, evidence)

    prompt = build_tutor_prompt(topic, evidence, student_name)
    raw = generation_run("TutorAgent", TUTOR_SYSTEM_PROMPT, prompt)
    result = parse_learning_module(raw)
    if isinstance(result, Malformed):
        raise UpstreamGenerationError(
            f"TutorAgent returned malformed output: {result.reason}"
        )
    return result.value
