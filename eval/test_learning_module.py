"""Topic-visit flow: evidence, cache, generation and fallback."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from zonaroja.agents.tutor import offline_learning_module, parse_learning_module
from zonaroja.errors import NotFoundError, RateLimitError
from zonaroja.models.schemas import Answer
from zonaroja.orchestration.datastore import LocalDatastore
from zonaroja.orchestration.learning import LearningModuleService
from zonaroja.orchestration.rate_limit import SlidingWindowRateLimiter
from zonaroja.util.jsonio import Malformed, Parsed

_MODULE = {
    "title": "Secuencias Numéricas",
    "explanation": {
        "validation": "Te pasó con la razón de cambio, y es normal.",
        "analogy": "Es como subir gradas de distinto tamaño.",
        "core_concept": "Buscá cómo cambia la diferencia entre términos.",
    },
    "machote": {
        "title": "El Machote para Secuencias Numéricas",
        "steps": ["Paso 1: Restá términos.", "Paso 2: Buscá el patrón."],
        "common_mistakes": ["Asumir que la diferencia es constante."],
    },
}


class _CountingRunner:
    model = "fake-model"

    def __init__(self, output: str):
        self.output = output
        self.calls = []

    def __call__(self, agent_name, system_prompt, user_prompt):
        self.calls.append((agent_name, user_prompt))
        return self.output


def _wrong(store: LocalDatastore, qid: str, option: str) -> None:
    session = store.create_session("u1", "exam-ucr")
    store.insert_answers(
        session.id,
        "u1",
        [
            Answer(
                question_id=qid,
                selected_option_id=option,
                is_correct=False,
                response_time_ms=9000,
                topic_id="ucr-series",
                topic_name="Secuencias Numéricas",
            )
        ],
    )


def test_no_errors_returns_message_without_generation():
    runner = _CountingRunner(json.dumps(_MODULE))
    service = LearningModuleService(LocalDatastore(), generation_run=runner)

    outcome = service.load("u1", "ucr-series")

    assert outcome.no_errors
    assert "Secuencias Numéricas" in outcome.message
    assert runner.calls == []


def test_unknown_topic_is_not_found():
    with pytest.raises(NotFoundError) as excinfo:
        LearningModuleService(LocalDatastore()).load("u1", "nope")
    assert excinfo.value.code == "TOPIC_NOT_FOUND"


def test_generated_module_is_cached_until_evidence_changes():
    store = LocalDatastore()
    runner = _CountingRunner(json.dumps(_MODULE, ensure_ascii=False))
    service = LearningModuleService(
        store, generation_run=runner, model_name=runner.model
    )
    _wrong(store, "q-ser-1", "q-ser-1-a")

    first = service.load("u1", "ucr-series")
    second = service.load("u1", "ucr-series")

    assert first.module.title == "Secuencias Numéricas"
    assert not first.cached and second.cached
    assert second.module == first.module
    assert len(runner.calls) == 1
    record = store.get_learning_module("u1", "ucr-series")
    assert record.access_count == 2
    assert record.ai_model == "fake-model"
    assert record.evidence_count == 1

    _wrong(store, "q-ser-2", "q-ser-2-c")
    third = service.load("u1", "ucr-series")

    assert not third.cached
    assert len(runner.calls) == 2
    assert store.get_learning_module("u1", "ucr-series").evidence_count == 2


def test_prompt_carries_error_rationales():
    store = LocalDatastore()
    runner = _CountingRunner(json.dumps(_MODULE))
    _wrong(store, "q-ser-1", "q-ser-1-a")

    LearningModuleService(store, generation_run=runner).load("u1", "ucr-series")

    option = next(
        o
        for q in store.list_topic_questions("ucr-series")
        for o in q.options
        if o.id == "q-ser-1-a"
    )
    assert option.rationale in runner.calls[0][1]


def test_malformed_generation_serves_template_without_caching():
    store = LocalDatastore()
    runner = _CountingRunner("lo siento, no puedo")
    _wrong(store, "q-ser-1", "q-ser-1-a")

    outcome = LearningModuleService(store, generation_run=runner).load(
        "u1", "ucr-series"
    )

    assert outcome.module.machote.title == "El Machote para Secuencias Numéricas"
    assert store.get_learning_module("u1", "ucr-series") is None


def test_generation_quota_applies_only_to_cache_misses():
    store = LocalDatastore()
    runner = _CountingRunner(json.dumps(_MODULE))
    service = LearningModuleService(
        store,
        rate_limiter=SlidingWindowRateLimiter(1, 3600),
        generation_run=runner,
    )
    _wrong(store, "q-ser-1", "q-ser-1-a")

    service.load("u1", "ucr-series")
    assert service.load("u1", "ucr-series").cached

    _wrong(store, "q-ser-2", "q-ser-2-a")
    with pytest.raises(RateLimitError):
        service.load("u1", "ucr-series")


def test_template_modules_do_not_consume_generation_quota():
    store = LocalDatastore()
    limiter = SlidingWindowRateLimiter(1, 3600)
    service = LearningModuleService(store, rate_limiter=limiter)
    _wrong(store, "q-ser-1", "q-ser-1-a")

    for _ in range(3):
        outcome = service.load("u1", "ucr-series")
        assert outcome.module.machote.title == "El Machote para Secuencias Numéricas"

    assert limiter.check("generation:u1") is None

def test_offline_module_lists_unique_rationales():
    store = LocalDatastore()
    _wrong(store, "q-ser-1", "q-ser-1-a")
    _wrong(store, "q-ser-1", "q-ser-1-a")
    evidence = store.error_evidence("u1", "ucr-series")

    module = offline_learning_module(store.get_topic("ucr-series"), evidence)

    assert len(evidence) == 2
    assert module.machote.common_mistakes == [evidence[0].error_rationale]
    assert "2 preguntas" in module.explanation.validation


def test_parse_learning_module_accepts_camel_case_and_rejects_partial():
    camel = {
        "title": "X",
        "explanation": {"validation": "a", "analogy": "b", "coreConcept": "c"},
        "machote": {"title": "M", "steps": ["1"], "commonMistakes": []},
    }
    assert isinstance(parse_learning_module(json.dumps(camel)), Parsed)
    assert isinstance(parse_learning_module('{"title": "X"}'), Malformed)
