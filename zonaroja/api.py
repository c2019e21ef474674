"""HTTP API for the Zona Roja assessment engine."""

from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
import logging
from time import perf_counter
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, Security
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import Field

from . import __version__
from .config import Settings
from .errors import (
    EmptyPoolError,
    EngineError,
    RateLimitError,
    UnauthorizedError,
    ValidationError,
)
from .generation_client import GenerationRunner, get_generation_runner
from .models.schemas import CamelModel, PracticeAnswer
from .observability.logging_setup import configure_logging, request_scope
from .orchestration.datastore import Datastore, build_datastore
from .orchestration.learning import LearningModuleService
from .orchestration.practice import PracticeService
from .orchestration.rate_limit import (
    NoopRateLimiter,
    RateLimiter,
    SlidingWindowRateLimiter,
)
from .orchestration.submission import SubmissionOrchestrator
from .security.auth import TokenValidator, build_token_validator


@asynccontextmanager
async def _app_lifespan(_: FastAPI):
    configure_logging()
    logging.getLogger("zonaroja.api").info(
        "api_startup",
        extra={"event": "api_startup", "app_env": _settings().app_env},
    )
    yield


app = FastAPI(
    title="Zona Roja API",
    description="Adaptive diagnostics and practice for UCR/TEC admission exams",
    version=__version__,
    lifespan=_app_lifespan,
)

_bearer_scheme = HTTPBearer(auto_error=False)
_http_logger = logging.getLogger("zonaroja.http")


class DiagnosticRequest(CamelModel):
    exam_type: str = Field(..., min_length=1, max_length=20)
    # Answer entries are validated by the orchestrator so errors carry indexes.
    answers: List[Dict[str, Any]]


class PracticeSubmitRequest(CamelModel):
    topic_id: str = Field(..., min_length=1)
    answers: List[PracticeAnswer]


@lru_cache(maxsize=1)
def _settings() -> Settings:
    return Settings.from_env()


@lru_cache(maxsize=1)
def _datastore() -> Datastore:
    return build_datastore()


@lru_cache(maxsize=1)
def _generation_runner() -> Optional[GenerationRunner]:
    return get_generation_runner(timeout=_settings().generation_timeout_seconds)


@lru_cache(maxsize=1)
def _token_validator() -> Optional[TokenValidator]:
    return build_token_validator()


def _build_rate_limiter(max_requests: int) -> RateLimiter:
    if max_requests <= 0:
        return NoopRateLimiter()
    return SlidingWindowRateLimiter(
        max_requests=max_requests,
        window_seconds=_settings().rate_limit_window_seconds,
    )


@lru_cache(maxsize=1)
def _submission_rate_limiter() -> RateLimiter:
    return _build_rate_limiter(_settings().submission_rate_limit)


@lru_cache(maxsize=1)
def _generation_rate_limiter() -> RateLimiter:
    return _build_rate_limiter(_settings().generation_rate_limit)


def _current_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Security(_bearer_scheme),
) -> str:
    """Token subject when auth is enabled, else the gateway's ``X-User-Id``."""
    try:
        validator = _token_validator()
    except Exception as exc:
        raise HTTPException(
            status_code=503,
            detail=f"Authentication is misconfigured: {exc}",
        ) from exc

    if validator is not None:
        if creds is None or not creds.credentials:
            raise UnauthorizedError("Missing bearer token.")
        claims = validator.validate_token(creds.credentials)
        return claims["sub"].strip()

    user_id = (request.headers.get("x-user-id") or "").strip()
    if not user_id:
        raise UnauthorizedError("Missing user identity.")
    return user_id


# ── Error mapping ──────────────────────────────────────────────────
@app.exception_handler(EngineError)
async def _engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    body: Dict[str, Any] = {
        "error": str(exc) if exc.status_code < 500 else exc.public_message,
        "code": exc.code,
    }
    if isinstance(exc, ValidationError) and exc.details is not None:
        body["details"] = exc.details
    elif _settings().development:
        body["details"] = exc.details if exc.details is not None else str(exc)

    headers: Dict[str, str] = {}
    if isinstance(exc, RateLimitError):
        headers["Retry-After"] = str(exc.retry_after)
    if isinstance(exc, UnauthorizedError):
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request body",
            "code": "INVALID_REQUEST",
            "details": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
                for e in exc.errors()
            ],
        },
    )


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    body: Dict[str, Any] = {
        "error": "Failed to process request",
        "code": "PROCESSING_ERROR",
    }
    if _settings().development:
        body["details"] = str(exc)
    return JSONResponse(status_code=500, content=body)


@app.middleware("http")
async def _request_logging(
    request: Request, call_next: Callable[..., Any]
):
    request_id = request.headers.get("x-request-id") or uuid4().hex
    started = perf_counter()

    with request_scope(request_id):
        try:
            response = await call_next(request)
        except Exception:
            _http_logger.exception(
                "request_failed",
                extra={
                    "event": "request_failed",
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": 500,
                    "duration_ms": round((perf_counter() - started) * 1000, 2),
                },
            )
            raise

    response.headers["x-request-id"] = request_id
    _http_logger.info(
        "request_completed",
        extra={
            "event": "request_completed",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round((perf_counter() - started) * 1000, 2),
        },
    )
    return response


# ── Routes ─────────────────────────────────────────────────────────
@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


@app.post("/v1/diagnostic")
def submit_diagnostic(
    req: DiagnosticRequest,
    user_id: str = Depends(_current_user),
) -> dict:
    settings = _settings()
    orchestrator = SubmissionOrchestrator(
        datastore=_datastore(),
        rate_limiter=_submission_rate_limiter(),
        generation_run=_generation_runner(),
        max_answers=settings.max_answers_per_submission,
    )
    topics = orchestrator.submit(user_id, req.exam_type, req.answers)
    return {"weaknessTopics": [t.model_dump(by_alias=True) for t in topics]}


@app.get("/v1/learn/{topic_id}")
def get_learning_module(
    topic_id: str,
    user_id: str = Depends(_current_user),
) -> dict:
    runner = _generation_runner()
    service = LearningModuleService(
        datastore=_datastore(),
        rate_limiter=_generation_rate_limiter(),
        generation_run=runner,
        model_name=getattr(runner, "model", None),
    )
    outcome = service.load(user_id, topic_id)
    if outcome.no_errors:
        return {
            "error": "No errors found",
            "message": outcome.message,
            "code": "NO_ERRORS_FOUND",
        }
    return {
        "learningModule": outcome.module.model_dump(by_alias=True),
        "cached": outcome.cached,
    }


@app.get("/v1/practice/{topic_id}")
def get_practice(
    topic_id: str,
    user_id: str = Depends(_current_user),
) -> dict:
    service = PracticeService(_datastore(), limit=_settings().practice_set_size)
    try:
        items = service.fetch(user_id, topic_id)
    except EmptyPoolError as exc:
        return {"error": exc.public_message, "practiceQuestions": []}
    return {"practiceQuestions": [item.model_dump(by_alias=True) for item in items]}


@app.post("/v1/practice/{topic_id}")
def submit_practice(
    topic_id: str,
    req: PracticeSubmitRequest,
    user_id: str = Depends(_current_user),
) -> dict:
    if req.topic_id != topic_id:
        raise ValidationError(
            "Topic ID mismatch",
            details={"path": topic_id, "body": req.topic_id},
        )
    service = PracticeService(_datastore(), limit=_settings().practice_set_size)
    summary = service.record(user_id, topic_id, req.answers)
    return {
        "success": True,
        "message": "Practice results saved successfully",
        "summary": summary.model_dump(by_alias=True),
    }
