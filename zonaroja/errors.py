"""Error taxonomy shared by the engine and the HTTP boundary."""

from __future__ import annotations

from typing import Any, Optional


class EngineError(Exception):
    """Base class for errors that map to a stable client-facing code."""

    code = "PROCESSING_ERROR"
    status_code = 500
    public_message = "Failed to process request"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message or self.public_message)
        if code:
            self.code = code
        self.details = details


class ValidationError(EngineError):
    """Bad input shape or range. Never retried."""

    code = "INVALID_REQUEST"
    status_code = 400
    public_message = "Invalid request body"


class RateLimitError(EngineError):
    """Per-identity quota exceeded."""

    code = "RATE_LIMITED"
    status_code = 429
    public_message = "Rate limit exceeded. Please retry later."

    def __init__(self, retry_after: int, message: Optional[str] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class NotFoundError(EngineError):
    code = "NOT_FOUND"
    status_code = 404
    public_message = "Resource not found"


class EmptyPoolError(NotFoundError):
    """Raised when a topic has no practice questions at all."""

    code = "EMPTY_POOL"
    public_message = "No hay preguntas disponibles para este tema en este momento."


class PersistenceError(EngineError):
    code = "SAVE_ERROR"
    status_code = 500
    public_message = "Failed to save data"


class ProcessingError(EngineError):
    code = "PROCESSING_ERROR"
    status_code = 500
    public_message = "Failed to process diagnostic"


class UpstreamGenerationError(EngineError):
    """Text-generation failure. Absorbed by fallbacks, never surfaced."""

    code = "UPSTREAM_GENERATION_ERROR"
    status_code = 502
    public_message = "Text generation failed"


class UnauthorizedError(EngineError):
    code = "UNAUTHORIZED"
    status_code = 401
    public_message = "Unauthorized"
