"""HTTP client for submitting diagnostic batches, with retries."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import httpx

from .util.retry import RetryConfig, calculate_delay

_logger = logging.getLogger("zonaroja.client")


class SubmissionError(Exception):
    """Raised when a submission cannot be completed.

    ``code`` is the server's error code when one was returned, otherwise
    ``NETWORK_ERROR`` or ``TIMEOUT``.
    """

    def __init__(
        self, message: str, code: str, status_code: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    raw = response.headers.get("Retry-After")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _error_from_response(response: httpx.Response) -> SubmissionError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    return SubmissionError(
        str(body.get("error") or f"HTTP {response.status_code}"),
        code=str(body.get("code") or "HTTP_ERROR"),
        status_code=response.status_code,
    )


class SubmissionClient:
    """Posts answer batches to ``/v1/diagnostic``.

    Timeouts, transport failures, 5xx and 429 responses are retried with
    exponential backoff; any other 4xx fails immediately.
    """

    def __init__(
        self,
        base_url: str,
        user_id: Optional[str] = None,
        token: Optional[str] = None,
        config: Optional[RetryConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config or RetryConfig()
        headers: Dict[str, str] = {"Accept": "application/json"}
        if user_id:
            headers["X-User-Id"] = user_id
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=self._config.timeout_seconds,
            transport=transport,
        )
        self._sleep = sleep

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "SubmissionClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def submit_diagnostic(
        self, exam_type: str, answers: Sequence[Mapping[str, Any]]
    ) -> List[Dict[str, str]]:
        """Return the ``weaknessTopics`` list from a successful submission."""
        payload = {"examType": exam_type, "answers": list(answers)}
        last_error: Optional[SubmissionError] = None

        for attempt in range(self._config.max_attempts):
            retry_after: Optional[float] = None
            try:
                response = self._http.post("/v1/diagnostic", json=payload)
            except httpx.TimeoutException as exc:
                last_error = SubmissionError(
                    "Request timed out. Please try again.", code="TIMEOUT"
                )
                reason = str(exc) or "timeout"
            except httpx.TransportError as exc:
                last_error = SubmissionError(
                    f"Network error: {exc}", code="NETWORK_ERROR"
                )
                reason = str(exc) or type(exc).__name__
            else:
                if response.is_success:
                    return response.json().get("weaknessTopics", [])
                last_error = _error_from_response(response)
                if response.status_code not in self._config.retry_on_status_codes:
                    raise last_error
                retry_after = _retry_after_seconds(response)
                reason = f"HTTP {response.status_code}"

            if attempt + 1 >= self._config.max_attempts:
                break
            delay = calculate_delay(attempt, self._config, retry_after)
            _logger.warning(
                "submission_retry_scheduled",
                extra={
                    "event": "submission_retry_scheduled",
                    "attempt": attempt + 1,
                    "delay_seconds": delay,
                    "reason": reason,
                },
            )
            self._sleep(delay)

        assert last_error is not None
        raise last_error
