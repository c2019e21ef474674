"""Text-generation client wrapper — isolates all OpenAI SDK calls.

Provides a callable runner ``(agent_name, system_prompt, user_prompt) -> str``
backed by OpenAI or Azure OpenAI. When no backend is configured the factory
returns ``None`` and callers use their deterministic offline paths.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Callable, Optional

from .errors import UpstreamGenerationError

_logger = logging.getLogger("zonaroja.generation")

GenerationRun = Callable[[str, str, str], str]


def _short_error(exc: Exception, max_len: int = 240) -> str:
    text = " ".join(str(exc).split())
    if len(text) <= max_len:
        return text
    return f"{text[: max_len - 3].rstrip()}..."


def _get_env(name: str) -> Optional[str]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _as_text(value: Any) -> str:
    """Best-effort extraction of text payloads across SDK response shapes."""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts = [_as_text(item) for item in value]
        return "\n".join([p for p in parts if p.strip()])
    if isinstance(value, dict):
        for key in ("output_text", "text", "content", "value"):
            v = value.get(key)
            if isinstance(v, (str, list, dict)):
                text = _as_text(v)
                if text.strip():
                    return text
        return ""
    for attr in ("output_text", "text", "content", "value"):
        v = getattr(value, attr, None)
        if isinstance(v, (str, list, dict)):
            text = _as_text(v)
            if text.strip():
                return text
    return ""


def _extract_response_text(response: Any) -> str:
    """Normalize chat completion output to plain text."""
    choices = getattr(response, "choices", None)
    if choices is None and isinstance(response, dict):
        choices = response.get("choices")
    if isinstance(choices, list) and choices:
        first = choices[0]
        message = (
            first.get("message") if isinstance(first, dict)
            else getattr(first, "message", None)
        )
        text = _as_text(message)
        if text.strip():
            return text
    return _as_text(response)


def _build_openai_client(timeout: float) -> Optional[Any]:
    api_key = _get_env("OPENAI_API_KEY")
    if not api_key:
        return None
    from openai import OpenAI

    return OpenAI(
        api_key=api_key,
        base_url=_get_env("OPENAI_BASE_URL"),
        timeout=timeout,
        max_retries=0,
    )


def _build_azure_openai_client(endpoint: str, timeout: float) -> Any:
    from openai import AzureOpenAI

    api_version = os.environ.get("AZURE_OPENAI_API_VERSION", "2024-10-21")
    api_key = _get_env("AZURE_OPENAI_API_KEY")
    if api_key:
        return AzureOpenAI(
            azure_endpoint=endpoint,
            api_key=api_key,
            api_version=api_version,
            timeout=timeout,
            max_retries=0,
        )

    from azure.identity import DefaultAzureCredential, get_bearer_token_provider

    token_provider = get_bearer_token_provider(
        DefaultAzureCredential(),
        "https://cognitiveservices.azure.com/.default",
    )
    return AzureOpenAI(
        azure_endpoint=endpoint,
        azure_ad_token_provider=token_provider,
        api_version=api_version,
        timeout=timeout,
        max_retries=0,
    )


@dataclass
class GenerationRunner:
    """Callable wrapper for single-turn chat completion requests."""

    client: Any
    model: str

    def __call__(self, agent_name: str, system_prompt: str, user_prompt: str) -> str:
        started = perf_counter()
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except Exception as exc:
            _logger.warning(
                "generation_call_failed",
                extra={
                    "event": "generation_call_failed",
                    "agent": agent_name,
                    "latency_ms": round((perf_counter() - started) * 1000, 2),
                    "error": _short_error(exc),
                },
            )
            raise UpstreamGenerationError(
                f"{agent_name} generation failed: {_short_error(exc)}"
            ) from exc

        text = _extract_response_text(response)
        _logger.info(
            "generation_call_completed",
            extra={
                "event": "generation_call_completed",
                "agent": agent_name,
                "latency_ms": round((perf_counter() - started) * 1000, 2),
                "output_chars": len(text),
            },
        )
        return text


def get_generation_runner(timeout: float = 30.0) -> Optional[GenerationRunner]:
    """Return a configured runner, or None when no backend is available.

    Azure OpenAI is preferred when ``AZURE_OPENAI_ENDPOINT`` is set; otherwise
    ``OPENAI_API_KEY`` selects the public OpenAI API.
    """
    endpoint = _get_env("AZURE_OPENAI_ENDPOINT")
    try:
        if endpoint:
            deployment = _get_env("AZURE_OPENAI_DEPLOYMENT")
            if not deployment:
                _logger.warning(
                    "generation_backend_misconfigured",
                    extra={
                        "event": "generation_backend_misconfigured",
                        "reason": "AZURE_OPENAI_DEPLOYMENT is not set",
                    },
                )
                return None
            return GenerationRunner(
                client=_build_azure_openai_client(endpoint, timeout),
                model=deployment,
            )

        client = _build_openai_client(timeout)
        if client is None:
            return None
        return GenerationRunner(
            client=client,
            model=_get_env("OPENAI_MODEL") or "gpt-4o-mini",
        )
    except Exception as exc:
        _logger.warning(
            "generation_backend_unavailable",
            extra={
                "event": "generation_backend_unavailable",
                "error": _short_error(exc),
            },
        )
        return None
