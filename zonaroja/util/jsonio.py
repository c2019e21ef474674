"""JSON I/O helpers with defensive parsing."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


@dataclass(frozen=True)
class Parsed(Generic[T]):
    value: T


@dataclass(frozen=True)
class Malformed:
    raw_text: str
    reason: str


ParseResult = Union[Parsed[T], Malformed]


def load_json(path: Path) -> Any:
    """Load JSON from a file, returning an empty dict on missing/corrupt file."""
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}


def save_json(path: Path, data: Any) -> None:
    """Persist data as pretty-printed JSON, replacing the file atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(
        json.dumps(data, indent=2, ensure_ascii=False, default=str),
        encoding="utf-8",
    )
    tmp.replace(path)


def strip_code_fences(raw: str) -> str:
    return _CODE_FENCE.sub("", raw).strip()


def parse_generated_json(raw: Any) -> ParseResult[Any]:
    """Parse model output as JSON after stripping markdown fences.

    Falls back to the first ``[...]`` or ``{...}`` block when the model wraps
    the payload in prose.
    """
    if not isinstance(raw, str):
        return Malformed(raw_text=repr(raw)[:200], reason="non-text output")

    cleaned = strip_code_fences(raw)
    if not cleaned:
        return Malformed(raw_text=raw[:200], reason="empty output")
    try:
        return Parsed(json.loads(cleaned))
    except json.JSONDecodeError:
        pass

    for pattern in (r"\[[\s\S]*\]", r"\{[\s\S]*\}"):
        match = re.search(pattern, cleaned)
        if not match:
            continue
        try:
            return Parsed(json.loads(match.group()))
        except json.JSONDecodeError:
            continue
    return Malformed(raw_text=raw[:200], reason="invalid json")
