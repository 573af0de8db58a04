"""Shared service-layer helper functions."""

from __future__ import annotations

import time
from datetime import UTC, datetime


def now_iso() -> str:
    """Current UTC time as ISO 8601 (audit columns, run timestamps)."""
    return datetime.now(UTC).isoformat()


def elapsed_ms(started: float) -> float:
    """Milliseconds since *started* (a ``time.perf_counter()`` reading)."""
    return round((time.perf_counter() - started) * 1000, 2)


def pydantic_errors(exc_errors: list[dict[str, object]]) -> list[dict[str, str]]:
    """Flatten pydantic ``ValidationError.errors()`` into field/reason pairs.

    Examples:
        >>> pydantic_errors([{"loc": ("scope", "level"), "msg": "bad"}])
        [{'field': 'scope.level', 'reason': 'bad'}]
    """
    flat: list[dict[str, str]] = []
    for err in exc_errors:
        loc = err.get("loc") or ()
        field = ".".join(str(part) for part in loc) if isinstance(loc, tuple) else str(loc)
        flat.append({"field": field or "request", "reason": str(err.get("msg", ""))})
    return flat
