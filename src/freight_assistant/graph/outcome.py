"""
outcome.py
----------
Value-or-error wrapper for calls whose failure must not abort the conversation
(vector search, analytics store). Failures are captured here and discarded in
exactly one place, `unwrap_or`, which logs them.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def capture(awaitable: Awaitable[T]) -> Outcome[T]:
    """Await `awaitable` and fold any exception into an Outcome."""
    try:
        return Outcome(value=await awaitable)
    except Exception as exc:  # noqa: BLE001 - the caller decides what to do with it
        return Outcome(error=exc)


def unwrap_or(outcome: Outcome[T], default: T, event: str, **context: Any) -> T:
    """Return the value, or log the captured error under `event` and return `default`."""
    if outcome.ok:
        return outcome.value  # type: ignore[return-value]
    logger.warning(
        event,
        error=str(outcome.error),
        error_type=type(outcome.error).__name__,
        **context,
    )
    return default
