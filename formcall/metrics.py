"""Pluggable retry metrics for construct calls."""

from __future__ import annotations

import logging
import threading
from typing import Any, List, Literal, NamedTuple, Optional

from typing_extensions import Protocol, runtime_checkable

from formcall.utils import _shape_name

logger = logging.getLogger("formcall")


@runtime_checkable
class RetryMetrics(Protocol):
    """Receives notifications about construction attempts.

    Implementations report to whatever monitoring system is in use. The
    constructor never looks at return values, and exceptions raised here are
    logged and dropped.
    """

    def on_attempt_start(self, shape: Any, attempt: int, max_attempts: int) -> None:
        """Called when an attempt (1-based) starts."""

    def on_attempt_success(self, shape: Any, attempt: int, max_attempts: int) -> None:
        """Called when an attempt produced a valid value."""

    def on_attempt_retry(
        self, shape: Any, attempt: int, max_attempts: int, error: Exception
    ) -> None:
        """Called when an attempt failed and another one will follow."""

    def on_final_failure(
        self, shape: Any, total_attempts: int, error: Exception
    ) -> None:
        """Called when every attempt failed."""


EventType = Literal["start", "success", "retry", "final_failure"]


class RetryEvent(NamedTuple):
    event: EventType
    shape_name: str
    attempt: int
    max_attempts: int
    error: Optional[Exception] = None


class RecordingRetryMetrics:
    """RetryMetrics implementation that keeps every event in memory.

    Thread-safe, so a single instance can be shared by concurrent construct
    calls.

    Examples:
        >>> metrics = RecordingRetryMetrics()
        >>> construct(Person, "Alice is 30", llm, metrics=metrics)  # doctest: +SKIP
        >>> metrics.count("retry")  # doctest: +SKIP
        0
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: List[RetryEvent] = []

    @property
    def events(self) -> List[RetryEvent]:
        with self._lock:
            return list(self._events)

    def count(self, event: EventType) -> int:
        return sum(1 for e in self.events if e.event == event)

    def _record(self, event: RetryEvent) -> None:
        with self._lock:
            self._events.append(event)

    def on_attempt_start(self, shape: Any, attempt: int, max_attempts: int) -> None:
        self._record(RetryEvent("start", _shape_name(shape), attempt, max_attempts))

    def on_attempt_success(self, shape: Any, attempt: int, max_attempts: int) -> None:
        self._record(RetryEvent("success", _shape_name(shape), attempt, max_attempts))

    def on_attempt_retry(
        self, shape: Any, attempt: int, max_attempts: int, error: Exception
    ) -> None:
        self._record(
            RetryEvent("retry", _shape_name(shape), attempt, max_attempts, error)
        )

    def on_final_failure(
        self, shape: Any, total_attempts: int, error: Exception
    ) -> None:
        self._record(
            RetryEvent(
                "final_failure", _shape_name(shape), total_attempts, total_attempts, error
            )
        )


def _notify(metrics: Optional[RetryMetrics], method: str, *args: Any) -> None:
    """Call a metrics hook, logging (never raising) its failures."""
    if metrics is None:
        return
    try:
        getattr(metrics, method)(*args)
    except Exception as e:
        logger.warning(f"Retry metrics {method} raised: {e!r}")
