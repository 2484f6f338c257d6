"""Performance monitoring utilities for the pricing engines."""
import functools
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("doc-pricing.perf")


class PerformanceTracker:
    """
    Thread-safe in-memory tracker of engine call durations.

    Tracks, per operation name:
    - Number of calls
    - Cumulative and average duration
    - Slowest single call

    Only running aggregates are kept, so memory stays flat however often the
    engines run during live editing.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._calls: Dict[str, int] = {}
        self._total_duration_ms: Dict[str, float] = {}
        self._slowest_ms: Dict[str, float] = {}

    def record(self, operation: str, duration_ms: float) -> None:
        with self._lock:
            self._calls[operation] = self._calls.get(operation, 0) + 1
            self._total_duration_ms[operation] = self._total_duration_ms.get(operation, 0.0) + duration_ms
            if duration_ms > self._slowest_ms.get(operation, float("-inf")):
                self._slowest_ms[operation] = duration_ms

    def get_stats(self, operation: Optional[str] = None) -> Dict[str, Any]:
        """
        Return a snapshot of call statistics.

        With `operation`, only that operation's stats (empty dict if never called).
        """
        with self._lock:
            names = [operation] if operation else list(self._calls)
            stats: Dict[str, Any] = {}
            for name in names:
                calls = self._calls.get(name)
                if not calls:
                    continue
                total = self._total_duration_ms[name]
                stats[name] = {
                    "calls": calls,
                    "total_ms": round(total, 2),
                    "avg_ms": round(total / calls, 2),
                    "slowest_ms": round(self._slowest_ms[name], 2),
                }
            if operation:
                return stats.get(operation, {})
            return stats

    def reset(self) -> None:
        """Clear all recorded durations (tests, or periodic roll-over)."""
        with self._lock:
            self._calls.clear()
            self._total_duration_ms.clear()
            self._slowest_ms.clear()


tracker = PerformanceTracker()


def timed(func: Callable) -> Callable:
    """
    Decorator that measures execution time, logs it at DEBUG and records it
    in the module-level tracker under the function's qualified name.

    Usage::

        @timed
        def compute_totals(...):
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 3)
            tracker.record(func.__qualname__, duration_ms)
            logger.debug(
                "function timed",
                extra={
                    "function_name": func.__qualname__,
                    "duration_ms": duration_ms,
                },
            )
    return wrapper
