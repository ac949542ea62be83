"""Rate limiting: sliding window log with pluggable storage."""

import re
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class RateLimit:
    """Parsed rate limit: max_requests within window_seconds."""

    max_requests: int
    window_seconds: int


_PERIOD_SECONDS = {
    "s": 1,
    "sec": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "minute": 60,
    "minutes": 60,
    "hour": 3600,
    "hours": 3600,
    "day": 86400,
    "days": 86400,
}

_RATE_RE = re.compile(r"^\s*([^/]*?)\s*/\s*(.*?)\s*$")


def parse_rate_limit(value: str) -> RateLimit:
    """Parse a rate limit string like '10/min' into a RateLimit.

    Raises ValueError on invalid format.
    """
    match = _RATE_RE.match(value)
    if match is None:
        raise ValueError(f"Invalid rate limit format: '{value}'. Expected 'count/period'.")

    count_str, period = match.group(1), match.group(2).lower()
    try:
        count = int(count_str)
    except ValueError:
        raise ValueError(f"Invalid rate limit count: '{count_str}'") from None

    if count <= 0:
        raise ValueError(f"Rate limit count must be positive, got {count}")

    window = _PERIOD_SECONDS.get(period)
    if window is None:
        raise ValueError(
            f"Unknown rate limit period: '{period}'. "
            f"Valid periods: {', '.join(sorted(_PERIOD_SECONDS))}"
        )

    return RateLimit(max_requests=count, window_seconds=window)


@runtime_checkable
class RateLimitStore(Protocol):
    """Storage backend for rate limit counters. Must be thread-safe."""

    def hit(self, key: str, limit: RateLimit) -> tuple[bool, int, float]:
        """Record a hit for ``key``.

        Returns (allowed, remaining, retry_after_seconds). A rejected hit is
        not recorded.
        """
        ...

    def reset(self, key: str | None = None) -> None:
        """Reset state for one key, or for all keys when key is None."""
        ...


class InMemoryStore:
    """Thread-safe in-memory sliding window log.

    Per-process only: with several workers each one keeps its own counters.
    """

    def __init__(self, time_func: Callable[[], float] | None = None) -> None:
        self._time_func = time_func or time.monotonic
        self._logs: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, limit: RateLimit) -> tuple[bool, int, float]:
        now = self._time_func()
        cutoff = now - limit.window_seconds

        with self._lock:
            log = self._logs.setdefault(key, deque())
            while log and log[0] <= cutoff:
                log.popleft()

            if len(log) >= limit.max_requests:
                retry_after = log[0] + limit.window_seconds - now
                return False, 0, max(retry_after, 0.1)

            log.append(now)
            return True, limit.max_requests - len(log), 0.0

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._logs.clear()
            else:
                self._logs.pop(key, None)
