from __future__ import annotations

import threading
import time
from typing import Callable


class RateLimiter:
    """
    Enforce a minimum delay between consecutive calls.

    Each fetcher gets its own instance so independent callers (and tests)
    never share timing state.
    """

    def __init__(
        self,
        min_interval: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must be non-negative.")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_call: float | None = None

    def wait(self) -> float:
        """Block until the next call is allowed; returns the time slept."""
        with self._lock:
            now = self._clock()
            delay = 0.0
            if self._last_call is not None:
                delay = max(0.0, self._last_call + self.min_interval - now)
            if delay:
                self._sleep(delay)
            self._last_call = now + delay
            return delay
