"""Fixed-window in-memory rate limiter."""
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    Allow at most max_requests per identifier within window_seconds.

    The window starts at an identifier's first request and resets once it
    has elapsed. State is process-local.
    """

    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def hit(self, identifier: str) -> bool:
        """Record a request; False if the identifier is over its budget."""
        now = self._clock()
        window = self._windows.get(identifier)
        if window is None or now > window.reset_at:
            self._windows[identifier] = _Window(count=1, reset_at=now + self.window_seconds)
            return True
        if window.count >= self.max_requests:
            return False
        window.count += 1
        return True

    def remaining(self, identifier: str) -> int:
        window = self._windows.get(identifier)
        if window is None or self._clock() > window.reset_at:
            return self.max_requests
        return max(0, self.max_requests - window.count)

    def reset_in(self, identifier: str) -> float:
        """Seconds until the identifier's window resets."""
        window = self._windows.get(identifier)
        if window is None:
            return self.window_seconds
        return max(0.0, window.reset_at - self._clock())

    def clear(self):
        self._windows.clear()
