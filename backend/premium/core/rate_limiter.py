"""In-memory sliding-window rate limiting for provider callbacks."""

import time
from collections import defaultdict, deque
from threading import Lock


class RateLimiter:
    """Allow at most ``max_requests`` per ``window_seconds`` for each key.

    Keys are client addresses. State lives in this process only, so each
    worker process limits independently.
    """

    def __init__(self, max_requests: int, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = Lock()

    def _prune(self, hits: deque[float], now: float) -> None:
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()

    def is_allowed(self, key: str) -> bool:
        now = time.monotonic()
        with self._lock:
            hits = self._hits[key]
            self._prune(hits, now)
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            return True

    def retry_after(self, key: str) -> int:
        """Seconds until ``key`` may send again; 0 if it may send now."""
        now = time.monotonic()
        with self._lock:
            hits = self._hits.get(key)
            if not hits:
                return 0
            self._prune(hits, now)
            if len(hits) < self.max_requests:
                return 0
            return max(1, int(hits[0] + self.window_seconds - now + 0.999))

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
