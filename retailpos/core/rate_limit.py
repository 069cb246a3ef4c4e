import time
from collections import deque
from threading import Lock
from typing import Callable


class LoginThrottle:
    """Locks a ``username:client_ip`` key after too many failed logins inside a window.

    State lives in process memory, so each worker keeps its own counters.
    """

    def __init__(
        self,
        *,
        max_attempts: int,
        window_seconds: int,
        lock_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.lock_seconds = lock_seconds
        self._clock = clock
        self._failures: dict[str, deque[float]] = {}
        self._locked_until: dict[str, float] = {}
        self._lock = Lock()

    def retry_after(self, key: str) -> int:
        """Seconds until ``key`` may try again, 0 when it is not locked."""
        now = self._clock()
        with self._lock:
            until = self._locked_until.get(key)
            if until is None:
                return 0
            if until <= now:
                del self._locked_until[key]
                return 0
            return int(until - now) + 1

    def record_failure(self, key: str) -> bool:
        """Count one failed attempt. Returns True when it locks the key."""
        now = self._clock()
        with self._lock:
            failures = self._failures.setdefault(key, deque())
            failures.append(now)
            while failures and failures[0] < now - self.window_seconds:
                failures.popleft()
            if len(failures) < self.max_attempts:
                return False
            failures.clear()
            self._locked_until[key] = now + self.lock_seconds
            return True

    def reset(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)
            self._locked_until.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._failures.clear()
            self._locked_until.clear()
