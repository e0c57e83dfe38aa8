"""Per-username login brute-force protection.

State is in-memory and lost on restart. The limiter is an owned object passed to
the authentication layer, so tests and separate app instances get separate state.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

import config

logger = logging.getLogger("shortdrop.auth")


@dataclass
class LoginAttempt:
    failures: int
    reset_at: float


class LoginRateLimiter:
    """Counts failed logins per normalized username in a fixed window.

    Expired entries are only removed by sweep(), which the API runs on a timer.
    """

    def __init__(
        self,
        max_attempts: int = config.LOGIN_MAX_ATTEMPTS,
        window_seconds: float = config.LOGIN_WINDOW_SECONDS,
        cleanup_interval_seconds: float = config.LOGIN_CLEANUP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self.clock = clock
        self._attempts: dict[str, LoginAttempt] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    @staticmethod
    def _key(username: str) -> str:
        return (username or "").strip().lower()

    def is_locked(self, username: str) -> bool:
        """True while the username has reached the threshold inside an unexpired window."""
        now = self.clock()
        with self._lock:
            entry = self._attempts.get(self._key(username))
            if not entry or now > entry.reset_at:
                return False
            return entry.failures >= self.max_attempts

    def record_failure(self, username: str) -> bool:
        """Record a failed attempt. Returns True if the username is now locked out."""
        key = self._key(username)
        now = self.clock()
        with self._lock:
            entry = self._attempts.get(key)
            if not entry or now > entry.reset_at:
                self._attempts[key] = LoginAttempt(failures=1, reset_at=now + self.window_seconds)
                return False
            entry.failures += 1
            locked = entry.failures >= self.max_attempts
        if locked:
            logger.warning("Login locked for %r after %d failed attempts", key, entry.failures)
        return locked

    def clear_failures(self, username: str) -> None:
        with self._lock:
            self._attempts.pop(self._key(username), None)

    def sweep(self) -> int:
        """Delete every entry whose window has expired. Returns the number removed."""
        now = self.clock()
        with self._lock:
            self._last_sweep = now
            expired = [key for key, entry in self._attempts.items() if now > entry.reset_at]
            for key in expired:
                del self._attempts[key]
        if expired:
            logger.debug("Swept %d expired login attempt entries", len(expired))
        return len(expired)

    def sweep_if_due(self) -> int:
        """Run sweep() if at least cleanup_interval_seconds passed since the last one."""
        if self.clock() - self._last_sweep < self.cleanup_interval_seconds:
            return 0
        return self.sweep()

    def reset(self) -> None:
        with self._lock:
            self._attempts.clear()
            self._last_sweep = self.clock()

    def __len__(self) -> int:
        return len(self._attempts)
