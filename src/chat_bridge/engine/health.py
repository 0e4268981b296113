"""Rolling-window health of the browser session.

Each attempt outcome is recorded; the score tells the front end (and
operators) whether the session is healthy, degraded or effectively dead,
e.g. after the identity expired.
"""
import collections
import threading
import time

from .errors import (
    DeadlineExceededError,
    InputNotFoundError,
    LoginRequiredError,
    NavigationTimeoutError,
    NoResponseError,
    StabilityTimeoutError,
)

# Outcome weights: success adds, failures subtract by severity
_WEIGHTS = {
    "ok": 1.0,
    "auth_expired": -1.0,
    "timeout": -0.3,
    "no_response": -0.4,
    "unstable": -0.2,
    "error": -0.5,
}


def outcome_for(exc: BaseException) -> str:
    """Map an attempt failure onto a health event name."""
    if isinstance(exc, LoginRequiredError):
        return "auth_expired"
    if isinstance(exc, (DeadlineExceededError, NavigationTimeoutError)):
        return "timeout"
    if isinstance(exc, (NoResponseError, InputNotFoundError)):
        return "no_response"
    if isinstance(exc, StabilityTimeoutError):
        return "unstable"
    return "error"


class HealthMonitor:
    """Recency-weighted score over the last *window* attempt outcomes.

    Written from the browser thread and read by the HTTP front end, so
    every read works on a snapshot taken under the lock.
    """

    def __init__(self, window: int = 20):
        self._events: collections.deque[tuple[float, str]] = collections.deque(maxlen=window)
        self._consecutive_failures = 0
        self._lock = threading.Lock()

    def record(self, event: str):
        """Record an outcome: ok, auth_expired, timeout, no_response, unstable, error."""
        with self._lock:
            self._events.append((time.monotonic(), event))
            self._consecutive_failures = 0 if event == "ok" else self._consecutive_failures + 1

    def _snapshot(self) -> tuple[list[str], int]:
        with self._lock:
            return [ev for _, ev in self._events], self._consecutive_failures

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def score(self) -> float:
        """0.0 (dead) to 1.0 (healthy); the newer half counts double."""
        events, _ = self._snapshot()
        return _score(events)

    @property
    def degraded(self) -> bool:
        return self.score < 0.6

    @property
    def auth_lost(self) -> bool:
        """True once the newest recorded outcome is auth_expired."""
        events, _ = self._snapshot()
        return bool(events) and events[-1] == "auth_expired"

    @property
    def stats(self) -> dict:
        events, consecutive = self._snapshot()
        counts: dict[str, int] = {}
        for ev in events:
            counts[ev] = counts.get(ev, 0) + 1
        return {
            "score": round(_score(events), 2),
            "events": counts,
            "total": len(events),
            "consecutive_failures": consecutive,
        }


def _score(events: list[str]) -> float:
    if not events:
        return 1.0

    midpoint = len(events) // 2
    total = 0.0
    possible = 0.0
    for i, event in enumerate(events):
        recency = 2.0 if i >= midpoint else 1.0
        total += _WEIGHTS.get(event, 0.0) * recency
        possible += recency

    # total ranges over [-possible, +possible]; map to [0, 1]
    return max(0.0, min(1.0, (total + possible) / (2 * possible)))
