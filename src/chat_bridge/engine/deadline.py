"""Per-attempt deadline threaded through every suspendable browser call."""
import time

from .errors import DeadlineExceededError


class Deadline:
    """Wall-clock budget for one exchange attempt.

    Playwright's sync API cannot be raced from the outside, so instead of
    racing the automation against a timer each call takes its timeout from
    here, and poll loops call :meth:`check` between ticks.
    """

    def __init__(self, seconds: float, clock=time.monotonic):
        self._clock = clock
        self._seconds = seconds
        self._expires_at = clock() + seconds

    @property
    def seconds(self) -> float:
        return self._seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self._expires_at

    def timeout_ms(self, cap_ms: float | None = None) -> float:
        """Remaining budget in milliseconds, optionally capped. Never below 1."""
        remaining_ms = self.remaining() * 1000
        if cap_ms is not None:
            remaining_ms = min(remaining_ms, cap_ms)
        return max(1.0, remaining_ms)

    def check(self, stage: str = "") -> None:
        """Raise DeadlineExceededError if the budget is spent."""
        if self.expired:
            where = f" during {stage}" if stage else ""
            raise DeadlineExceededError(
                f"attempt deadline of {self._seconds:.0f}s exceeded{where}"
            )
