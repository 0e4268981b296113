"""RequestExecutor — turns the streaming chat UI into ask(prompt) -> answer.

Owns the exclusivity lock, the request counter that drives proactive
recycling, and the bounded retry loop. Every retry relaunches the browser:
a failed or abandoned attempt leaves the page in an unknown state.

    Idle -> [Recycling] -> Attempting -> Succeeded
                              |-> RetryableFailure -> relaunch -> Attempting
                              |-> LoginRequired (fatal, not retried)
                              '-> ExhaustedRetries (fatal for this request)
"""
import logging
import threading
import time

from .deadline import Deadline
from .errors import BusyError, ExhaustedRetriesError, LoginRequiredError
from .failure_bundle import BundleVerbosity, capture_failure_bundle, save_failure_bundle
from .health import HealthMonitor, outcome_for

log = logging.getLogger(__name__)


class RequestExecutor:
    """Serialized, retrying front door to the single browser page.

    Args:
        lifecycle: LifecycleManager (or anything with the same methods).
        detector: StabilityDetector.
        sync: SyncScheduler; None disables identity sync.
        identity_cache: invalidated when the identity turns out to be stale,
            so the next request reloads it from the store.
        max_retries: attempts per ask().
        attempt_timeout: per-attempt deadline in seconds.
        recycle_threshold: exchanges served before a proactive relaunch.
        event_logger: optional ExchangeEventLogger.
        failure_bundle_dir: where to save failure diagnostics ('' = off).
    """

    def __init__(
        self,
        lifecycle,
        detector,
        sync=None,
        *,
        identity_cache=None,
        max_retries: int = 5,
        attempt_timeout: float = 60.0,
        recycle_threshold: int = 20,
        health: HealthMonitor | None = None,
        event_logger=None,
        failure_bundle_dir: str = "",
        failure_bundle_verbosity: str = BundleVerbosity.STANDARD,
        clock=time.monotonic,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self._lifecycle = lifecycle
        self._detector = detector
        self._sync = sync
        self._identity_cache = identity_cache
        self._max_retries = max_retries
        self._attempt_timeout = attempt_timeout
        self._recycle_threshold = recycle_threshold
        self._health = health or HealthMonitor()
        self._events = event_logger
        self._bundle_dir = failure_bundle_dir
        self._bundle_verbosity = failure_bundle_verbosity
        self._clock = clock

        self._lock = threading.Lock()
        self._request_count = 0

    @property
    def request_count(self) -> int:
        """Exchanges served since the browser was last (re)launched."""
        return self._request_count

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def health(self) -> HealthMonitor:
        return self._health

    # ── Public API ──────────────────────────────────────────────────────────

    def ask(self, prompt: str) -> str:
        """Submit *prompt* and return the final answer text.

        Raises BusyError if another ask() is in flight, LoginRequiredError if
        the session identity is unusable, ExhaustedRetriesError if every
        attempt failed. The executor stays usable after any of them.
        """
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValueError("prompt must be a non-empty string")
        if not self._lock.acquire(blocking=False):
            raise BusyError("another request is in flight")
        try:
            return self._ask_locked(prompt)
        finally:
            self._lock.release()

    def refresh(self) -> None:
        """Force a full browser relaunch (and login check) now."""
        if not self._lock.acquire(blocking=False):
            raise BusyError("another request is in flight")
        try:
            self._relaunch("refresh")
        except LoginRequiredError:
            self._on_login_required()
            raise
        finally:
            self._lock.release()

    def close(self) -> None:
        self._lifecycle.close()

    # ── State machine ───────────────────────────────────────────────────────

    def _ask_locked(self, prompt: str) -> str:
        started = self._clock()
        if self._events:
            self._events.log_exchange_start(len(prompt), self._request_count)

        relaunch_reason = ""
        if self._request_count >= self._recycle_threshold:
            log.info("Maintenance restart after %d requests", self._request_count)
            relaunch_reason = "threshold"

        last_error: Exception | None = None
        for attempt in range(1, self._max_retries + 1):
            attempt_started = self._clock()
            try:
                if relaunch_reason:
                    self._relaunch(relaunch_reason)
                elif not self._lifecycle.is_ready():
                    self._relaunch("init")
                relaunch_reason = ""
                deadline = Deadline(self._attempt_timeout, clock=self._clock)
                answer = self._attempt(prompt, deadline)
            except LoginRequiredError:
                self._on_login_required()
                self._finish("login_required", attempt, 0, started)
                raise
            except Exception as e:
                last_error = e
                relaunch_reason = "retry"
                self._on_attempt_failed(attempt, e, len(prompt), attempt_started)
                continue

            self._request_count += 1
            self._health.record("ok")
            if self._sync is not None:
                pushed = self._sync.maybe_push(self._lifecycle.capture_cookies)
                if pushed and self._events:
                    self._events.log_sync(True)
            self._finish("ok", attempt, len(answer), started)
            return answer

        log.error("All %d attempts failed; last error: %s", self._max_retries, last_error)
        # Never hand a page from an abandoned attempt to the next request.
        self._lifecycle.close()
        self._finish("exhausted", self._max_retries, 0, started)
        raise ExhaustedRetriesError(self._max_retries, last_error) from last_error

    def _attempt(self, prompt: str, deadline: Deadline) -> str:
        self._lifecycle.open_entry(deadline)
        self._lifecycle.submit(prompt, deadline)
        return self._detector.wait(self._lifecycle.page, deadline)

    def _relaunch(self, reason: str) -> None:
        if self._events:
            self._events.log_recycle(reason, self._request_count)
        self._request_count = 0
        if reason == "init":
            self._lifecycle.init()
        else:
            self._lifecycle.recycle()

    # ── Outcome bookkeeping ─────────────────────────────────────────────────

    def _on_attempt_failed(self, attempt: int, error: Exception,
                           prompt_chars: int, attempt_started: float) -> None:
        elapsed = self._clock() - attempt_started
        self._health.record(outcome_for(error))
        log.warning(
            "Attempt %d/%d failed after %.1fs: %s: %s",
            attempt, self._max_retries, elapsed, type(error).__name__, error,
        )
        bundle_path = ""
        if self._bundle_dir and self._bundle_verbosity != BundleVerbosity.OFF:
            bundle = capture_failure_bundle(
                self._lifecycle.page, self._lifecycle.site, attempt, error,
                prompt_chars=prompt_chars,
                elapsed=elapsed,
                health_score=self._health.score,
                verbosity=self._bundle_verbosity,
                screenshot_dir=self._bundle_dir,
            )
            bundle_path = save_failure_bundle(bundle, self._bundle_dir)
        if self._events:
            self._events.log_attempt_failed(
                attempt, type(error).__name__, str(error)[:500], elapsed, bundle_path,
            )

    def _on_login_required(self) -> None:
        self._health.record("auth_expired")
        if self._identity_cache is not None:
            self._identity_cache.invalidate()

    def _finish(self, status: str, attempts: int, answer_chars: int, started: float) -> None:
        if self._events:
            self._events.log_exchange_end(
                status, attempts, answer_chars,
                self._clock() - started, self._health.score,
            )
