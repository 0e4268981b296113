"""ChatController — the one object that owns all session-controller state.

Browser handle, identity cache, sync clock, request counter and health all
hang off an explicit instance instead of module globals, so independent
controllers can coexist (and be built against fakes under test).
"""
import logging
import time
import uuid

from .browser.lifecycle import LifecycleManager
from .config import ControllerConfig
from .engine.executor import RequestExecutor
from .engine.stability import StabilityDetector
from .session.identity import IdentityCache
from .session.store import store_from_config
from .session.sync import SyncScheduler
from .telemetry.logger import ExchangeEventLogger

log = logging.getLogger(__name__)


class ChatController:
    """Wires the session controller together from a ControllerConfig."""

    def __init__(self, config: ControllerConfig, *, store=None, playwright_factory=None):
        self.config = config
        self.store = store if store is not None else store_from_config(config)
        self.identity = IdentityCache(self.store)
        self.sync = SyncScheduler(self.identity, self.store, interval=config.sync_interval)

        lifecycle_kwargs = {}
        if playwright_factory is not None:
            lifecycle_kwargs["playwright_factory"] = playwright_factory
        self.lifecycle = LifecycleManager(
            config.site,
            self.identity,
            headless=config.headless,
            navigation_timeout=config.navigation_timeout,
            input_timeout=config.input_timeout,
            key_delay_ms=config.key_delay_ms,
            max_typed_chars=config.max_typed_chars,
            **lifecycle_kwargs,
        )
        self.detector = StabilityDetector(
            config.site,
            poll_interval=config.poll_interval,
            max_polls=config.max_polls,
            stable_polls=config.stable_polls,
            first_reply_timeout=config.first_reply_timeout,
        )

        self.events = None
        if config.event_log_dir:
            run_id = time.strftime("%Y%m%d_%H%M%S") + "_" + uuid.uuid4().hex[:6]
            self.events = ExchangeEventLogger(run_id, config.event_log_dir, site=config.site.name)

        self.executor = RequestExecutor(
            self.lifecycle,
            self.detector,
            self.sync,
            identity_cache=self.identity,
            max_retries=config.max_retries,
            attempt_timeout=config.attempt_timeout,
            recycle_threshold=config.recycle_threshold,
            event_logger=self.events,
            failure_bundle_dir=config.failure_bundle_dir,
            failure_bundle_verbosity=config.failure_bundle_verbosity,
        )

    def start(self) -> None:
        """Launch the browser and verify login (same as a refresh)."""
        self.executor.refresh()

    def ask(self, prompt: str) -> str:
        return self.executor.ask(prompt)

    def refresh(self) -> None:
        self.executor.refresh()

    @property
    def busy(self) -> bool:
        return self.executor.busy

    def status(self) -> dict:
        return {
            "ready": self.lifecycle.is_ready(),
            "busy": self.executor.busy,
            "request_count": self.executor.request_count,
            "identity_loaded": self.identity.cached is not None,
            "seconds_since_sync": round(self.sync.elapsed(), 1),
            "degraded": self.executor.health.degraded,
            "health": self.executor.health.stats,
        }

    def close(self) -> None:
        self.lifecycle.close()
        if self.events is not None:
            self.events.close()
        close_store = getattr(self.store, "close", None)
        if callable(close_store):
            close_store()
        log.info("Controller shut down")
