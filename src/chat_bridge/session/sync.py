"""Time-gated, best-effort push of refreshed identity to the store."""
import logging
import time
from typing import Callable

from .identity import IdentityCache

log = logging.getLogger(__name__)


class SyncScheduler:
    """Pushes the live cookie set to the store at most once per interval.

    Runs inline after a successful exchange. A failed push is logged and
    left for the next eligible exchange; it never raises into the caller.
    """

    def __init__(self, cache: IdentityCache, store, *,
                 interval: float = 6 * 3600, clock: Callable[[], float] = time.time):
        self._cache = cache
        self._store = store
        self._interval = interval
        self._clock = clock
        self._last_push = clock()

    @property
    def last_push(self) -> float:
        return self._last_push

    def elapsed(self) -> float:
        return self._clock() - self._last_push

    def due(self) -> bool:
        return self.elapsed() >= self._interval

    def maybe_push(self, capture_cookies: Callable[[], list[dict]]) -> bool:
        """Push if the interval has elapsed. Returns True only on a successful push."""
        if not self.due():
            return False
        try:
            cookies = capture_cookies()
            if not cookies:
                log.warning("Sync skipped: live page has no cookies")
                return False
            identity = self._cache.update_cookies(cookies)
            if identity is None:
                log.warning("Sync skipped: no cached identity to update")
                return False
            if not self._store.save(identity):
                log.warning("Sync push rejected by store; will retry after next exchange")
                return False
        except Exception as e:
            log.warning("Sync push failed (%s); will retry after next exchange", e)
            return False
        self._last_push = self._clock()
        log.info("Identity synced (%d cookies)", len(identity.cookies))
        return True
