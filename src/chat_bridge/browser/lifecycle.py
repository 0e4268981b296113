"""Lifecycle of the single automated browser and its one page.

One LifecycleManager owns one Playwright driver, one browser, one context
and one page. Everything runs on Playwright's sync API, so every method
must be called from the thread that called :meth:`init`.
"""
import logging
from typing import Any, Callable

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from ..engine.deadline import Deadline
from ..engine.errors import (
    InputNotFoundError,
    LoginRequiredError,
    NavigationTimeoutError,
    RetryableError,
)
from ..human import human_pause, human_type
from ..session.identity import IdentityCache
from ..site import ChatSite
from .cookies import apply_cookies
from .stealth import install_stealth
from .ua import resolve_user_agent

log = logging.getLogger(__name__)

# Container-friendly Chromium flags; /dev/shm is tiny in Docker.
DEFAULT_LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
    "--no-zygote",
    "--disable-blink-features=AutomationControlled",
)

# Never needed to read a text reply; skipping them keeps RAM and bandwidth down.
DEFAULT_BLOCKED_RESOURCES = frozenset({"image", "stylesheet", "font", "media", "other"})

_WRITE_LOCAL_STORAGE = """(items) => {
    for (const [key, value] of Object.entries(items)) {
        window.localStorage.setItem(key, value);
    }
}"""


def _start_playwright():
    return sync_playwright().start()


class LifecycleManager:
    """Launch, identity application, navigation, recycling and teardown."""

    def __init__(
        self,
        site: ChatSite,
        cache: IdentityCache,
        *,
        headless: bool = True,
        navigation_timeout: float = 60.0,
        input_timeout: float = 15.0,
        launch_args: tuple[str, ...] = DEFAULT_LAUNCH_ARGS,
        blocked_resources: frozenset[str] = DEFAULT_BLOCKED_RESOURCES,
        settle_range: tuple[float, float] = (0.3, 0.8),
        key_delay_ms: float = 10.0,
        max_typed_chars: int = 200,
        playwright_factory: Callable[[], Any] = _start_playwright,
    ):
        self._site = site
        self._cache = cache
        self._headless = headless
        self._navigation_timeout_ms = navigation_timeout * 1000
        self._input_timeout_ms = input_timeout * 1000
        self._launch_args = list(launch_args)
        self._blocked = blocked_resources
        self._settle_range = settle_range
        self._key_delay_ms = key_delay_ms
        self._max_typed_chars = max_typed_chars
        self._playwright_factory = playwright_factory

        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    @property
    def site(self) -> ChatSite:
        return self._site

    @property
    def page(self):
        return self._page

    def is_ready(self) -> bool:
        """True iff a page exists and was not closed out-of-band."""
        if self._page is None:
            return False
        try:
            return not self._page.is_closed()
        except PlaywrightError:
            return False

    # ── Launch / teardown ───────────────────────────────────────────────────

    def init(self) -> None:
        """(Re)launch the browser, apply identity and verify login.

        Raises LoginRequiredError if there is no usable identity or the
        input affordance is missing after navigation. On any failure the
        half-built handle is disposed before the error propagates.
        """
        if self._playwright is not None:
            self.close()
        try:
            self._launch()
        except BaseException:
            self.close()
            raise
        log.info("Browser ready")

    def _launch(self) -> None:
        log.info("Launching browser (headless=%s)", self._headless)
        self._playwright = self._playwright_factory()
        self._browser = self._playwright.chromium.launch(
            headless=self._headless,
            args=self._launch_args,
        )
        version = self._browser.version
        identity = self._cache.get()

        locale = self._site.locale
        self._context = self._browser.new_context(
            user_agent=resolve_user_agent(identity, version),
            locale=locale,
            viewport={"width": 1280, "height": 800},
        )
        install_stealth(self._context, version, languages=(locale, locale.split("-")[0]))
        self._context.route("**/*", self._filter_request)

        if identity is None:
            log.error("No session identity available. Run the login tool first.")
            raise LoginRequiredError("no session identity available; run the login tool")
        applied = apply_cookies(self._context, identity.cookies)
        log.info("Restored %d cookies", applied)

        self._page = self._context.new_page()
        log.info("Navigating to %s", self._site.name)
        self._goto(self._site.entry_url, self._navigation_timeout_ms, fatal=False)
        if identity.local_storage:
            self._restore_local_storage(identity.local_storage)

        try:
            self._page.wait_for_selector(
                self._site.input_selector, state="attached",
                timeout=self._input_timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            log.error("Not logged in: %r missing after navigation", self._site.input_selector)
            raise LoginRequiredError(
                f"{self._site.name} input not found after applying identity; "
                "session is stale or missing"
            ) from e

    def close(self) -> None:
        """Dispose the handle unconditionally. No-op if nothing is open."""
        context, browser, playwright = self._context, self._browser, self._playwright
        self._page = self._context = self._browser = self._playwright = None
        if context is not None:
            try:
                context.close()
            except Exception as e:
                log.debug(f"Context close failed: {e}")
        if browser is not None:
            try:
                browser.close()
            except Exception as e:
                log.debug(f"Browser close failed: {e}")
        if playwright is not None:
            try:
                playwright.stop()
            except Exception as e:
                log.debug(f"Playwright stop failed: {e}")
            log.info("Browser closed")

    def recycle(self) -> None:
        """Full close + init, re-applying the same cached identity."""
        log.info("Recycling browser")
        self.close()
        self.init()

    # ── Exchange steps ──────────────────────────────────────────────────────

    def open_entry(self, deadline: Deadline) -> None:
        """Navigate to a clean conversation, dropping any half-typed state."""
        self._require_page()
        deadline.check("navigation")
        self._goto(
            self._site.entry_url,
            deadline.timeout_ms(self._navigation_timeout_ms),
            fatal=True,
        )

    def submit(self, prompt: str, deadline: Deadline) -> None:
        """Wait for the input, settle briefly, type the prompt and send it."""
        page = self._require_page()
        selector = self._site.input_selector
        try:
            page.wait_for_selector(
                selector, state="visible",
                timeout=deadline.timeout_ms(self._input_timeout_ms),
            )
        except PlaywrightTimeoutError as e:
            deadline.check("input wait")
            raise InputNotFoundError(
                f"input {selector!r} not found; login or rendering problem"
            ) from e

        human_pause(page, *self._settle_range, cap_ms=deadline.timeout_ms())
        deadline.check("settle")
        page.focus(selector, timeout=deadline.timeout_ms())
        if "\n" in prompt or len(prompt) > self._max_typed_chars:
            # A typed newline presses Enter; per-key typing of long text outlasts the deadline.
            page.keyboard.insert_text(prompt)
        else:
            human_type(page, prompt, key_delay_ms=self._key_delay_ms)
        deadline.check("typing")
        page.keyboard.press("Enter")

    def capture_cookies(self) -> list[dict]:
        """Current cookie set of the live context (empty without a handle)."""
        if self._context is None:
            return []
        return self._context.cookies()

    # ── Internals ───────────────────────────────────────────────────────────

    def _require_page(self):
        if not self.is_ready():
            raise RetryableError("browser page is not open")
        return self._page

    def _goto(self, url: str, timeout_ms: float, *, fatal: bool) -> None:
        try:
            self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            if fatal:
                raise NavigationTimeoutError(f"navigation to {url} timed out") from e
            log.warning("Navigation timeout (continuing anyway)")

    def _restore_local_storage(self, items: dict[str, str]) -> None:
        try:
            self._page.evaluate(_WRITE_LOCAL_STORAGE, items)
            log.info("Restored %d localStorage entries; reloading", len(items))
            self._page.reload(
                wait_until="domcontentloaded",
                timeout=self._navigation_timeout_ms,
            )
        except PlaywrightTimeoutError:
            log.warning("Reload after localStorage restore timed out (continuing anyway)")
        except PlaywrightError as e:
            log.warning("localStorage restore failed: %s", e)

    def _filter_request(self, route) -> None:
        if route.request.resource_type in self._blocked:
            route.abort()
        else:
            route.continue_()
