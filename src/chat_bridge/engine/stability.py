"""Detect when a streamed, DOM-rendered reply has finished.

The chat UI gives no completion signal; the only observable is the text of
the newest reply bubble. It is polled on a fixed interval until it stops
changing for several consecutive observations.
"""
import logging

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..site import ChatSite
from .deadline import Deadline
from .errors import NoResponseError, StabilityTimeoutError

log = logging.getLogger(__name__)

_LAST_REPLY_TEXT = """(selector) => {
    const nodes = document.querySelectorAll(selector);
    return nodes.length ? nodes[nodes.length - 1].innerText : '';
}"""


class StabilityDetector:
    """Bounded, interval-driven poll of the newest reply's text.

    Text is stable once the same non-empty, non-placeholder value has been
    observed on ``stable_polls`` consecutive polls.
    """

    def __init__(
        self,
        site: ChatSite,
        *,
        poll_interval: float = 0.5,
        max_polls: int = 200,
        stable_polls: int = 4,
        first_reply_timeout: float = 15.0,
    ):
        if stable_polls < 1:
            raise ValueError("stable_polls must be >= 1")
        self._site = site
        self._poll_ms = poll_interval * 1000
        self._max_polls = max_polls
        self._stable_polls = stable_polls
        self._first_reply_timeout_ms = first_reply_timeout * 1000

    def wait(self, page, deadline: Deadline) -> str:
        """Block until the reply is stable and return its text.

        Raises NoResponseError if no reply bubble appears, StabilityTimeoutError
        if the poll budget runs out, DeadlineExceededError if *deadline* does.
        """
        try:
            page.wait_for_selector(
                self._site.reply_selector, state="attached",
                timeout=deadline.timeout_ms(self._first_reply_timeout_ms),
            )
        except PlaywrightTimeoutError as e:
            deadline.check("first reply wait")
            raise NoResponseError("no response started") from e

        last_text = ""
        streak = 0
        for poll in range(self._max_polls):
            deadline.check("stability poll")
            text = self._read_last_reply(page)
            if not text or self._site.is_transient(text):
                streak = 0
            elif text == last_text:
                streak += 1
            else:
                streak = 1
            last_text = text

            if streak >= self._stable_polls:
                log.debug(f"Reply stable after {poll + 1} polls ({len(text)} chars)")
                return text
            page.wait_for_timeout(min(self._poll_ms, deadline.timeout_ms()))

        log.warning("Reply never stabilised within %d polls", self._max_polls)
        raise StabilityTimeoutError(
            f"reply still changing after {self._max_polls} polls",
            last_text=last_text,
        )

    def _read_last_reply(self, page) -> str:
        text = page.evaluate(_LAST_REPLY_TEXT, self._site.reply_selector)
        return (text or "").strip()
