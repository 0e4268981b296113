"""ChatSite — the site-specific half of the controller.

Selectors, URLs and placeholder strings live here; the lifecycle, the
stability detector and the executor never hard-code them. Swapping the
target chat application means providing another ChatSite.
"""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ChatSite:
    """Everything the controller needs to know about one chat web app."""

    name: str
    entry_url: str             # fresh conversation page
    login_url: str             # page the login tool opens
    input_selector: str        # primary input affordance; absent => logged out
    reply_selector: str        # every assistant reply bubble
    transient_markers: tuple[str, ...] = field(default_factory=tuple)
    locale: str = "en-US"

    @property
    def origin(self) -> str:
        """Scheme + host of the entry URL, used to scope localStorage."""
        scheme, _, rest = self.entry_url.partition("://")
        return f"{scheme}://{rest.split('/', 1)[0].split('?', 1)[0]}"

    def is_transient(self, text: str) -> bool:
        """True if *text* is an in-progress placeholder rather than an answer."""
        stripped = text.strip()
        return any(stripped == marker for marker in self.transient_markers)


# Temporary chat keeps exchanges out of the account's history.
CHATGPT = ChatSite(
    name="chatgpt",
    entry_url="https://chatgpt.com/?temporary-chat=true",
    login_url="https://chatgpt.com/auth/login",
    input_selector="#prompt-textarea",
    reply_selector='div[data-message-author-role="assistant"]',
    transient_markers=("Thinking...",),
)
