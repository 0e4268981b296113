"""Shared fakes — no real browser or network needed."""
from unittest.mock import MagicMock

import pytest

from chat_bridge.session.identity import Identity


def make_cookies(n: int) -> list[dict]:
    return [
        {"name": f"c{i}", "value": f"v{i}", "domain": ".chatgpt.com", "path": "/",
         "expires": -1, "httpOnly": True, "secure": True, "sameSite": "Lax",
         "size": 10, "session": True}
        for i in range(n)
    ]


class FakeStore:
    """In-memory SessionStore that counts calls."""

    def __init__(self, identity: Identity | None = None, save_ok: bool = True):
        self.identity = identity
        self.save_ok = save_ok
        self.loads = 0
        self.saved: list[dict] = []

    def load(self):
        self.loads += 1
        return self.identity

    def save(self, identity):
        self.saved.append(identity.to_dict())
        return self.save_ok


class FakeClock:
    def __init__(self, t: float = 1000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


def make_playwright(version: str = "131.0.6778.86"):
    """MagicMock Playwright driver whose page starts open."""
    pw = MagicMock(name="playwright")
    browser = pw.chromium.launch.return_value
    browser.version = version
    context = browser.new_context.return_value
    page = context.new_page.return_value
    page.is_closed.return_value = False
    return pw


@pytest.fixture
def clock():
    return FakeClock()
