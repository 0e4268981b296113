"""Tests for LifecycleManager against a mocked Playwright driver."""
from unittest.mock import MagicMock

import pytest
from conftest import FakeClock, FakeStore, make_cookies, make_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from chat_bridge.browser.lifecycle import LifecycleManager
from chat_bridge.engine.deadline import Deadline
from chat_bridge.engine.errors import (
    InputNotFoundError,
    LoginRequiredError,
    NavigationTimeoutError,
    RetryableError,
)
from chat_bridge.session.identity import Identity, IdentityCache
from chat_bridge.site import CHATGPT


def _manager(identity=None, drivers=None, **kwargs):
    store = FakeStore(identity)
    drivers = drivers or [make_playwright()]
    factory = MagicMock(side_effect=drivers)
    manager = LifecycleManager(
        CHATGPT, IdentityCache(store), playwright_factory=factory,
        settle_range=(0.001, 0.002), **kwargs,
    )
    return manager, factory, store


def _page(pw):
    return pw.chromium.launch.return_value.new_context.return_value.new_page.return_value


def _context(pw):
    return pw.chromium.launch.return_value.new_context.return_value


def test_init_applies_every_stored_cookie():
    pw = make_playwright()
    manager, _, _ = _manager(Identity(cookies=make_cookies(5)), [pw])
    manager.init()
    applied = _context(pw).add_cookies.call_args[0][0]
    assert len(applied) == 5
    assert manager.is_ready()


def test_init_skips_unscoped_cookie_records():
    pw = make_playwright()
    cookies = make_cookies(3) + [{"name": "orphan", "value": "x"}]
    manager, _, _ = _manager(Identity(cookies=cookies), [pw])
    manager.init()
    applied = _context(pw).add_cookies.call_args[0][0]
    assert [c["name"] for c in applied] == ["c0", "c1", "c2"]


def test_init_launches_headless_with_container_args():
    pw = make_playwright()
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw])
    manager.init()
    kwargs = pw.chromium.launch.call_args.kwargs
    assert kwargs["headless"] is True
    assert "--disable-dev-shm-usage" in kwargs["args"]


def test_init_uses_identity_user_agent_and_stealth():
    pw = make_playwright()
    manager, _, _ = _manager(Identity(cookies=make_cookies(1), user_agent="Captured/1"), [pw])
    manager.init()
    assert pw.chromium.launch.return_value.new_context.call_args.kwargs["user_agent"] == "Captured/1"
    _context(pw).add_init_script.assert_called_once()
    _context(pw).route.assert_called_once()


def test_init_navigates_to_entry_url():
    pw = make_playwright()
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw])
    manager.init()
    assert _page(pw).goto.call_args[0][0] == CHATGPT.entry_url


def test_init_navigation_timeout_is_not_fatal():
    pw = make_playwright()
    _page(pw).goto.side_effect = PlaywrightTimeoutError("Timeout 60000ms exceeded")
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw])
    manager.init()
    assert manager.is_ready()


def test_init_restores_local_storage_and_reloads():
    pw = make_playwright()
    manager, _, _ = _manager(
        Identity(cookies=make_cookies(1), local_storage={"theme": "dark"}), [pw])
    manager.init()
    page = _page(pw)
    assert page.evaluate.call_args[0][1] == {"theme": "dark"}
    page.reload.assert_called_once()


def test_init_without_storage_does_not_reload():
    pw = make_playwright()
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw])
    manager.init()
    _page(pw).reload.assert_not_called()


def test_init_without_identity_requires_login():
    pw = make_playwright()
    manager, _, _ = _manager(None, [pw])
    with pytest.raises(LoginRequiredError):
        manager.init()
    assert not manager.is_ready()
    pw.stop.assert_called_once()


def test_init_missing_input_requires_login():
    pw = make_playwright()
    _page(pw).wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout")
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw])
    with pytest.raises(LoginRequiredError):
        manager.init()
    assert not manager.is_ready()
    pw.chromium.launch.return_value.close.assert_called_once()


def test_reinit_disposes_previous_handle():
    first, second = make_playwright(), make_playwright()
    manager, factory, _ = _manager(Identity(cookies=make_cookies(1)), [first, second])
    manager.init()
    manager.init()
    assert factory.call_count == 2
    first.stop.assert_called_once()
    second.stop.assert_not_called()
    assert manager.page is _page(second)


def test_recycle_reuses_cached_identity():
    manager, factory, store = _manager(
        Identity(cookies=make_cookies(2)), [make_playwright(), make_playwright()])
    manager.init()
    manager.recycle()
    assert factory.call_count == 2
    assert store.loads == 1


def test_close_then_not_ready():
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)))
    manager.init()
    manager.close()
    assert not manager.is_ready()
    assert manager.page is None


def test_close_without_handle_is_noop():
    manager, factory, _ = _manager()
    manager.close()
    assert not manager.is_ready()
    factory.assert_not_called()


def test_page_closed_out_of_band_is_not_ready():
    pw = make_playwright()
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw])
    manager.init()
    _page(pw).is_closed.return_value = True
    assert not manager.is_ready()


def test_open_entry_timeout_raises():
    pw = make_playwright()
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw])
    manager.init()
    _page(pw).goto.side_effect = PlaywrightTimeoutError("Timeout")
    with pytest.raises(NavigationTimeoutError):
        manager.open_entry(Deadline(60))


def test_open_entry_without_page():
    manager, _, _ = _manager()
    with pytest.raises(RetryableError):
        manager.open_entry(Deadline(60))


def test_submit_types_and_sends():
    pw = make_playwright()
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw])
    manager.init()
    manager.submit("hello there", Deadline(60))
    page = _page(pw)
    page.focus.assert_called_once()
    assert page.keyboard.type.call_args[0][0] == "hello there"
    page.keyboard.press.assert_called_once_with("Enter")


def test_submit_multiline_inserts_text():
    pw = make_playwright()
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw])
    manager.init()
    manager.submit("line one\nline two", Deadline(60))
    page = _page(pw)
    page.keyboard.insert_text.assert_called_once_with("line one\nline two")
    page.keyboard.type.assert_not_called()


def _typing_advances(clock):
    def type_(text, delay=0):
        clock.t += len(text) * delay / 1000
    return type_


def test_submit_long_prompt_is_inserted_within_deadline():
    clock = FakeClock()
    pw = make_playwright()
    page = _page(pw)
    page.keyboard.type.side_effect = _typing_advances(clock)
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw])
    manager.init()
    deadline = Deadline(60, clock=clock)
    manager.submit("x" * 7000, deadline)
    page.keyboard.insert_text.assert_called_once_with("x" * 7000)
    page.keyboard.type.assert_not_called()
    page.keyboard.press.assert_called_once_with("Enter")
    assert deadline.remaining() == 60


def test_submit_types_prompt_up_to_limit():
    pw = make_playwright()
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw], max_typed_chars=50)
    manager.init()
    manager.submit("y" * 50, Deadline(60))
    page = _page(pw)
    assert page.keyboard.type.call_args[0][0] == "y" * 50
    page.keyboard.insert_text.assert_not_called()


def test_submit_missing_input_is_retryable():
    pw = make_playwright()
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw])
    manager.init()
    _page(pw).wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout")
    with pytest.raises(InputNotFoundError):
        manager.submit("hi", Deadline(60))
    _page(pw).keyboard.press.assert_not_called()


def test_capture_cookies():
    pw = make_playwright()
    _context(pw).cookies.return_value = make_cookies(2)
    manager, _, _ = _manager(Identity(cookies=make_cookies(1)), [pw])
    assert manager.capture_cookies() == []
    manager.init()
    assert len(manager.capture_cookies()) == 2


def test_request_filter_blocks_heavy_resources():
    manager, _, _ = _manager()
    for resource_type, blocked in (("image", True), ("font", True), ("stylesheet", True),
                                   ("document", False), ("xhr", False), ("script", False)):
        route = MagicMock()
        route.request.resource_type = resource_type
        manager._filter_request(route)
        assert route.abort.called is blocked
        assert route.continue_.called is not blocked
