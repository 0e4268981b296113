"""Tests for RequestExecutor — exclusivity, recycling and the retry loop."""
import json
import os
import tempfile
import threading
from unittest.mock import MagicMock

import pytest
from playwright.sync_api import Error as PlaywrightError

from chat_bridge.engine.errors import (
    BusyError,
    ExhaustedRetriesError,
    LoginRequiredError,
    NavigationTimeoutError,
    NoResponseError,
)
from chat_bridge.engine.executor import RequestExecutor
from chat_bridge.site import CHATGPT


def _make(answer="Hello", **kwargs):
    lifecycle = MagicMock(name="lifecycle")
    lifecycle.is_ready.return_value = True
    lifecycle.site = CHATGPT
    lifecycle.page = None
    detector = MagicMock(name="detector")
    detector.wait.return_value = answer
    sync = MagicMock(name="sync")
    sync.maybe_push.return_value = False
    executor = RequestExecutor(lifecycle, detector, sync, **kwargs)
    return executor, lifecycle, detector, sync


def test_successful_exchange():
    executor, lifecycle, detector, sync = _make()
    assert executor.ask("hi") == "Hello"
    lifecycle.open_entry.assert_called_once()
    lifecycle.submit.assert_called_once()
    assert lifecycle.submit.call_args[0][0] == "hi"
    detector.wait.assert_called_once()
    assert executor.request_count == 1
    lifecycle.recycle.assert_not_called()
    sync.maybe_push.assert_called_once_with(lifecycle.capture_cookies)


def test_blank_prompt_rejected():
    executor, lifecycle, _, _ = _make()
    with pytest.raises(ValueError):
        executor.ask("   ")
    assert lifecycle.method_calls == []


def test_two_navigation_timeouts_then_success_reinits_twice():
    executor, lifecycle, _, _ = _make(max_retries=5)
    lifecycle.open_entry.side_effect = [
        NavigationTimeoutError("nav 1"),
        NavigationTimeoutError("nav 2"),
        None,
    ]
    assert executor.ask("hi") == "Hello"
    assert lifecycle.recycle.call_count == 2
    assert lifecycle.open_entry.call_count == 3
    assert executor.request_count == 1


def test_exhausted_retries_wrap_last_failure():
    executor, lifecycle, detector, sync = _make(max_retries=3)
    errors = [NoResponseError("a"), NoResponseError("b"), NoResponseError("c")]
    detector.wait.side_effect = errors
    with pytest.raises(ExhaustedRetriesError) as excinfo:
        executor.ask("hi")
    assert excinfo.value.attempts == 3
    assert excinfo.value.last_error is errors[-1]
    assert excinfo.value.__cause__ is errors[-1]
    # Relaunch between attempts only, then dispose the abandoned page.
    assert lifecycle.recycle.call_count == 2
    lifecycle.close.assert_called_once()
    sync.maybe_push.assert_not_called()
    assert executor.health.consecutive_failures == 3


def test_controller_usable_after_exhaustion():
    executor, _, detector, _ = _make(max_retries=2)
    detector.wait.side_effect = [NoResponseError("a"), NoResponseError("b"), "Recovered"]
    with pytest.raises(ExhaustedRetriesError):
        executor.ask("hi")
    assert executor.ask("again") == "Recovered"
    assert not executor.busy


def test_playwright_errors_are_retried():
    executor, lifecycle, _, _ = _make()
    lifecycle.submit.side_effect = [PlaywrightError("Target page has been closed"), None]
    assert executor.ask("hi") == "Hello"
    assert lifecycle.recycle.call_count == 1


def test_recycle_after_threshold():
    executor, lifecycle, _, _ = _make(recycle_threshold=20)
    counts_at_recycle = []
    lifecycle.recycle.side_effect = lambda: counts_at_recycle.append(executor.request_count)

    for _ in range(20):
        executor.ask("hi")
    assert executor.request_count == 20
    lifecycle.recycle.assert_not_called()

    executor.ask("hi")
    assert lifecycle.recycle.call_count == 1
    assert counts_at_recycle == [0]
    assert executor.request_count == 1


def test_recycle_happens_before_the_exchange():
    executor, lifecycle, _, _ = _make(recycle_threshold=1)
    executor.ask("one")
    lifecycle.reset_mock()
    executor.ask("two")
    names = [c[0] for c in lifecycle.method_calls]
    assert names.index("recycle") < names.index("open_entry")


def test_not_ready_initializes_instead_of_recycling():
    executor, lifecycle, _, _ = _make()
    lifecycle.is_ready.return_value = False
    executor.ask("hi")
    lifecycle.init.assert_called_once()
    lifecycle.recycle.assert_not_called()


def test_concurrent_ask_is_rejected_without_side_effects():
    executor, lifecycle, detector, _ = _make()
    entered = threading.Event()
    release = threading.Event()

    def slow_wait(page, deadline):
        entered.set()
        release.wait(5)
        return "first"

    detector.wait.side_effect = slow_wait
    results = []
    worker = threading.Thread(target=lambda: results.append(executor.ask("one")))
    worker.start()
    try:
        assert entered.wait(5)
        assert executor.busy
        calls_before = len(lifecycle.method_calls)
        with pytest.raises(BusyError):
            executor.ask("two")
        assert executor.request_count == 0
        assert len(lifecycle.method_calls) == calls_before
    finally:
        release.set()
        worker.join(5)
    assert results == ["first"]
    assert executor.request_count == 1
    assert not executor.busy


def test_login_required_is_fatal_and_invalidates_identity():
    cache = MagicMock()
    executor, lifecycle, detector, _ = _make(identity_cache=cache)
    lifecycle.is_ready.return_value = False
    lifecycle.init.side_effect = LoginRequiredError("stale session")
    with pytest.raises(LoginRequiredError):
        executor.ask("hi")
    lifecycle.init.assert_called_once()
    detector.wait.assert_not_called()
    cache.invalidate.assert_called_once()
    assert executor.health.auth_lost
    assert not executor.busy


def test_login_required_during_retry_relaunch_stops_retrying():
    executor, lifecycle, _, _ = _make(max_retries=5)
    lifecycle.open_entry.side_effect = NavigationTimeoutError("nav")
    lifecycle.recycle.side_effect = LoginRequiredError("logged out")
    with pytest.raises(LoginRequiredError):
        executor.ask("hi")
    assert lifecycle.open_entry.call_count == 1
    assert lifecycle.recycle.call_count == 1


def test_refresh_relaunches_and_resets_counter():
    executor, lifecycle, _, _ = _make()
    executor.ask("hi")
    executor.refresh()
    lifecycle.recycle.assert_called_once()
    assert executor.request_count == 0


def test_refresh_rejected_while_busy():
    executor, lifecycle, _, _ = _make()
    executor._lock.acquire()
    try:
        with pytest.raises(BusyError):
            executor.refresh()
    finally:
        executor._lock.release()
    lifecycle.recycle.assert_not_called()


def test_sync_only_after_success():
    executor, _, detector, sync = _make(max_retries=2)
    detector.wait.side_effect = [NoResponseError("x"), "ok"]
    executor.ask("hi")
    sync.maybe_push.assert_called_once()


def test_event_logger_records_exchange():
    events = MagicMock()
    executor, lifecycle, _, _ = _make(event_logger=events)
    lifecycle.open_entry.side_effect = [NavigationTimeoutError("nav"), None]
    executor.ask("hello")
    events.log_exchange_start.assert_called_once_with(5, 0)
    assert events.log_attempt_failed.call_args[0][:2] == (1, "NavigationTimeoutError")
    events.log_recycle.assert_called_once_with("retry", 0)
    assert events.log_exchange_end.call_args[0][:3] == ("ok", 2, 5)


def test_failure_bundles_saved_when_enabled():
    with tempfile.TemporaryDirectory() as tmpdir:
        executor, lifecycle, _, _ = _make(failure_bundle_dir=tmpdir)
        lifecycle.open_entry.side_effect = [NavigationTimeoutError("nav"), None]
        executor.ask("hi")
        site_dir = os.path.join(tmpdir, "chatgpt")
        files = os.listdir(site_dir)
        assert len(files) == 1
        with open(os.path.join(site_dir, files[0])) as f:
            bundle = json.load(f)
    assert bundle["reason"] == "NavigationTimeoutError"
    assert bundle["attempt"] == 1
    assert bundle["prompt_chars"] == 2


def test_max_retries_must_be_positive():
    with pytest.raises(ValueError):
        _make(max_retries=0)


def test_long_prompt_answered_through_real_components():
    from conftest import FakeClock, FakeStore, make_cookies, make_playwright

    from chat_bridge.browser.lifecycle import LifecycleManager
    from chat_bridge.engine.stability import StabilityDetector
    from chat_bridge.session.identity import Identity, IdentityCache

    clock = FakeClock()
    pw = make_playwright()
    page = pw.chromium.launch.return_value.new_context.return_value.new_page.return_value
    page.evaluate.side_effect = lambda script, *args: "Answer" if args else None

    def type_(text, delay=0):
        clock.t += len(text) * delay / 1000
    page.keyboard.type.side_effect = type_

    cache = IdentityCache(FakeStore(Identity(cookies=make_cookies(2))))
    lifecycle = LifecycleManager(
        CHATGPT, cache, settle_range=(0.001, 0.002),
        playwright_factory=MagicMock(return_value=pw),
    )
    detector = StabilityDetector(CHATGPT, poll_interval=0.001, stable_polls=2)
    executor = RequestExecutor(lifecycle, detector, attempt_timeout=60, clock=clock)

    assert executor.ask("x" * 7000) == "Answer"
    page.keyboard.insert_text.assert_called_once_with("x" * 7000)
    assert executor.health.stats["events"] == {"ok": 1}
