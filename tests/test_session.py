"""Tests for SessionCoordinator with faked probe, launcher and connector."""
import json
import os
from unittest.mock import MagicMock

import pytest

from browser_pilot.browser.ledger import OwnershipLedger
from browser_pilot.browser.session import BrowserSession, SessionCoordinator
from browser_pilot.config import PilotConfig
from browser_pilot.engine.errors import (
    DiscoveryFailure,
    LaunchTimeout,
    LifecycleSignal,
    PageNotInteractive,
)
from browser_pilot.telemetry.logger import LifecycleEventLogger


class FakeProc:
    def __init__(self, pid=4242, returncode=None):
        self.pid = pid
        self.returncode = returncode

    def poll(self):
        return self.returncode


class ScriptedProbe:
    """Returns the scripted results in order, repeating the last one."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    def __call__(self, endpoint, timeout=1.0):
        self.calls += 1
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


def _make_browser(has_context=True):
    page = MagicMock()
    page.evaluate.return_value = "complete"
    context = MagicMock()
    context.pages = [page]
    browser = MagicMock()
    browser.contexts = [context] if has_context else []
    browser.new_context.return_value = context
    return browser, context, page


def _make_coordinator(workdir, probe_fn, *, browser=None, proc=None, **overrides):
    config = PilotConfig(workdir=str(workdir), chrome_path=None,
                         ready_attempts=4, page_ready_attempts=3, **overrides)
    connector = MagicMock()
    connector.connect.return_value = browser if browser is not None else _make_browser()[0]
    launcher = MagicMock(return_value=proc or FakeProc())
    finder = MagicMock(return_value="/usr/bin/google-chrome")
    sleeps = []
    coordinator = SessionCoordinator(
        config,
        connector=connector,
        probe_fn=probe_fn,
        finder=finder,
        launcher=launcher,
        sleep=sleeps.append,
    )
    return coordinator, launcher, connector, sleeps


def test_reuse_existing_browser(tmp_path):
    """Endpoint already ready: no launch, no ledger entry."""
    browser, _context, page = _make_browser()
    probe = ScriptedProbe(True)
    coordinator, launcher, connector, _ = _make_coordinator(tmp_path, probe, browser=browser)

    got_browser, got_page = coordinator.acquire()

    assert got_browser is browser
    assert got_page is page
    launcher.assert_not_called()
    assert not os.path.exists(coordinator.config.ledger_path)
    assert coordinator.session.started_here is False
    assert coordinator.session.process is None
    connector.connect.assert_called_once_with(coordinator.config.endpoint)


def test_acquire_is_memoized(tmp_path):
    probe = ScriptedProbe(True)
    coordinator, _launcher, connector, _ = _make_coordinator(tmp_path, probe)

    first = coordinator.acquire()
    second = coordinator.acquire()

    assert first == second
    assert probe.calls == 1
    assert connector.connect.call_count == 1


def test_launch_when_not_ready(tmp_path):
    """Exactly one launch; ledger written before the readiness wait."""
    ledger_path = str(tmp_path / ".chrome-pid")
    ledger_seen_during_wait = []

    class Probe(ScriptedProbe):
        def __call__(self, endpoint, timeout=1.0):
            if self.calls >= 1:
                ledger_seen_during_wait.append(os.path.exists(ledger_path))
            return super().__call__(endpoint, timeout)

    probe = Probe(False, False, True)
    coordinator, launcher, _connector, sleeps = _make_coordinator(
        tmp_path, probe, proc=FakeProc(pid=5151),
    )

    coordinator.acquire()

    launcher.assert_called_once()
    args, kwargs = launcher.call_args
    assert args == ("/usr/bin/google-chrome", coordinator.config.profile_dir, coordinator.config.cdp_port)
    assert kwargs["window_position"] == "-9999,-9999"
    assert ledger_seen_during_wait and all(ledger_seen_during_wait)
    with open(ledger_path) as f:
        assert json.load(f)["pid"] == 5151
    assert coordinator.session.started_here is True
    assert coordinator.session.process.pid == 5151
    assert sleeps.count(coordinator.config.ready_interval) == 1


def test_launch_timeout_leaves_ledger(tmp_path):
    probe = ScriptedProbe(False)
    coordinator, launcher, connector, sleeps = _make_coordinator(tmp_path, probe)

    with pytest.raises(LaunchTimeout) as exc:
        coordinator.acquire()

    assert exc.value.signal == LifecycleSignal.LAUNCH_TIMEOUT
    assert "failed to start" in str(exc.value)
    # 1 initial probe + ready_attempts during the wait
    assert probe.calls == 1 + coordinator.config.ready_attempts
    assert sleeps == [coordinator.config.ready_interval] * (coordinator.config.ready_attempts - 1)
    assert OwnershipLedger(coordinator.config.ledger_path).read().pid == 4242
    assert coordinator.session.started_here is True
    connector.connect.assert_not_called()


def test_launch_fails_fast_when_chrome_exits(tmp_path):
    probe = ScriptedProbe(False)
    coordinator, _launcher, _connector, _ = _make_coordinator(
        tmp_path, probe, proc=FakeProc(returncode=1),
    )

    with pytest.raises(LaunchTimeout, match="exited unexpectedly"):
        coordinator.acquire()
    assert probe.calls == 2


def test_discovery_failure_before_launch(tmp_path):
    probe = ScriptedProbe(False)
    coordinator, launcher, _connector, _ = _make_coordinator(tmp_path, probe)
    coordinator._finder = MagicMock(side_effect=DiscoveryFailure("Could not find Chrome"))

    with pytest.raises(DiscoveryFailure):
        coordinator.acquire()
    launcher.assert_not_called()
    assert not os.path.exists(coordinator.config.ledger_path)


def test_page_never_interactive(tmp_path):
    browser, _context, page = _make_browser()
    page.evaluate.side_effect = RuntimeError("Execution context was destroyed")
    coordinator, _launcher, _connector, sleeps = _make_coordinator(
        tmp_path, ScriptedProbe(True), browser=browser,
    )

    with pytest.raises(PageNotInteractive, match="Execution context"):
        coordinator.acquire()
    assert page.evaluate.call_count == 3
    # No sleep after the final attempt
    assert sleeps == [coordinator.config.page_ready_interval] * 2
    # Handle is kept so shutdown can still close it
    assert coordinator.session.browser is browser
    assert not coordinator.session.ready


def test_page_becomes_interactive_after_retries(tmp_path):
    browser, _context, page = _make_browser()
    page.evaluate.side_effect = [RuntimeError("not yet"), RuntimeError("not yet"), "complete"]
    coordinator, _launcher, _connector, _ = _make_coordinator(
        tmp_path, ScriptedProbe(True), browser=browser,
    )

    _, got_page = coordinator.acquire()
    assert got_page is page


def test_connect_failure_is_page_not_interactive(tmp_path):
    coordinator, _launcher, connector, _ = _make_coordinator(tmp_path, ScriptedProbe(True))
    connector.connect.side_effect = RuntimeError("ECONNRESET")

    with pytest.raises(PageNotInteractive, match="CDP connection failed"):
        coordinator.acquire()


def test_downloads_configured(tmp_path):
    browser, context, page = _make_browser()
    coordinator, _launcher, _connector, _ = _make_coordinator(
        tmp_path, ScriptedProbe(True), browser=browser,
    )

    coordinator.acquire()

    downloads = coordinator.config.downloads_dir
    assert os.path.isdir(downloads)
    context.new_cdp_session.assert_called_once_with(page)
    context.new_cdp_session.return_value.send.assert_called_once_with(
        "Browser.setDownloadBehavior",
        {"behavior": "allow", "downloadPath": downloads, "eventsEnabled": True},
    )


def test_new_context_when_browser_has_none(tmp_path):
    browser, context, page = _make_browser(has_context=False)
    coordinator, _launcher, _connector, _ = _make_coordinator(
        tmp_path, ScriptedProbe(True), browser=browser,
    )

    _, got_page = coordinator.acquire()
    browser.new_context.assert_called_once()
    assert got_page is page


def test_crashed_browser_relaunches_over_stale_ledger(tmp_path):
    """A dead browser looks like no browser: launch fresh, overwrite the entry."""
    ledger = OwnershipLedger(str(tmp_path / ".chrome-pid"))
    ledger.record(11111, start_time=1)
    coordinator, launcher, _connector, _ = _make_coordinator(
        tmp_path, ScriptedProbe(False, True), proc=FakeProc(pid=22222),
    )

    coordinator.acquire()

    launcher.assert_called_once()
    assert ledger.read().pid == 22222


def test_launch_lock_released(tmp_path):
    coordinator, _launcher, _connector, _ = _make_coordinator(
        tmp_path, ScriptedProbe(False, True),
    )
    coordinator.acquire()
    assert not os.path.exists(coordinator.config.lock_path)


def test_shared_session_is_populated(tmp_path):
    session = BrowserSession()
    config = PilotConfig(workdir=str(tmp_path))
    browser, _context, page = _make_browser()
    connector = MagicMock()
    connector.connect.return_value = browser
    coordinator = SessionCoordinator(config, session, connector=connector,
                                     probe_fn=ScriptedProbe(True), sleep=lambda s: None)

    coordinator.acquire()
    assert session.endpoint == config.endpoint
    assert session.page is page
    assert session.ready


def test_acquire_events_logged(tmp_path):
    events = LifecycleEventLogger(str(tmp_path / "logs"), invocation_id="t")
    coordinator, _launcher, _connector, _ = _make_coordinator(tmp_path, ScriptedProbe(False))
    coordinator.events = events

    with pytest.raises(LaunchTimeout):
        coordinator.acquire()
    events.close()

    with open(tmp_path / "logs" / "events.jsonl") as f:
        lines = [json.loads(line) for line in f]
    assert lines[-1]["event"] == "acquire_failed"
    assert lines[-1]["signal"] == "launch_timeout"
