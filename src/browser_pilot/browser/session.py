"""Browser session acquisition for one CLI invocation.

Each CLI call is its own short-lived process. The Chrome it drives is not:
it is launched once, left running, and reused by later invocations until
``close``. ``SessionCoordinator.acquire()`` either reuses a Chrome already
listening on the CDP port or launches one, records ownership in the ledger
so a later invocation may clean it up, and hands back a ready page.
"""
import logging
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Any, Callable

from ..config import PilotConfig
from ..engine.errors import BrowserLifecycleError, LaunchTimeout, PageNotInteractive
from ..telemetry.logger import LifecycleEventLogger, NullEventLogger
from .chrome import launch_chrome, require_chrome
from .connector import PlaywrightConnector
from .launch_lock import launch_lock
from .ledger import OwnershipLedger
from .probe import probe, wait_until_ready

log = logging.getLogger(__name__)


@dataclass
class BrowserSession:
    """In-memory state of one invocation. Populated once, by acquire()."""
    endpoint: str = ""
    browser: Any = None                      # Playwright Browser over CDP
    context: Any = None
    page: Any = None
    process: subprocess.Popen | None = None  # only if launched here
    started_here: bool = False

    @property
    def ready(self) -> bool:
        return self.browser is not None and self.page is not None

    def reset(self) -> None:
        self.browser = None
        self.context = None
        self.page = None
        self.process = None
        self.started_here = False


class SessionCoordinator:
    """Probe + launcher + ledger → a controllable page, at most once per invocation."""

    def __init__(
        self,
        config: PilotConfig,
        session: BrowserSession | None = None,
        *,
        connector: PlaywrightConnector | None = None,
        ledger: OwnershipLedger | None = None,
        event_logger: LifecycleEventLogger | None = None,
        probe_fn: Callable[..., bool] = probe,
        finder: Callable[[str | None], str] = require_chrome,
        launcher: Callable[..., subprocess.Popen] = launch_chrome,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.session = session if session is not None else BrowserSession()
        self.session.endpoint = config.endpoint
        self.connector = connector or PlaywrightConnector()
        self.ledger = ledger or OwnershipLedger(config.ledger_path)
        self.events = event_logger or NullEventLogger()
        self._probe = probe_fn
        self._finder = finder
        self._launcher = launcher
        self._sleep = sleep

    def acquire(self) -> tuple[Any, Any]:
        """Return ``(browser, page)``, reusing or launching Chrome as needed.

        Raises DiscoveryFailure, LaunchTimeout or PageNotInteractive.
        """
        if self.session.ready:
            return self.session.browser, self.session.page

        started = time.monotonic()
        try:
            with launch_lock(
                self.config.lock_path,
                wait=self.config.lock_wait,
                stale_after=self.config.lock_stale_after,
                sleep=self._sleep,
            ):
                branch = self._ensure_endpoint()
            self._attach()
        except BrowserLifecycleError as e:
            self.events.log_acquire_failed(e.signal.value, str(e), time.monotonic() - started)
            raise

        proc = self.session.process
        self.events.log_acquire(branch, proc.pid if proc else None, time.monotonic() - started)
        return self.session.browser, self.session.page

    # ── Endpoint: reuse or launch ───────────────────────────────────────────

    def _ensure_endpoint(self) -> str:
        cfg = self.config
        if self._probe(cfg.endpoint, timeout=cfg.probe_timeout):
            log.info("Reusing existing Chrome instance on port %d", cfg.cdp_port)
            self.session.started_here = False
            return "reuse"

        chrome_path = self._finder(cfg.chrome_path)
        proc = self._launcher(
            chrome_path, cfg.profile_dir, cfg.cdp_port,
            window_position=cfg.window_position,
            window_size=cfg.window_size,
        )
        self.session.process = proc
        self.session.started_here = True
        # Written before waiting: if we never get further, a later
        # `close` still knows which pid is ours.
        self.ledger.record(proc.pid)

        ready = wait_until_ready(
            cfg.endpoint, cfg.ready_attempts, cfg.ready_interval,
            timeout=cfg.probe_timeout,
            abort=lambda: proc.poll() is not None,
            probe_fn=self._probe,
            sleep=self._sleep,
        )
        if not ready:
            code = proc.poll()
            if code is not None:
                raise LaunchTimeout(
                    f"Chrome exited unexpectedly (code {code}) before port {cfg.cdp_port} became ready"
                )
            budget = cfg.ready_attempts * cfg.ready_interval
            raise LaunchTimeout(
                f"Chrome failed to start with remote debugging on port {cfg.cdp_port} "
                f"within {budget:.1f}s"
            )
        log.info("Chrome (pid %d) ready on port %d", proc.pid, cfg.cdp_port)
        return "launch"

    # ── Control handle ──────────────────────────────────────────────────────

    def _attach(self) -> None:
        cfg = self.config
        try:
            browser = self.connector.connect(cfg.endpoint)
        except Exception as e:
            raise PageNotInteractive(
                f"Chrome is listening on port {cfg.cdp_port} but the CDP connection failed: {e}"
            ) from e
        self.session.browser = browser

        context = browser.contexts[0] if browser.contexts else browser.new_context()
        page = context.pages[0] if context.pages else context.new_page()
        self._wait_for_page(page)
        self.session.context = context
        self.session.page = page
        self._configure_downloads(context, page)

    def _wait_for_page(self, page: Any) -> None:
        """The endpoint answers slightly before the page can be queried."""
        cfg = self.config
        last_error = None
        for attempt in range(cfg.page_ready_attempts):
            try:
                page.evaluate("document.readyState")
                return
            except Exception as e:
                last_error = e
            if attempt < cfg.page_ready_attempts - 1:
                self._sleep(cfg.page_ready_interval)
        raise PageNotInteractive(
            f"Browser failed to become ready within {cfg.page_ready_attempts} attempts: {last_error}"
        )

    def _configure_downloads(self, context: Any, page: Any) -> None:
        downloads = self.config.downloads_dir
        os.makedirs(downloads, exist_ok=True)
        client = context.new_cdp_session(page)
        client.send("Browser.setDownloadBehavior", {
            "behavior": "allow",
            "downloadPath": downloads,
            "eventsEnabled": True,
        })
        log.debug("Downloads directed to %s", downloads)
