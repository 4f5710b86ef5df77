"""Best-effort, bounded teardown of the Chrome this tool launched.

Runs from ``close``, from error paths and from signal handlers, so it must
never raise and never wait unboundedly. Steps run in order and each one runs
whatever happened to the previous one:

1. close this invocation's own control handle gracefully
2. terminate the process this invocation spawned, if any
3. if the endpoint still answers, close Chrome over a throwaway connection
4. if it *still* answers, force-kill the ledger's pid, but only after the
   live process table confirms that pid is a Chrome process we could have
   started
5. delete the ledger entry, whatever happened above
"""
import logging
import time
from typing import Callable

from ..config import PilotConfig
from ..engine.errors import LifecycleSignal
from ..telemetry.logger import LifecycleEventLogger, NullEventLogger
from .chrome import terminate_process
from .connector import PlaywrightConnector
from .ledger import OwnershipLedger
from .probe import probe
from .process_table import ProcessTable
from .session import BrowserSession

log = logging.getLogger(__name__)


class ShutdownSequencer:

    def __init__(
        self,
        config: PilotConfig,
        session: BrowserSession | None = None,
        *,
        connector: PlaywrightConnector | None = None,
        ledger: OwnershipLedger | None = None,
        process_table: ProcessTable | None = None,
        event_logger: LifecycleEventLogger | None = None,
        probe_fn: Callable[..., bool] = probe,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.session = session if session is not None else BrowserSession()
        self.connector = connector or PlaywrightConnector()
        self.ledger = ledger or OwnershipLedger(config.ledger_path)
        self.process_table = process_table or ProcessTable()
        self.events = event_logger or NullEventLogger()
        self._probe = probe_fn
        self._sleep = sleep

    def shutdown(self) -> None:
        """Tear everything down. Never raises."""
        self._step("close_handle", self._close_handle)
        self._step("terminate_own_process", self._terminate_own_process)
        still_up = self._step("close_via_endpoint", self._close_via_endpoint)
        if still_up is not False:
            self._step("kill_verified_pid", lambda: self._kill_verified_pid(still_up))
        self._step("clear_ledger", self._clear_ledger)
        self._step("stop_driver", self.connector.stop)
        self.session.reset()

    def _step(self, name: str, fn):
        try:
            result = fn()
        except Exception as e:
            log.warning("%s during %s: %s", LifecycleSignal.SHUTDOWN_BEST_EFFORT.value, name, e)
            self.events.log_shutdown_step(name, "failed", str(e))
            return None
        return result

    def _record(self, step: str, outcome: str, detail: str = "") -> None:
        log.debug("shutdown %s: %s %s", step, outcome, detail)
        self.events.log_shutdown_step(step, outcome, detail)

    # ── Steps ───────────────────────────────────────────────────────────────

    def _close_handle(self) -> None:
        browser = self.session.browser
        if browser is None:
            self._record("close_handle", "skipped", "no handle in this invocation")
            return
        self.session.browser = None
        self.session.page = None
        self.session.context = None
        try:
            self.connector.request_close(browser)
        except Exception as e:
            # Often already gone; that is fine here.
            self._record("close_handle", "failed", str(e))
            return
        self._record("close_handle", "done")

    def _terminate_own_process(self) -> None:
        proc = self.session.process
        if proc is None or not self.session.started_here:
            self._record("terminate_own_process", "skipped", "not launched by this invocation")
            return
        try:
            terminate_process(proc, grace=self.config.terminate_grace)
        finally:
            self.session.process = None
            self.session.started_here = False
        self._record("terminate_own_process", "done", f"pid {proc.pid}")

    def _close_via_endpoint(self) -> bool:
        """Returns True if the endpoint still answers afterwards."""
        cfg = self.config
        if not self._probe(cfg.endpoint, timeout=cfg.shutdown_probe_timeout):
            self._record("close_via_endpoint", "skipped", "endpoint not reachable")
            return False
        try:
            browser = self.connector.connect(cfg.endpoint)
            self.connector.request_close(browser)
        except Exception as e:
            self._record("close_via_endpoint", "failed", str(e))
        else:
            self._record("close_via_endpoint", "done")
        self._sleep(cfg.close_settle)
        return self._probe(cfg.endpoint, timeout=cfg.recheck_probe_timeout)

    def _kill_verified_pid(self, still_up: bool | None) -> None:
        cfg = self.config
        if still_up is None and not self._probe(cfg.endpoint, timeout=cfg.recheck_probe_timeout):
            self._record("kill_verified_pid", "skipped", "endpoint not reachable")
            return

        entry = self.ledger.read()
        if entry is None:
            self._record("kill_verified_pid", "skipped", "no ledger entry; Chrome was not started by us")
            return

        started_before = entry.start_time / 1000.0 if entry.start_time > 0 else None
        if not self.process_table.is_browser(entry.pid, started_before=started_before):
            name = self.process_table.describe(entry.pid)
            log.info("Not killing pid %d (%s): not a Chrome process we started", entry.pid, name)
            self._record("kill_verified_pid", "skipped", f"pid {entry.pid} is {name!r}")
            return

        log.info("Force-killing Chrome (pid %d)", entry.pid)
        killed = self.process_table.kill(entry.pid)
        self._record("kill_verified_pid", "done" if killed else "skipped", f"pid {entry.pid}")

    def _clear_ledger(self) -> None:
        removed = self.ledger.clear()
        self._record("clear_ledger", "done" if removed else "skipped")
