"""
CLI for browser-pilot.

Every call is a separate process: it acquires (or launches) Chrome, runs one
command, prints a JSON result on stdout and exits, leaving Chrome running for
the next call. Only ``close``, a fatal acquisition error or a signal tears
the browser down.
"""

import argparse
import json
import logging
import os
import signal
import sys
import time
from typing import Any, Callable, Optional

from rich.console import Console

from . import __version__
from .browser.connector import PlaywrightConnector
from .browser.profile import prepare_chrome_profile
from .browser.session import BrowserSession, SessionCoordinator
from .browser.shutdown import ShutdownSequencer
from .config import PilotConfig
from .engine.actions import BrowserUseEngine, PageActions
from .engine.errors import BrowserLifecycleError
from .engine.schema import build_extraction_model, parse_schema_arg
from .telemetry.logger import LifecycleEventLogger

log = logging.getLogger(__name__)


class UsageError(Exception):
    """Bad command line; reported as a failure instead of argparse's exit(2)."""


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(f"{message}\n{self.format_usage().strip()}")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = _Parser(
        prog="browser-pilot",
        description="Drive a local Chrome with natural-language commands, one call at a time.",
        epilog="""
Examples:
  browser-pilot navigate https://example.com
  browser-pilot act "click the sign in button"
  browser-pilot extract "the article headline" '{"title": "string"}'
  browser-pilot observe "search inputs"
  browser-pilot screenshot
  browser-pilot close
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"browser-pilot {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log to stderr (-v info, -vv debug)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="command")
    subparsers.required = True

    navigate = subparsers.add_parser("navigate", help="Open a URL in the current tab")
    navigate.add_argument("url")

    act = subparsers.add_parser("act", help="Perform a natural-language action")
    act.add_argument("action", nargs="+")

    extract = subparsers.add_parser("extract", help="Extract structured data from the page")
    extract.add_argument("instruction")
    extract.add_argument("schema", help='JSON object of field types, e.g. \'{"price": "number"}\'')

    observe = subparsers.add_parser("observe", help="Find elements matching a description")
    observe.add_argument("query", nargs="+")

    subparsers.add_parser("screenshot", help="Save a screenshot of the current page")
    subparsers.add_parser("close", help="Close the browser launched by earlier commands")

    return parser


def setup_logging(verbosity: int) -> None:
    # stdout is reserved for JSON results
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = os.getenv("BROWSER_PILOT_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class Invocation:
    """Everything one CLI process owns: its session, coordinator and sequencer."""

    def __init__(
        self,
        config: PilotConfig,
        *,
        event_logger: Optional[LifecycleEventLogger] = None,
        coordinator: Optional[SessionCoordinator] = None,
        sequencer: Optional[ShutdownSequencer] = None,
        engine_factory: Optional[Callable[[PilotConfig], Any]] = None,
    ):
        self.config = config
        self.events = event_logger or LifecycleEventLogger(config.logs_dir)
        self.session = BrowserSession(endpoint=config.endpoint)
        connector = PlaywrightConnector()
        self.coordinator = coordinator or SessionCoordinator(
            config, self.session, connector=connector, event_logger=self.events,
        )
        self.sequencer = sequencer or ShutdownSequencer(
            config, self.session, connector=connector, event_logger=self.events,
        )
        self._engine_factory = engine_factory or (lambda cfg: BrowserUseEngine(cfg.endpoint, cfg.model))
        self._shutting_down = False

    def actions(self) -> PageActions:
        _browser, page = self.coordinator.acquire()
        return PageActions(page, self._engine_factory(self.config), self.config.screenshots_dir)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def shutdown(self) -> None:
        if self._shutting_down:
            return
        self._shutting_down = True
        try:
            self.sequencer.shutdown()
        finally:
            self._shutting_down = False

    def detach(self) -> None:
        """Drop our CDP connection but leave Chrome running for the next call."""
        browser = self.session.browser
        if browser is not None:
            try:
                browser.close()
            except Exception as e:
                log.debug(f"Disconnect failed: {e}")
        try:
            self.coordinator.connector.stop()
        except Exception as e:
            log.debug(f"Stopping Playwright failed: {e}")

    def close(self) -> None:
        self.events.close()


# ── Commands ────────────────────────────────────────────────────────────────

def cmd_navigate(inv: Invocation, args) -> dict:
    actions = inv.actions()
    message = actions.navigate(args.url)
    return {"success": True, "message": message, "screenshot": actions.screenshot()}


def cmd_act(inv: Invocation, args) -> dict:
    action = " ".join(args.action)
    actions = inv.actions()
    message = actions.act(action)
    return {"success": True, "message": message, "screenshot": actions.screenshot()}


def cmd_extract(inv: Invocation, args) -> dict:
    # Validate before touching the browser
    model = build_extraction_model(parse_schema_arg(args.schema))
    actions = inv.actions()
    data = actions.extract(args.instruction, model)
    return {
        "success": True,
        "message": f"Successfully extracted data: {json.dumps(data, ensure_ascii=False)}",
        "data": data,
        "screenshot": actions.screenshot(),
    }


def cmd_observe(inv: Invocation, args) -> dict:
    query = " ".join(args.query)
    actions = inv.actions()
    observed = actions.observe(query)
    return {
        "success": True,
        "message": f"Successfully observed: {observed}",
        "screenshot": actions.screenshot(),
    }


def cmd_screenshot(inv: Invocation, args) -> dict:
    return {"success": True, "screenshot": inv.actions().screenshot()}


def cmd_close(inv: Invocation, args) -> dict:
    inv.shutdown()
    return {"success": True, "message": "Browser closed"}


COMMANDS: dict[str, Callable[[Invocation, Any], dict]] = {
    "navigate": cmd_navigate,
    "act": cmd_act,
    "extract": cmd_extract,
    "observe": cmd_observe,
    "screenshot": cmd_screenshot,
    "close": cmd_close,
}


def run_command(inv: Invocation, args) -> dict:
    """Run one command and turn any failure into a structured result.

    Lifecycle failures also tear the browser down; a failed action leaves
    it running so the next call can carry on.
    """
    started = time.monotonic()
    try:
        result = COMMANDS[args.command](inv, args)
    except BrowserLifecycleError as e:
        log.error("Could not acquire browser: %s", e)
        inv.shutdown()
        result = {"success": False, "error": str(e), "signal": e.signal.value}
    except Exception as e:
        log.debug("Command %s failed", args.command, exc_info=True)
        result = {"success": False, "error": str(e)}
    inv.events.log_command(args.command, result["success"], time.monotonic() - started, result.get("error"))
    return result


def install_signal_handlers(inv: Invocation) -> None:
    def _handler(signum, frame):
        name = signal.Signals(signum).name
        if inv.shutting_down:
            # Let the running sequencer reach clear_ledger
            log.info("Received %s while closing the browser, finishing shutdown first", name)
            return
        log.info("Received %s, closing browser", name)
        inv.shutdown()
        inv.close()
        sys.exit(0)

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _handler)


def main(argv: Optional[list[str]] = None, *, invocation: Optional[Invocation] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    usage_error = None
    args = None
    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        usage_error = str(e)

    setup_logging(getattr(args, "verbose", 0))
    inv = invocation or Invocation(PilotConfig())
    install_signal_handlers(inv)
    try:
        if usage_error is not None:
            inv.shutdown()
            print(json.dumps({"success": False, "error": usage_error}, indent=2), file=sys.stderr)
            return 1

        if args.command != "close":
            console = Console(stderr=True)
            prepare_chrome_profile(
                inv.config.profile_dir,
                status=lambda msg: console.print(msg, style="dim"),
            )

        result = run_command(inv, args)
        if args.command != "close":
            inv.detach()
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return 0 if result["success"] else 1
    finally:
        inv.close()


if __name__ == "__main__":
    sys.exit(main())
