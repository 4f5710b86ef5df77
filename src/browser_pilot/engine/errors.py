"""Normalized error signals for browser lifecycle failures.

Acquisition failures are mapped into these signals so the CLI can report a
structured result and still tell "not installed", "never came up" and
"came up but not interactive" apart.
"""
from enum import Enum


class LifecycleSignal(Enum):
    """Why a browser could not be acquired (or torn down)."""
    DISCOVERY_FAILURE = "discovery_failure"        # no Chrome executable found
    LAUNCH_TIMEOUT = "launch_timeout"              # spawned, never network-ready
    PAGE_NOT_INTERACTIVE = "page_not_interactive"  # endpoint up, page never answered
    SHUTDOWN_BEST_EFFORT = "shutdown_best_effort"  # teardown step failed (logged only)


class BrowserLifecycleError(Exception):
    """Exception carrying a LifecycleSignal."""

    def __init__(self, signal: LifecycleSignal, message: str = ""):
        self.signal = signal
        super().__init__(message or signal.value)


class DiscoveryFailure(BrowserLifecycleError):
    def __init__(self, message: str = ""):
        super().__init__(LifecycleSignal.DISCOVERY_FAILURE, message)


class LaunchTimeout(BrowserLifecycleError):
    def __init__(self, message: str = ""):
        super().__init__(LifecycleSignal.LAUNCH_TIMEOUT, message)


class PageNotInteractive(BrowserLifecycleError):
    def __init__(self, message: str = ""):
        super().__init__(LifecycleSignal.PAGE_NOT_INTERACTIVE, message)


class AutomationError(Exception):
    """The natural-language engine ran but could not complete the request."""
