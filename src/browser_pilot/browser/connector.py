"""Playwright CDP connections to an already-running Chrome.

``connect_over_cdp`` only attaches; ``Browser.close()`` on such a handle
merely disconnects. Actually closing Chrome takes the CDP ``Browser.close``
command, which is what ``request_close`` sends.
"""
import logging
from typing import Any

log = logging.getLogger(__name__)


class PlaywrightConnector:
    """Owns one sync Playwright driver for the lifetime of an invocation."""

    def __init__(self):
        self._playwright = None

    def _driver(self):
        if self._playwright is None:
            from playwright.sync_api import sync_playwright

            self._playwright = sync_playwright().start()
        return self._playwright

    def connect(self, endpoint: str) -> Any:
        """Attach to Chrome at *endpoint* and return a Playwright Browser."""
        browser = self._driver().chromium.connect_over_cdp(endpoint)
        log.info("Connected to Chrome via CDP (%s)", endpoint)
        return browser

    def request_close(self, browser: Any) -> None:
        """Ask Chrome itself to exit, then drop the connection."""
        try:
            session = browser.new_browser_cdp_session()
            session.send("Browser.close")
        finally:
            try:
                browser.close()
            except Exception as e:
                log.debug(f"Disconnect after Browser.close failed: {e}")

    def stop(self) -> None:
        if self._playwright is None:
            return
        try:
            self._playwright.stop()
        finally:
            self._playwright = None
