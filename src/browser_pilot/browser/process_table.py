"""Live OS process-table lookups.

Process ids get recycled, so a stored pid means nothing on its own. Every
destructive action goes through ``ProcessTable`` which confirms the pid
currently names a browser-family executable first.
"""
import logging

import psutil

log = logging.getLogger(__name__)

BROWSER_NAME_MARKERS = ("chrome", "chromium")

# A recorded launch time may trail the real process start a little.
_CREATE_TIME_SLACK = 5.0


def is_browser_name(name: str | None) -> bool:
    if not name:
        return False
    lowered = name.lower()
    return any(marker in lowered for marker in BROWSER_NAME_MARKERS)


class ProcessTable:
    """Thin psutil wrapper; swap it out in tests."""

    def describe(self, pid: int) -> str | None:
        """Executable name for *pid*, or None if there is no such process."""
        try:
            return psutil.Process(pid).name()
        except (psutil.NoSuchProcess, psutil.ZombieProcess, psutil.AccessDenied):
            return None

    def create_time(self, pid: int) -> float | None:
        try:
            return psutil.Process(pid).create_time()
        except (psutil.NoSuchProcess, psutil.ZombieProcess, psutil.AccessDenied):
            return None

    def is_browser(self, pid: int, *, started_before: float | None = None) -> bool:
        """True only if *pid* is alive, named like Chrome, and old enough.

        *started_before* (epoch seconds) rejects a process created after the
        moment the ledger says we launched ours: that pid was recycled.
        """
        name = self.describe(pid)
        if not is_browser_name(name):
            log.debug("pid %d is not a browser process (%r)", pid, name)
            return False
        if started_before is not None:
            created = self.create_time(pid)
            if created is None or created > started_before + _CREATE_TIME_SLACK:
                log.debug("pid %d was created after the ledger entry; recycled", pid)
                return False
        return True

    def kill(self, pid: int) -> bool:
        """Forcefully kill *pid*. Returns False if it was already gone."""
        try:
            psutil.Process(pid).kill()
        except psutil.NoSuchProcess:
            return False
        return True
