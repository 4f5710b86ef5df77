"""Ownership ledger: which Chrome process did this tool launch, and when.

A single JSON file ``{"pid": int, "startTime": int}`` (milliseconds since
the epoch) in the working directory. It outlives the invocation that wrote
it so a later, unrelated invocation can find its kill target. Readers treat
an entry as a hint only; it must be re-verified against the live process
table before anything destructive happens.
"""
import json
import logging
import os
import time
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerEntry:
    pid: int
    start_time: int  # ms since epoch

    def to_dict(self) -> dict:
        return {"pid": self.pid, "startTime": self.start_time}

    @property
    def age(self) -> float:
        """Seconds since the entry was recorded."""
        return max(0.0, time.time() - self.start_time / 1000.0)


class OwnershipLedger:
    """Two states only: entry present or absent."""

    def __init__(self, path: str):
        self.path = path

    @property
    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def record(self, pid: int, start_time: int | None = None) -> LedgerEntry:
        """Persist a fresh entry, replacing any previous one atomically."""
        entry = LedgerEntry(
            pid=int(pid),
            start_time=int(start_time if start_time is not None else time.time() * 1000),
        )
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(entry.to_dict(), f)
        os.replace(tmp, self.path)
        log.debug("Recorded ledger entry pid=%d", entry.pid)
        return entry

    def read(self) -> LedgerEntry | None:
        """Return the current entry, or None if missing or unreadable."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            log.warning(f"Ignoring unreadable ownership ledger {self.path}: {e}")
            return None
        try:
            pid = int(data["pid"])
            start_time = int(data.get("startTime", 0))
        except (KeyError, TypeError, ValueError):
            log.warning(f"Ignoring malformed ownership ledger {self.path}: {data!r}")
            return None
        if pid <= 0:
            return None
        return LedgerEntry(pid=pid, start_time=start_time)

    def clear(self) -> bool:
        """Delete the entry. Returns True if a file was removed."""
        try:
            os.remove(self.path)
        except FileNotFoundError:
            return False
        log.debug("Cleared ownership ledger")
        return True
