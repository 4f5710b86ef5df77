"""Advisory cross-process lock around "probe, then maybe launch".

Two invocations started back to back would otherwise both see a cold
endpoint and both spawn Chrome against the same port and profile. The lock
is an exclusively-created file holding the owner's pid; a lock whose owner
is dead, or which is older than ``stale_after`` seconds, is broken.
"""
import logging
import os
import time
from contextlib import contextmanager

import psutil

log = logging.getLogger(__name__)


def _owner_pid(path: str) -> int | None:
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read().strip()
    except OSError:
        return None
    return int(text) if text.isdigit() else None


def _is_stale(path: str, stale_after: float) -> bool:
    try:
        age = time.time() - os.path.getmtime(path)
    except FileNotFoundError:
        return True
    if age > stale_after:
        return True
    pid = _owner_pid(path)
    # An empty file is a lock mid-creation; give it the benefit of the doubt.
    return pid is not None and not psutil.pid_exists(pid)


def try_acquire(path: str, stale_after: float = 60.0) -> bool:
    """One non-blocking attempt. Returns True if the lock is now ours."""
    try:
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        if _is_stale(path, stale_after):
            log.info("Breaking stale launch lock %s", path)
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
        return False
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(str(os.getpid()))
    return True


def release(path: str) -> None:
    if _owner_pid(path) != os.getpid():
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


@contextmanager
def launch_lock(path: str, *, wait: float = 20.0, stale_after: float = 60.0,
                poll: float = 0.1, sleep=time.sleep):
    """Hold the launch lock for the body of the ``with`` block.

    Yields True if the lock was acquired. After *wait* seconds without it the
    body still runs (yielding False): the lock is advisory and must never
    wedge the CLI.
    """
    deadline = time.monotonic() + wait
    acquired = try_acquire(path, stale_after)
    while not acquired and time.monotonic() < deadline:
        sleep(poll)
        acquired = try_acquire(path, stale_after)
    if not acquired:
        log.warning("Could not obtain launch lock %s within %.0fs; continuing unlocked", path, wait)
    try:
        yield acquired
    finally:
        if acquired:
            release(path)
