"""Readiness probe for Chrome's remote-debugging endpoint.

Ready means ``GET <endpoint>/json/version`` answers with a 2xx status.
"""
import logging
import time
import urllib.request
from typing import Callable

log = logging.getLogger(__name__)


def probe(endpoint: str, timeout: float = 1.0) -> bool:
    """Single attempt. Never raises."""
    try:
        with urllib.request.urlopen(f"{endpoint}/json/version", timeout=timeout) as resp:
            return 200 <= resp.status < 300
    except Exception:
        return False


def wait_until_ready(
    endpoint: str,
    max_attempts: int,
    interval: float,
    *,
    timeout: float = 1.0,
    abort: Callable[[], bool] | None = None,
    probe_fn: Callable[..., bool] = probe,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Poll *endpoint* up to *max_attempts* times, *interval* seconds apart.

    The delay is fixed, not exponential. There is no sleep after the final
    attempt, so the total wait stays under ``max_attempts * interval`` plus
    probe latency. Returns False once attempts are exhausted, or as soon as
    *abort* returns True.
    """
    for attempt in range(1, max_attempts + 1):
        if probe_fn(endpoint, timeout=timeout):
            log.debug("Endpoint %s ready after %d attempt(s)", endpoint, attempt)
            return True
        if attempt == max_attempts:
            break
        if abort is not None and abort():
            log.debug("Readiness wait for %s aborted after %d attempt(s)", endpoint, attempt)
            return False
        sleep(interval)
    log.debug("Endpoint %s not ready after %d attempts", endpoint, max_attempts)
    return False
