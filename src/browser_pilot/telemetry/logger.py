"""Structured JSONL event logging for browser lifecycle and commands."""
import json
import logging
import os
import time
import uuid

log = logging.getLogger(__name__)


class LifecycleEventLogger:
    """Writes one JSON line per event to ``<log_dir>/events.jsonl``.

    All logging is best-effort; methods never raise exceptions.
    Supports context-manager protocol for automatic close.

    Every event carries ``ts``, ``invocation_id`` and ``pid`` (of the CLI
    process) so lines from many short-lived invocations can be told apart.
    """

    def __init__(self, log_dir: str, invocation_id: str | None = None):
        self.invocation_id = invocation_id or uuid.uuid4().hex[:12]
        self._f = None
        try:
            os.makedirs(log_dir, exist_ok=True)
            self._f = open(os.path.join(log_dir, "events.jsonl"), "a", encoding="utf-8")
        except Exception as e:
            log.warning(f"LifecycleEventLogger: failed to open log file: {e}")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _write(self, event: dict):
        if self._f is None:
            return
        try:
            event["ts"] = time.time()
            event["invocation_id"] = self.invocation_id
            event["pid"] = os.getpid()
            self._f.write(json.dumps(event, ensure_ascii=False) + "\n")
            self._f.flush()
        except Exception as e:
            log.warning(f"LifecycleEventLogger: write failed: {e}")

    def log_acquire(self, branch: str, browser_pid: int | None, duration: float):
        """``branch`` is ``reuse`` or ``launch``."""
        self._write({
            "event": "acquire",
            "branch": branch,
            "browser_pid": browser_pid,
            "duration": duration,
        })

    def log_acquire_failed(self, signal: str, error: str, duration: float):
        self._write({
            "event": "acquire_failed",
            "signal": signal,
            "error": error,
            "duration": duration,
        })

    def log_shutdown_step(self, step: str, outcome: str, detail: str = ""):
        """Valid ``outcome`` values: ``done``, ``skipped``, ``failed``."""
        self._write({
            "event": "shutdown_step",
            "step": step,
            "outcome": outcome,
            "detail": detail,
        })

    def log_command(self, command: str, success: bool, duration: float, error: str | None = None):
        self._write({
            "event": "command",
            "command": command,
            "success": success,
            "duration": duration,
            "error": error,
        })

    def close(self):
        if self._f is not None:
            try:
                self._f.flush()
                self._f.close()
            except Exception:
                pass
            self._f = None


class NullEventLogger(LifecycleEventLogger):
    """Drops every event. Used when no log directory is wanted."""

    def __init__(self):
        self.invocation_id = ""
        self._f = None
