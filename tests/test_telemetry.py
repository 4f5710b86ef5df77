"""Tests for LifecycleEventLogger — telemetry contract tests."""
import json
import os
import tempfile

from browser_pilot.telemetry.logger import LifecycleEventLogger, NullEventLogger


def _read_events(tmpdir):
    with open(os.path.join(tmpdir, "events.jsonl")) as f:
        return [json.loads(line) for line in f]


def test_basic_event_logging():
    """Events are written to JSONL with correct fields."""
    with tempfile.TemporaryDirectory() as tmpdir:
        logger = LifecycleEventLogger(tmpdir, invocation_id="inv123")
        logger.log_acquire("launch", 4242, 1.5)
        logger.close()

        assert os.listdir(tmpdir) == ["events.jsonl"]
        events = _read_events(tmpdir)
        assert len(events) == 1

        event = events[0]
        assert event["event"] == "acquire"
        assert event["branch"] == "launch"
        assert event["browser_pid"] == 4242
        assert event["invocation_id"] == "inv123"
        assert event["pid"] == os.getpid()
        assert "ts" in event


def test_invocation_id_generated():
    with tempfile.TemporaryDirectory() as tmpdir:
        with LifecycleEventLogger(tmpdir) as logger:
            assert logger.invocation_id


def test_invocations_append_to_same_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        with LifecycleEventLogger(tmpdir, invocation_id="a") as logger:
            logger.log_command("navigate", True, 0.5)
        with LifecycleEventLogger(tmpdir, invocation_id="b") as logger:
            logger.log_command("close", True, 0.1)

        events = _read_events(tmpdir)
        assert [e["invocation_id"] for e in events] == ["a", "b"]


def test_golden_roundtrip():
    """Write one of each event, read back, verify structure."""
    with tempfile.TemporaryDirectory() as tmpdir:
        with LifecycleEventLogger(tmpdir, invocation_id="golden") as logger:
            logger.log_acquire("reuse", None, 0.02)
            logger.log_acquire_failed("launch_timeout", "Chrome failed to start", 15.0)
            logger.log_shutdown_step("kill_verified_pid", "skipped", "pid 1 is 'init'")
            logger.log_command("act", False, 3.2, error="element not found")

        events = _read_events(tmpdir)
        assert [e["event"] for e in events] == [
            "acquire", "acquire_failed", "shutdown_step", "command",
        ]
        assert events[1]["signal"] == "launch_timeout"
        assert events[2]["outcome"] == "skipped"
        assert events[3]["error"] == "element not found"
        for e in events:
            assert e["invocation_id"] == "golden"


def test_unwritable_log_dir_never_raises():
    with tempfile.NamedTemporaryFile() as f:
        # A file where a directory should be
        logger = LifecycleEventLogger(os.path.join(f.name, "logs"))
        logger.log_command("navigate", True, 0.1)
        logger.close()


def test_null_logger_drops_events():
    logger = NullEventLogger()
    logger.log_acquire("reuse", None, 0.0)
    logger.close()
