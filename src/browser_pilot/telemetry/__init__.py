"""telemetry — best-effort JSONL lifecycle events."""
from .logger import LifecycleEventLogger, NullEventLogger  # noqa: F401
