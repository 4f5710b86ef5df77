"""Runtime configuration for browser-pilot.

Every path is derived from the working directory the CLI is invoked in,
never from the package location. Environment variables (optionally from a
``.env`` file) override the defaults.
"""
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CDP_PORT = 9222
DEFAULT_MODEL = "claude-haiku-4-5-20251001"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class PilotConfig:
    """Locations, ports and timing budgets for one CLI invocation."""

    workdir: str = field(
        default_factory=lambda: os.getenv("BROWSER_PILOT_WORKDIR") or os.getcwd()
    )
    cdp_host: str = "127.0.0.1"
    cdp_port: int = field(
        default_factory=lambda: _env_int("BROWSER_PILOT_PORT", DEFAULT_CDP_PORT)
    )
    chrome_path: str | None = field(
        default_factory=lambda: os.getenv("BROWSER_PILOT_CHROME") or None
    )
    model: str = field(
        default_factory=lambda: os.getenv("BROWSER_PILOT_MODEL", DEFAULT_MODEL)
    )

    # Window placement: headful but off-screen
    window_position: str = "-9999,-9999"
    window_size: str = "1280,720"

    # Readiness polling (fixed interval, matches Chrome cold-start latency)
    ready_attempts: int = 50
    ready_interval: float = 0.3
    probe_timeout: float = 1.0
    page_ready_attempts: int = 30
    page_ready_interval: float = 0.1

    # Shutdown waits (all bounded)
    terminate_grace: float = 1.0
    close_settle: float = 2.0
    shutdown_probe_timeout: float = 2.0
    recheck_probe_timeout: float = 1.0

    # Advisory launch lock
    lock_wait: float = 20.0
    lock_stale_after: float = 60.0

    @property
    def endpoint(self) -> str:
        return f"http://{self.cdp_host}:{self.cdp_port}"

    @property
    def profile_dir(self) -> str:
        return os.path.join(self.workdir, ".chrome-profile")

    @property
    def ledger_path(self) -> str:
        return os.path.join(self.workdir, ".chrome-pid")

    @property
    def lock_path(self) -> str:
        return os.path.join(self.workdir, ".chrome-launch.lock")

    @property
    def downloads_dir(self) -> str:
        return os.path.join(self.workdir, "agent", "downloads")

    @property
    def screenshots_dir(self) -> str:
        return os.path.join(self.workdir, "agent", "screenshots")

    @property
    def logs_dir(self) -> str:
        return os.path.join(self.workdir, "agent", "logs")
