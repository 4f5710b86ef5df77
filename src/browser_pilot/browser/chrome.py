"""Chrome discovery, CDP launch, and local process termination."""
import logging
import os
import platform
import shutil
import subprocess

from ..engine.errors import DiscoveryFailure

log = logging.getLogger(__name__)

INSTALL_GUIDANCE = (
    "Could not find a local Chrome installation. Please install Chrome or Chromium for your platform:\n"
    "- macOS: Install Google Chrome from https://www.google.com/chrome/\n"
    "- Windows: Install Google Chrome from https://www.google.com/chrome/\n"
    "- Linux: Run 'sudo apt install google-chrome-stable' or 'sudo apt install chromium-browser'\n"
    "Or point BROWSER_PILOT_CHROME at the executable."
)


def _candidates(system: str) -> list[str]:
    home = os.path.expanduser("~")
    if system == "Darwin":
        return [
            "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
            "/Applications/Chromium.app/Contents/MacOS/Chromium",
            f"{home}/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
            f"{home}/Applications/Chromium.app/Contents/MacOS/Chromium",
        ]
    if system == "Windows":
        local = os.environ.get("LOCALAPPDATA", "")
        program_files = os.environ.get("PROGRAMFILES", r"C:\Program Files")
        program_files_x86 = os.environ.get("PROGRAMFILES(X86)", r"C:\Program Files (x86)")
        paths = [
            rf"{program_files}\Google\Chrome\Application\chrome.exe",
            rf"{program_files_x86}\Google\Chrome\Application\chrome.exe",
            rf"{program_files}\Chromium\Application\chrome.exe",
            rf"{program_files_x86}\Chromium\Application\chrome.exe",
        ]
        if local:
            paths.insert(2, rf"{local}\Google\Chrome\Application\chrome.exe")
        return paths
    return [
        "/usr/bin/google-chrome",
        "/usr/bin/google-chrome-stable",
        "/usr/bin/chromium",
        "/usr/bin/chromium-browser",
        "/snap/bin/chromium",
        "/usr/local/bin/google-chrome",
        "/usr/local/bin/chromium",
        "/opt/google/chrome/chrome",
        "/opt/google/chrome/google-chrome",
    ]


def find_system_chrome(override: str | None = None) -> str | None:
    """Find a Chrome or Chromium binary on the system.

    An explicit *override* wins when it points at an existing file.
    Returns the path to the browser executable, or None if not found.
    """
    if override:
        if os.path.isfile(override):
            return override
        log.warning("Configured Chrome path does not exist: %s", override)

    system = platform.system()
    for candidate in _candidates(system):
        if os.path.isfile(candidate):
            return candidate

    if system == "Linux":
        for name in ("google-chrome", "google-chrome-stable", "chromium", "chromium-browser"):
            path = shutil.which(name)
            if path:
                return path
    return None


def require_chrome(override: str | None = None) -> str:
    """Like find_system_chrome() but raises DiscoveryFailure when nothing is found."""
    path = find_system_chrome(override)
    if not path:
        raise DiscoveryFailure(INSTALL_GUIDANCE)
    return path


def build_chrome_args(
    chrome_path: str,
    profile_dir: str,
    port: int,
    *,
    window_position: str = "-9999,-9999",
    window_size: str = "1280,720",
    extra_args: list[str] | None = None,
) -> list[str]:
    """Command line for a headful Chrome that stays out of the user's way."""
    args = [
        chrome_path,
        f"--remote-debugging-port={port}",
        f"--user-data-dir={profile_dir}",
        f"--window-position={window_position}",
        f"--window-size={window_size}",
        "--no-first-run",
        "--no-default-browser-check",
    ]
    if extra_args:
        args.extend(extra_args)
    args.append("about:blank")
    return args


def launch_chrome(
    chrome_path: str,
    profile_dir: str,
    port: int,
    *,
    window_position: str = "-9999,-9999",
    window_size: str = "1280,720",
    extra_args: list[str] | None = None,
) -> subprocess.Popen:
    """Spawn Chrome with remote debugging enabled and return the process.

    All three standard streams go to DEVNULL; a chatty Chrome writing into
    a pipe nobody drains would eventually block. Chrome gets its own session
    so a Ctrl-C aimed at the CLI does not reach it.
    """
    os.makedirs(profile_dir, exist_ok=True)
    args = build_chrome_args(
        chrome_path, profile_dir, port,
        window_position=window_position,
        window_size=window_size,
        extra_args=extra_args,
    )
    log.info("Launching Chrome via CDP: %s (port %d)", os.path.basename(chrome_path), port)
    return subprocess.Popen(
        args,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )


def terminate_process(proc: subprocess.Popen, grace: float = 1.0) -> None:
    """SIGTERM, wait up to *grace* seconds, then SIGKILL if still running."""
    if proc.poll() is not None:
        return
    proc.terminate()
    try:
        proc.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        log.info("Chrome (pid %d) ignored SIGTERM, killing", proc.pid)
        proc.kill()
        proc.wait(timeout=5)
