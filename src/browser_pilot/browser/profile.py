"""One-time copy of the user's Chrome profile into the workspace.

Chrome refuses remote debugging on its default user-data root, so the tool
runs against its own directory seeded from the real ``Default`` profile
(cookies, local storage). The copy happens once; after that the directory
is reused as-is.
"""
import logging
import os
import platform
import shutil

log = logging.getLogger(__name__)

# Chrome's per-instance lock files; copying them makes the copy look in use.
_SKIP_NAMES = ("SingletonLock", "SingletonSocket", "SingletonCookie", "lockfile")


def get_chrome_user_data_dir() -> str | None:
    """Chrome's user-data root for the current platform."""
    system = platform.system()
    home = os.path.expanduser("~")
    if system == "Darwin":
        return os.path.join(home, "Library", "Application Support", "Google", "Chrome")
    if system == "Windows":
        local = os.environ.get("LOCALAPPDATA")
        if not local:
            return None
        return os.path.join(local, "Google", "Chrome", "User Data")
    return os.path.join(home, ".config", "google-chrome")


def prepare_chrome_profile(profile_dir: str, source_dir: str | None = None, *, status=None) -> bool:
    """Seed *profile_dir* from the user's Chrome profile on first use.

    Returns True if a profile was copied. An existing *profile_dir* is left
    alone. *status* is an optional callable for user-facing progress lines.
    """
    if os.path.exists(profile_dir):
        return False

    def _say(msg: str) -> None:
        if status is not None:
            status(msg)

    source_dir = source_dir if source_dir is not None else get_chrome_user_data_dir()
    os.makedirs(profile_dir, exist_ok=True)

    source_default = os.path.join(source_dir, "Default") if source_dir else ""
    if not source_default or not os.path.isdir(source_default):
        _say("No existing profile found, using fresh profile")
        return False

    _say(f"Copying Chrome profile to {os.path.basename(profile_dir)}/ (this may take a minute)...")
    try:
        shutil.copytree(
            source_default,
            os.path.join(profile_dir, "Default"),
            ignore=shutil.ignore_patterns(*_SKIP_NAMES),
            symlinks=True,
        )
    except shutil.Error as e:
        # Files Chrome holds open fail individually; the rest is still usable.
        log.warning(f"Profile copied with {len(e.args[0])} unreadable file(s)")
    _say("Profile copied successfully")
    return True
