"""browser-pilot — natural-language browser control, one CLI call at a time.

Keeps a single local Chrome alive across many short-lived invocations:
probes for it, launches it when absent, records ownership so a later call
can shut it down safely, and hands a ready page to the automation engine.
"""
__version__ = "0.1.0"

from .config import PilotConfig  # noqa: F401,E402
from .engine.errors import (  # noqa: F401,E402
    LifecycleSignal,
    BrowserLifecycleError,
    DiscoveryFailure,
    LaunchTimeout,
    PageNotInteractive,
)
