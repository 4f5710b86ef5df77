"""browser — Chrome lifecycle across independent CLI invocations.

Zero engine dependencies. Uses psutil for process-table checks.
"""
from .chrome import find_system_chrome, require_chrome, launch_chrome, terminate_process  # noqa: F401
from .ledger import OwnershipLedger, LedgerEntry  # noqa: F401
from .probe import probe, wait_until_ready  # noqa: F401
from .process_table import ProcessTable  # noqa: F401
from .profile import prepare_chrome_profile, get_chrome_user_data_dir  # noqa: F401
from .session import BrowserSession, SessionCoordinator  # noqa: F401
from .shutdown import ShutdownSequencer  # noqa: F401
