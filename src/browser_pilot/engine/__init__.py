"""engine — error taxonomy and the boundary to the natural-language automation engine."""
from .errors import (  # noqa: F401
    LifecycleSignal,
    BrowserLifecycleError,
    DiscoveryFailure,
    LaunchTimeout,
    PageNotInteractive,
    AutomationError,
)
from .schema import build_extraction_model, parse_schema_arg  # noqa: F401
