"""Allow ``python -m browser_pilot``."""
import sys

from .cli import main

sys.exit(main())
