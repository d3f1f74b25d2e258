"""Allow ``python -m nsx_config_archive``."""
import sys

from .cli import main

sys.exit(main())
