"""Allow ``python -m refclean``."""

import sys

from refclean.cli import main

sys.exit(main())
