"""Allow `python -m workstyle`."""

import sys

from .command import main

sys.exit(main())
