"""Allow running as: python -m cpm_scheduler"""

import sys

from .cli import main

sys.exit(main())
