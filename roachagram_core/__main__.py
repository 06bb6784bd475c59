"""Allow running as: python -m roachagram_core"""

import sys

from .cli import main

sys.exit(main())
