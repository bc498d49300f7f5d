"""Run TraceLink: python -m tracelink"""

import sys

from .main import main

sys.exit(main())
