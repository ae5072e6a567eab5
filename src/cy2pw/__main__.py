"""
Entry point for module execution (``python -m cy2pw``).

This module delegates execution to the CLI handler in ``cy2pw.cli.__main__``.
"""

import sys
from cy2pw.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())
