"""Process Entry Point - Root Module.

This is the root-level entry point for running the monitor directly.
It imports from the spaceweather package.
"""

import sys

from spaceweather.main import main

__all__ = [
    "main",
]


if __name__ == "__main__":
    sys.exit(main())
