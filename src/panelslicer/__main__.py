"""Entry point for running panelslicer as a module.

Usage:
    python -m panelslicer scan page.png
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
