"""
Search gateway server.

Usage:
    python main.py config.yml
"""

import sys

from searchgate.cli import main

if __name__ == "__main__":
    sys.exit(main())
