"""
Principal Activity Engine - Main entry point.
"""

import sys

from principal_activity.cli import main

if __name__ == "__main__":
    sys.exit(main())
