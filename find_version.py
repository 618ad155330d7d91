#!/usr/bin/env python3
"""
Find version information for CLI programs.

Runs each candidate invocation as a restricted user with a scrubbed
environment and a timeout, then falls back to package databases and
binary strings.

Usage:
    find_version.py git               # Verbose report
    find_version.py --short python    # "python 3.12.1"
    find_version.py --scan /usr/bin   # One short line per file
"""

import os
import sys

# Add current directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from version_finder.cli import main


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
