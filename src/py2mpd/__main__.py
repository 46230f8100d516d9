"""
Entry Point - Module Execution

This module serves as the entry point when running the package as a module:
    python -m py2mpd

It simply imports and calls the main() function from the CLI module.
"""

import sys

from py2mpd.cli import main

if __name__ == "__main__":
    sys.exit(main())
