#!/usr/bin/env python3
"""CLI entry point for bibstore-check command.

Checks BibTeX files for structural problems.
"""

import sys


def main() -> None:
    """Entry point for bibstore-check command."""
    from bibstore.check import main as check_main

    sys.exit(check_main())


if __name__ == "__main__":
    main()
