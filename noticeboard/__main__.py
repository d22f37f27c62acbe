"""
Package entry point.

Allows running the application via:

    python -m noticeboard

This simply forwards execution to noticeboard.cli.main().
"""

from noticeboard.cli import main

if __name__ == "__main__":
    main()
