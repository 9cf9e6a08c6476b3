"""
Package entry point.

Allows running the application via:

    python -m academia

This simply forwards execution to academia.cli.main().
"""

from academia.cli import main

if __name__ == "__main__":
    main()
