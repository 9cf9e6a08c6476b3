"""
Logging setup for the command line.

Library modules only create `logging.getLogger(__name__)` loggers; the CLI
calls setup_logging() once to route them through rich.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "academia"


def setup_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Configure and return the package logger."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Prevent duplicate handlers if called more than once
    if any(isinstance(h, RichHandler) for h in logger.handlers):
        return logger

    handler = RichHandler(console=console or Console(stderr=True), show_path=False, rich_tracebacks=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="%H:%M:%S"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
