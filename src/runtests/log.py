"""Logging configuration for diagnostic output."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(verbose: bool = False, console: Optional[Console] = None) -> logging.Logger:
    """
    Configure and return the package logger.

    Log records are rendered by rich on stderr. Without verbose only warnings
    and errors are shown; with verbose, process starts and exits as well.

    Args:
        verbose: Show debug records
        console: Console to render to (defaults to a stderr console)

    Returns:
        The configured ``runtests`` logger.
    """
    logger = logging.getLogger("runtests")
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)

    return logger
