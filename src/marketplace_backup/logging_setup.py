"""Logging configuration shared by the CLI and the HTTP server."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: int | str = logging.INFO, console: Console | None = None) -> None:
    """Route root logging through a ``RichHandler``.

    Safe to call more than once; later calls replace the handler.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
