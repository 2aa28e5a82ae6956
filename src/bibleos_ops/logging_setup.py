"""Logging configuration for the CLI and the API server."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str | int = "INFO", rich: bool = True) -> None:
    """Install a root handler.

    Args:
        level: Log level name or number.
        rich: Use ``RichHandler`` on stderr (CLI); otherwise a plain
            stream handler (API server, log collectors).
    """
    if rich:
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True), show_path=False, rich_tracebacks=True
        )
        fmt = "%(message)s"
    else:
        handler = logging.StreamHandler()
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logging.basicConfig(level=level, format=fmt, handlers=[handler], force=True)
