"""
Logging setup for the command line.

Log records go to stderr through rich so stdout stays clean for --json-output.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str = "WARNING") -> None:
    """Install a RichHandler on the root logger at the given level name."""
    levelno = getattr(logging, level.upper(), logging.WARNING)
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=levelno <= logging.DEBUG,
        rich_tracebacks=True,
    )
    logging.basicConfig(level=levelno, format="[%(name)s] %(message)s", datefmt="[%X]", handlers=[handler])
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(max(levelno, logging.WARNING))
