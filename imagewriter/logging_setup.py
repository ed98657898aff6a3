"""Logging configuration.

One-shot commands log to stderr through Rich. The interactive session owns
the terminal, so it logs only to a file (or not at all).
"""

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s"


def configure_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    interactive: bool = False,
) -> None:
    """Install root logging handlers.

    Args:
        level: Logging level name.
        log_file: Optional file to log to.
        interactive: True when a full-screen session owns the terminal;
            no handler writing to the terminal is installed then.
    """
    handlers: list[logging.Handler] = []
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)
    if not interactive:
        handlers.append(
            RichHandler(
                console=Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
            )
        )
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )


__all__ = ["configure_logging"]
