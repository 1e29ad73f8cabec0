"""Logging setup for the foreground command and the refresh daemon."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s %(process)d %(levelname)s %(name)s: %(message)s"


def configure_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    console: bool = True,
    level: str = "INFO",
) -> None:
    """Configure the root logger.

    Args:
        verbose: Log INFO and above to the console instead of WARNING
        log_file: Also append records at or above `level` to this file
        console: Attach a rich handler writing to stderr
        level: Minimum level name written to the log file
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    file_level = logging.getLevelName(level)
    root.setLevel(min(logging.INFO, file_level) if log_file else logging.INFO)

    if console:
        rich_handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=verbose,
        )
        rich_handler.setLevel(logging.INFO if verbose else logging.WARNING)
        root.addHandler(rich_handler)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)
