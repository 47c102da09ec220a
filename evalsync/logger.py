"""Logging setup for EVALSYNC: rich console handler plus optional log file."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from evalsync.config.schema import OutputConfig

LOGGER_NAME = "evalsync"
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(output: Optional[OutputConfig] = None, *, console: Optional[Console] = None) -> logging.Logger:
    """Configure the ``evalsync`` logger.

    Args:
        output: Output configuration (level, verbosity, log file).
        console: Rich Console to log to (stderr by default).

    Returns:
        The configured package logger.
    """
    output = output or OutputConfig()
    logger = logging.getLogger(LOGGER_NAME)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_level = logging.DEBUG if output.verbose else getattr(logging, output.log_level)
    rich_handler = RichHandler(
        console=console or Console(stderr=True, no_color=not output.colored),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    rich_handler.setLevel(console_level)
    logger.addHandler(rich_handler)

    level = console_level
    if output.log_file:
        log_path = Path(output.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)
        level = logging.DEBUG

    logger.setLevel(level)
    logger.propagate = False
    return logger
