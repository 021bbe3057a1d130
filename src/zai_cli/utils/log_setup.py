"""
Logging setup for Zai CLI.

Console logs go to stderr through rich so they never mix with the model's
reply on stdout; a rotating file keeps the last few runs for bug reports.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FILE_NAME = "zai.log"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(funcName)s(%(lineno)d) %(message)s"

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(
    level: str = "WARNING",
    log_dir: Optional[Path] = None,
    file_size: int = 2 * 1024 * 1024,
    file_count: int = 2,
) -> logging.Logger:
    """
    Configure the ``zai_cli`` logger.

    Args:
        level: Console log level name
        log_dir: Directory for the rotating log file (no file when None)
        file_size: Max size per log file in bytes
        file_count: Number of backup files to keep

    Returns:
        The configured package logger
    """
    package_logger = logging.getLogger("zai_cli")
    for handler in package_logger.handlers:
        handler.close()
    package_logger.handlers = []
    package_logger.setLevel(logging.DEBUG)
    package_logger.propagate = False

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    package_logger.addHandler(console_handler)

    if log_dir is not None:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_dir / LOG_FILE_NAME,
                maxBytes=file_size,
                backupCount=file_count,
                encoding="utf-8",
            )
        except OSError as e:
            package_logger.warning(f"File logging disabled: {e}")
        else:
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            file_handler.setLevel(logging.DEBUG if level == "DEBUG" else logging.INFO)
            package_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level == "DEBUG" else logging.WARNING)

    return package_logger
