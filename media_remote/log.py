"""
Logging setup for Media Remote.

Logs to stdout and, when a path is given, to a log file as well.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        verbose: If True, set log level to DEBUG. Otherwise INFO.
        log_file: Optional file to append log records to

    Returns:
        The media_remote package logger
    """
    level = logging.DEBUG if verbose else logging.INFO

    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handlers.append(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handlers.append(file_handler)
        except OSError as e:
            print(f"Warning: Could not setup file logging at {log_file}: {e}", file=sys.stderr)

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)

    # websockets logs every handshake failure at INFO/ERROR; keep it quieter
    logging.getLogger("websockets").setLevel(logging.INFO if verbose else logging.WARNING)

    logger = logging.getLogger("media_remote")
    logger.setLevel(level)
    return logger
