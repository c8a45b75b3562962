"""Centralized logging configuration for the Tally MCP server.

Log output goes to stderr: in stdio mode stdout carries the MCP protocol
stream and must not receive anything else.
"""

import logging
import sys
from typing import Optional, Union

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

LEVEL_NAMES = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def resolve_log_level(log_level: Union[int, str]) -> int:
    """Maps a configured level name ("warn", "info", ...) to a logging level."""
    if isinstance(log_level, int):
        return log_level
    level = LEVEL_NAMES.get(str(log_level).strip().lower())
    if level is None:
        raise ValueError(f"Unknown log level: {log_level}")
    return level


def setup_logging(
    log_level: Union[int, str] = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = None,
) -> None:
    """Configures the root logger for the application.

    Args:
        log_level: Minimum level, either a logging constant or a config name.
        log_format: The format string for log messages.
        log_file: Optional path to a file for logging output.
    """
    level = resolve_log_level(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers attached to the root logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logging.info(f"Logging to file: {log_file}")
        except OSError as e:
            logging.error(f"Failed to set up file logging to {log_file}: {e}", exc_info=True)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    logging.debug(f"Logging configured. Level={logging.getLevelName(level)}")
