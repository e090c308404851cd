"""Logger setup for outline-manager.

configure_logging() builds the application logger from LoggingConfig and
returns it. Components take that logger (or a child of it) through their
constructors instead of reaching for a shared module instance, so level and
enabled flag come from configuration, not from mutation at import time.

Handlers:
- stderr: ConsoleFormatter, human-readable
- file: ISO8601Formatter, JSONL at <log_dir>/outline-manager.jsonl
"""

from __future__ import annotations

__all__ = [
    "LOG_FILENAME",
    "configure_logging",
    "get_component_logger",
]

import logging
import sys
from pathlib import Path

from outline_manager.config import LoggingConfig
from outline_manager.constants import APP_NAME
from outline_manager.utils.logging.iso_formatter import ConsoleFormatter, ISO8601Formatter

LOG_FILENAME = f"{APP_NAME}.jsonl"


def _ensure_secure_log_directory(log_file: Path) -> None:
    """Create log directory with secure permissions.

    Args:
        log_file: Path to the log file (parent directory will be created).

    Raises:
        OSError: If directory creation fails.
    """
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        if sys.platform != "win32":
            try:
                log_file.parent.chmod(0o700)
            except OSError:
                pass  # Permission changes might fail on some systems
    except OSError as e:
        raise OSError(f"Failed to create log directory {log_file.parent}: {e}") from e


def configure_logging(
    config: LoggingConfig,
    *,
    console: bool = True,
    logger_name: str = APP_NAME,
) -> logging.Logger:
    """Configure and return the application logger.

    Existing handlers on the logger are closed and replaced, so calling this
    twice does not duplicate output.

    Args:
        config: Logging configuration (level, enabled flag, log_dir).
        console: Attach a stderr handler.
        logger_name: Name of the logger to configure.

    Returns:
        logging.Logger: Configured logger. Components derive children via
        get_component_logger().
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, config.log_level))
    logger.propagate = False
    logger.disabled = not config.enabled

    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    if not config.enabled:
        # Component children propagate here; nothing below this logger emits
        logger.addHandler(logging.NullHandler())
        return logger

    if console:
        stderr_handler = logging.StreamHandler()
        stderr_handler.setFormatter(ConsoleFormatter())
        logger.addHandler(stderr_handler)

    if config.log_dir:
        log_file = Path(config.log_dir).expanduser() / LOG_FILENAME
        try:
            _ensure_secure_log_directory(log_file)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setFormatter(ISO8601Formatter())
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(
                {
                    "event": "log_file_unavailable",
                    "message": f"File logging disabled: {e}",
                    "log_file": str(log_file),
                }
            )

    return logger


def get_component_logger(parent: logging.Logger | None, component: str) -> logging.Logger:
    """Get the logger a component should write to.

    Args:
        parent: Logger handed to the component, or None.
        component: Component suffix (e.g., "gateway").

    Returns:
        parent.getChild(component), or the named APP_NAME child when no
        parent was given.
    """
    if parent is None:
        return logging.getLogger(f"{APP_NAME}.{component}")
    return parent.getChild(component)
