"""Application configuration for outline-manager.

Defines the configuration model for the HTTP boundary, the forwarding
gateway, the durable document location, and logging. Config is stored at
the OS-appropriate location (via click.get_app_dir).

Example usage:
    # Load from config file (defaults if missing or invalid)
    config = load_app_config()

    # Save configuration
    save_app_config(config)
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_LOG_DIR",
    "AppConfig",
    "LoggingConfig",
    "get_config_path",
    "get_data_file_path",
    "load_app_config",
    "load_app_config_strict",
    "save_app_config",
]

import json
import logging
from pathlib import Path
from typing import Literal

from platformdirs import user_log_dir
from pydantic import BaseModel, Field, ValidationError

from outline_manager.constants import (
    APP_NAME,
    CONFIG_FILENAME,
    DATA_FILENAME,
    DEFAULT_BODY_PREVIEW_CHARS,
    DEFAULT_HOST,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_PORT,
    MAX_HTTP_TIMEOUT_SECONDS,
    MIN_HTTP_TIMEOUT_SECONDS,
)
from outline_manager.exceptions import ConfigurationError
from outline_manager.utils.file_helpers import get_app_dir, set_secure_permissions

_logger = logging.getLogger(f"{APP_NAME}.config")

# Platform log directory (macOS: ~/Library/Logs/outline-manager, Linux: ~/.local/state/outline-manager/log)
DEFAULT_LOG_DIR = user_log_dir(APP_NAME)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        log_dir: Directory for the JSONL log file. Empty string disables file logging.
        log_level: Minimum level to emit.
        enabled: When False, the application logger drops every record.
        body_preview_chars: Gateway request/response bodies are truncated to this length.
    """

    log_dir: str = DEFAULT_LOG_DIR
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    enabled: bool = True
    body_preview_chars: int = Field(default=DEFAULT_BODY_PREVIEW_CHARS, ge=0)


class AppConfig(BaseModel):
    """outline-manager configuration.

    Attributes:
        host: Bind address of the HTTP boundary.
        port: HTTP port of the boundary.
        data_file: Path of the durable server document. Empty means
            <app dir>/servers.json.
        http_timeout_seconds: Timeout for requests to remote management APIs.
        pin_certificates: Compare each server's presented certificate against
            its stored certSha256 and reject on mismatch.
        logging: Logging configuration.
    """

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=1024, le=65535)
    data_file: str = ""
    http_timeout_seconds: int = Field(
        default=DEFAULT_HTTP_TIMEOUT_SECONDS,
        ge=MIN_HTTP_TIMEOUT_SECONDS,
        le=MAX_HTTP_TIMEOUT_SECONDS,
    )
    pin_certificates: bool = True
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "ignore"}  # Ignore unknown fields for forward compat


def get_config_path() -> Path:
    """Get the full path to the config file.

    Returns:
        Path to config.json in the app directory.
    """
    return get_app_dir() / CONFIG_FILENAME


def get_data_file_path(config: AppConfig) -> Path:
    """Get the durable document path for a configuration.

    Args:
        config: Application configuration.

    Returns:
        Expanded data_file, or <app dir>/servers.json when unset.
    """
    if config.data_file:
        return Path(config.data_file).expanduser()
    return get_app_dir() / DATA_FILENAME


def load_app_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from file.

    If the config file doesn't exist, returns default configuration.
    Invalid JSON or validation errors return default config with a warning.

    Args:
        config_path: Config file to read. Defaults to get_config_path().

    Returns:
        AppConfig: Loaded or default configuration.
    """
    config_path = config_path or get_config_path()

    if not config_path.exists():
        return AppConfig()

    try:
        with config_path.open(encoding="utf-8") as f:
            data = json.load(f)
        return AppConfig.model_validate(data)
    except json.JSONDecodeError as e:
        _logger.warning(
            {
                "event": "config_invalid_json",
                "message": f"Invalid JSON in config, using defaults: {e}",
                "error_type": type(e).__name__,
                "details": {"config_path": str(config_path)},
            }
        )
        return AppConfig()
    except ValidationError as e:
        _logger.warning(
            {
                "event": "config_validation_failed",
                "message": f"Invalid config values, using defaults: {e}",
                "error_type": type(e).__name__,
                "details": {"config_path": str(config_path)},
            }
        )
        return AppConfig()
    except OSError as e:
        _logger.warning(
            {
                "event": "config_read_failed",
                "message": f"Failed to read config file, using defaults: {e}",
                "error_type": type(e).__name__,
                "details": {"config_path": str(config_path)},
            }
        )
        return AppConfig()


def load_app_config_strict(config_path: Path | None = None) -> AppConfig:
    """Load configuration, raising on invalid content.

    A missing file still yields defaults: every field has one.

    Args:
        config_path: Config file to read. Defaults to get_config_path().

    Returns:
        AppConfig: Validated configuration.

    Raises:
        ConfigurationError: If the file is unreadable, not JSON, or invalid.
    """
    config_path = config_path or get_config_path()

    if not config_path.exists():
        return AppConfig()

    try:
        with config_path.open(encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config in {config_path}: {e}") from e


def save_app_config(config: AppConfig, config_path: Path | None = None) -> None:
    """Save configuration to file.

    Creates the config directory if it doesn't exist.
    Sets secure file permissions (0600).

    Args:
        config: Configuration to save.
        config_path: Destination. Defaults to get_config_path().

    Raises:
        OSError: If unable to write config file.
    """
    config_path = config_path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with config_path.open("w", encoding="utf-8") as f:
        json.dump(config.model_dump(), f, indent=2)
        f.write("\n")

    set_secure_permissions(config_path)
