"""Logging utilities.

This package provides logging infrastructure for outline-manager:
- iso_formatter: JSONL and console formatters
- logger_setup: configure_logging() and component logger lookup

Import directly from submodules:
    from outline_manager.utils.logging.logger_setup import configure_logging
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
