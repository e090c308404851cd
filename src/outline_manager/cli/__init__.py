"""Command-line interface for outline-manager.

Provides commands for registering servers, managing access keys, and
serving the HTTP API.
"""

from .main import cli, main

__all__ = ["cli", "main"]
