"""Shared file utilities for outline-manager.

Provides common utilities used by config and the durable document tier:
- get_app_dir: OS-appropriate application directory
- set_secure_permissions: Secure file/directory permissions
- write_json_atomic: Full-document replace of a JSON file
"""

from __future__ import annotations

__all__ = [
    "get_app_dir",
    "set_secure_permissions",
    "write_json_atomic",
]

import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any

import click

from outline_manager.constants import APP_NAME


def get_app_dir() -> Path:
    """Get the OS-appropriate application directory.

    Uses click.get_app_dir() which returns:
    - macOS: ~/Library/Application Support/outline-manager
    - Linux: ~/.config/outline-manager (XDG compliant)
    - Windows: C:\\Users\\<user>\\AppData\\Roaming\\outline-manager

    Returns:
        Path to the application directory.
    """
    return Path(click.get_app_dir(APP_NAME))


def set_secure_permissions(path: Path, *, is_directory: bool = False) -> None:
    """Set secure permissions on file or directory.

    Sets permissions to restrict access to owner only:
    - Directory: 0o700 (rwx------)
    - File: 0o600 (rw-------)

    Does nothing on Windows. Silently ignores permission errors
    (some systems don't allow permission changes).

    Args:
        path: Path to file or directory.
        is_directory: If True, use directory permissions (0o700).
    """
    if sys.platform == "win32":
        return

    try:
        mode = 0o700 if is_directory else 0o600
        path.chmod(mode)
    except OSError:
        pass  # Permission changes might fail on some systems


def write_json_atomic(path: Path, data: Any) -> None:
    """Replace a JSON file in one step.

    Writes to a temp file in the same directory, then os.replace() swaps it
    in, so readers see either the old or the new document, never a partial
    one. Output uses 2-space indentation and a trailing newline.

    Args:
        path: Destination file.
        data: JSON-serializable data.

    Raises:
        OSError: If the directory or file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        set_secure_permissions(Path(tmp_name))
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
