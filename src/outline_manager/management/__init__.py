"""Outline management API client and the workflows built on it."""

from .client import ManagementApiClient
from .workflows import (
    apply_server_settings,
    check_connection,
    group_keys_by_name,
    refresh_key_count,
)

__all__ = [
    "ManagementApiClient",
    "apply_server_settings",
    "check_connection",
    "group_keys_by_name",
    "refresh_key_count",
]
