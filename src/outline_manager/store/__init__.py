"""Two-tier server document store and its synchronization."""

from .config_store import ConfigStore
from .importers import ServerImport, parse_access_text, parse_server_json
from .sync import SyncEngine
from .tiers import DocumentTier, DurableTier, FileTier, MemoryTier, RemoteTier

__all__ = [
    "ConfigStore",
    "DocumentTier",
    "DurableTier",
    "FileTier",
    "MemoryTier",
    "RemoteTier",
    "ServerImport",
    "SyncEngine",
    "parse_access_text",
    "parse_server_json",
]
