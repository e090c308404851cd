"""Application-wide constants for outline-manager.

Constants that define application behavior.
For user-configurable settings per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    # Files
    "CONFIG_FILENAME",
    "DATA_FILENAME",
    # HTTP server
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    # Gateway
    "DEFAULT_HTTP_TIMEOUT_SECONDS",
    "MIN_HTTP_TIMEOUT_SECONDS",
    "MAX_HTTP_TIMEOUT_SECONDS",
    "DEFAULT_BODY_PREVIEW_CHARS",
    "GATEWAY_METHODS",
    "BODY_METHODS",
    # Remote management protocol
    "ENDPOINT_ACCESS_KEYS",
    "ENDPOINT_SERVER",
    "ENDPOINT_SERVER_NAME",
    "ENDPOINT_PORT_FOR_NEW_KEYS",
    # Store
    "INITIAL_REVISION",
    "IMPORTED_SERVER_NAME_PREFIX",
]

# ============================================================================
# Application Identity
# ============================================================================

# Application name used for directory names and logger names
APP_NAME: str = "outline-manager"

# ============================================================================
# Files
# ============================================================================

# App config, stored in click.get_app_dir(APP_NAME)
CONFIG_FILENAME: str = "config.json"

# Durable server document, stored next to the config by default
DATA_FILENAME: str = "servers.json"

# ============================================================================
# HTTP Server
# ============================================================================

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 3000

# ============================================================================
# Gateway
# ============================================================================

# Timeout for requests forwarded to remote management APIs (seconds)
DEFAULT_HTTP_TIMEOUT_SECONDS: int = 30

# Timeout validation range (seconds)
MIN_HTTP_TIMEOUT_SECONDS: int = 1
MAX_HTTP_TIMEOUT_SECONDS: int = 300

# Response bodies are truncated to this many characters in logs
DEFAULT_BODY_PREVIEW_CHARS: int = 200

# Verbs the gateway relays
GATEWAY_METHODS: frozenset[str] = frozenset({"GET", "POST", "PUT", "DELETE"})

# Verbs that carry a JSON body
BODY_METHODS: frozenset[str] = frozenset({"POST", "PUT"})

# ============================================================================
# Remote Management Protocol (Outline-compatible, must not change)
# ============================================================================

ENDPOINT_ACCESS_KEYS: str = "access-keys"
ENDPOINT_SERVER: str = "server"
ENDPOINT_SERVER_NAME: str = "name"
ENDPOINT_PORT_FOR_NEW_KEYS: str = "port-for-new-access-keys"

# ============================================================================
# Store
# ============================================================================

# Revision of a document that was never written through a revision-aware tier
INITIAL_REVISION: int = 0

# Imports without a name get "Server <unix-ms>"
IMPORTED_SERVER_NAME_PREFIX: str = "Server"
