"""outline-manager: manage Outline-compatible VPN relay servers.

Registers server endpoints, forwards administrative calls to each server's
management API, and keeps the server list in sync between a cache tier and
a durable JSON document.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
