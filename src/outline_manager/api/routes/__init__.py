"""API route modules.

Route organization:
- proxy: Forwarding to remote management APIs (/api/outline-proxy)
- servers: Durable server document (/api/servers)
- server: Connection test for unregistered servers (/api/server)
"""

from . import proxy, server, servers

__all__ = [
    "proxy",
    "server",
    "servers",
]
