"""HTTP boundaries of the serving process."""

from .server import create_app

__all__ = ["create_app"]
