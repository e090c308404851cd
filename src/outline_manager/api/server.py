"""FastAPI application serving the HTTP boundaries.

Routes:
- Proxy (/api/outline-proxy) - forward a call to a remote management API
- Servers (/api/servers) - read and replace the durable server document
- Server (/api/server) - connection test for an unregistered server

The serving process owns the durable document, so the app's ConfigStore
runs in the owner context (FileTier, no cache).

Usage:
    For standalone development:
        uvicorn outline_manager.api.server:create_app --factory --port 3000
"""

from __future__ import annotations

__all__ = ["create_app"]

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from outline_manager import __version__
from outline_manager.config import AppConfig, get_data_file_path, load_app_config
from outline_manager.gateway import ProxyGateway
from outline_manager.store import ConfigStore, FileTier
from outline_manager.utils.logging.logger_setup import get_component_logger

from .errors import (
    APIError,
    api_error_handler,
    http_exception_handler,
    validation_error_handler,
)
from .routes import proxy, server, servers

# Comma-separated origins allowed to call the API from a browser on another origin
CORS_ORIGINS_ENV = "OUTLINE_MANAGER_CORS_ORIGINS"


def create_app(
    config: AppConfig | None = None,
    *,
    store: ConfigStore | None = None,
    gateway: ProxyGateway | None = None,
    logger: logging.Logger | None = None,
) -> FastAPI:
    """Create the FastAPI application with all routes.

    Args:
        config: Application config. Loaded from the config file when None.
        store: Server store. Defaults to a FileTier at the configured data file.
        gateway: Forwarding gateway. Defaults to one built from config and
            closed on shutdown; a gateway passed in is left open.
        logger: Application logger from configure_logging().

    Returns:
        Configured FastAPI application.
    """
    config = config or load_app_config()
    api_logger = get_component_logger(logger, "api")

    if store is None:
        store = ConfigStore(FileTier(get_data_file_path(config), logger=logger), logger=logger)

    owns_gateway = gateway is None
    if gateway is None:
        gateway = ProxyGateway(
            timeout=config.http_timeout_seconds,
            body_preview_chars=config.logging.body_preview_chars,
            logger=logger,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        api_logger.info(
            {
                "event": "api_started",
                "message": f"HTTP boundary ready on {config.host}:{config.port}",
                "pin_certificates": config.pin_certificates,
            }
        )
        try:
            yield
        finally:
            if owns_gateway:
                await app.state.gateway.aclose()

    app = FastAPI(
        title="outline-manager",
        description="Outline server manager API",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.store = store
    app.state.gateway = gateway

    # CORS is disabled unless origins are configured (e.g. a UI dev server)
    cors_origins_env = os.environ.get(CORS_ORIGINS_ENV, "").strip()
    if cors_origins_env:
        cors_origins = [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type"],
            max_age=3600,
        )

    # Register exception handlers for structured error responses
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # Mount API routes
    app.include_router(proxy.router, prefix="/api/outline-proxy", tags=["proxy"])
    app.include_router(servers.router, prefix="/api/servers", tags=["servers"])
    app.include_router(server.router, prefix="/api/server", tags=["server"])

    return app
