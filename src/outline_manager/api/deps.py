"""Shared dependencies for API routes.

Services live on app.state (set by create_app) and are handed to routes
through these dependencies.

Usage with Annotated:
    from outline_manager.api.deps import StoreDep

    @router.get("")
    async def get_servers(store: StoreDep) -> dict[str, Any]:
        ...
"""

from __future__ import annotations

__all__ = [
    # Dependency functions
    "get_config",
    "get_gateway",
    "get_store",
    # Type aliases for Annotated pattern
    "ConfigDep",
    "GatewayDep",
    "StoreDep",
]

from typing import Annotated, Any, Callable

from fastapi import Depends, HTTPException, Request

from outline_manager.config import AppConfig
from outline_manager.gateway import ProxyGateway
from outline_manager.store import ConfigStore


# =============================================================================
# Factory for State Getters
# =============================================================================


def _create_state_getter(
    attr_name: str,
    type_hint: str,
    error_detail: str,
) -> Callable[[Request], Any]:
    """Create a dependency function that retrieves a value from app.state.

    Args:
        attr_name: Attribute name on app.state (e.g., "store").
        type_hint: Type name for the docstring.
        error_detail: Error message for the 503 response.

    Returns:
        A dependency function compatible with FastAPI's Depends().
    """

    def getter(request: Request) -> Any:
        value = getattr(request.app.state, attr_name, None)
        if value is None:
            raise HTTPException(status_code=503, detail=error_detail)
        return value

    getter.__name__ = f"get_{attr_name}"
    getter.__doc__ = f"Get {type_hint} from app.state.\n\nRaises HTTPException 503 if not available."
    return getter


# =============================================================================
# Dependency Functions (generated via factory)
# =============================================================================

get_config: Callable[[Request], AppConfig] = _create_state_getter(
    "config",
    "AppConfig",
    "Config not available. Server may still be starting.",
)

get_store: Callable[[Request], ConfigStore] = _create_state_getter(
    "store",
    "ConfigStore",
    "Server store not available. Server may still be starting.",
)

get_gateway: Callable[[Request], ProxyGateway] = _create_state_getter(
    "gateway",
    "ProxyGateway",
    "Gateway not available. Server may still be starting.",
)


# =============================================================================
# Type Aliases for Annotated Pattern
# =============================================================================

ConfigDep = Annotated[AppConfig, Depends(get_config)]
StoreDep = Annotated[ConfigStore, Depends(get_store)]
GatewayDep = Annotated[ProxyGateway, Depends(get_gateway)]
