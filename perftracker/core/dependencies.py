"""
FastAPI dependency injection for the Performance Tracker service.

Key Dependencies Provided:
- get_settings_dependency / SettingsDep: the cached Settings singleton
- get_warehouse / WarehouseDep: the WarehouseClient built in the lifespan
- get_team_store / TeamStoreDep: async callable running team mapping queries

Overriding in tests:
    app.dependency_overrides[get_warehouse] = lambda: fake_warehouse
    app.dependency_overrides[get_team_store] = lambda: fake_query
"""

from typing import Annotated, Any, Awaitable, Callable, List

from fastapi import Depends, HTTPException, Request

from perftracker.core.config import Settings, get_settings
from perftracker.core.database import execute_query
from perftracker.core.warehouse import WarehouseClient

# Signature of execute_query: (sql, *args) -> rows
QueryRunner = Callable[..., Awaitable[List[Any]]]


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so tests can override it:
        app.dependency_overrides[get_settings_dependency] = lambda: mock_settings
    """
    return get_settings()


# =============================================================================
# Warehouse Dependency
# =============================================================================

def get_warehouse(request: Request) -> WarehouseClient:
    """
    Return the WarehouseClient stored on app.state by the lifespan.

    Raises:
        HTTPException 502: If the client was not initialized at startup.
    """
    warehouse = getattr(request.app.state, "warehouse", None)
    if warehouse is None:
        raise HTTPException(status_code=502, detail="Warehouse client is not initialized")
    return warehouse


# =============================================================================
# Team Mapping Store Dependency
# =============================================================================

def get_team_store() -> QueryRunner:
    """
    Return the coroutine used to read team mapping tables.

    The pool is acquired lazily per query, so requests that never touch
    team data do not need a configured database.
    """
    return execute_query


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

WarehouseDep = Annotated[WarehouseClient, Depends(get_warehouse)]

TeamStoreDep = Annotated[QueryRunner, Depends(get_team_store)]
