"""
Core infrastructure package for the Performance Tracker service.

Provides:
- Configuration management via pydantic-settings
- BigQuery warehouse access via google-cloud-bigquery
- Async PostgreSQL connectivity via asyncpg (team mapping store)
- Domain exceptions
- FastAPI dependency injection utilities

Simplified imports:

    from perftracker.core import get_settings, WarehouseDep, DataSourceError
"""

from perftracker.core.exceptions import (
    PerfTrackerError,
    InputValidationError,
    DataSourceError,
)
from perftracker.core.config import Settings, get_settings
from perftracker.core.database import init_db, close_db, get_db_pool, execute_query
from perftracker.core.warehouse import WarehouseClient
from perftracker.core.dependencies import (
    get_settings_dependency,
    get_warehouse,
    get_team_store,
    SettingsDep,
    WarehouseDep,
    TeamStoreDep,
)

__all__ = [
    # Exceptions
    'PerfTrackerError',
    'InputValidationError',
    'DataSourceError',
    # Configuration
    'Settings',
    'get_settings',
    # PostgreSQL pool lifecycle
    'init_db',
    'close_db',
    'get_db_pool',
    'execute_query',
    # Warehouse
    'WarehouseClient',
    # FastAPI dependencies
    'get_settings_dependency',
    'get_warehouse',
    'get_team_store',
    'SettingsDep',
    'WarehouseDep',
    'TeamStoreDep',
]
