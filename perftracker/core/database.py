"""
Async PostgreSQL connection pool for the team/PIC mapping store.

The warehouse holds every metric; the relational store only holds the
team configuration (`team_configurations`, `team_pic_mappings`). The pool
is created in the FastAPI lifespan when DATABASE_URL is set and closed on
shutdown.

Key Components:
- Global connection pool singleton (_pool)
- init_db(): Initialize the connection pool at application startup
- get_db_pool(): Get the pool instance (initializes if needed)
- close_db(): Gracefully close the pool at application shutdown
- execute_query(): Convenience helper for executing read queries

Connection Pool Configuration:
- min_size: 1
- max_size: 5
- command_timeout: 30 seconds

Usage:
    # At application startup (in FastAPI lifespan)
    await init_db()

    # In services
    rows = await execute_query("SELECT team_id, team_name FROM team_configurations")

    # At application shutdown
    await close_db()
"""

import logging
from typing import Any, List, Optional

import asyncpg
from asyncpg import Pool

from perftracker.core.config import get_settings
from perftracker.core.exceptions import DataSourceError

logger = logging.getLogger(__name__)


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called
_pool: Optional[Pool] = None


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def init_db() -> Pool:
    """
    Initialize the database connection pool.

    Idempotent: returns the existing pool when already initialized.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        DataSourceError: If DATABASE_URL is not configured.
        asyncpg.PostgresError: If connection to the database fails.
        OSError: If the database host is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise DataSourceError("postgres", "DATABASE_URL is not configured")

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=1,
            max_size=5,
            command_timeout=30,
        )

    return _pool


async def get_db_pool() -> Pool:
    """
    Get the database connection pool, initializing if needed.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        DataSourceError: If DATABASE_URL is not configured.
        asyncpg.PostgresError: If connection to the database fails during lazy init.
    """
    global _pool

    if _pool is None:
        await init_db()

    assert _pool is not None, "Pool should be initialized after init_db()"

    return _pool


async def close_db() -> None:
    """
    Close the database connection pool gracefully.

    Idempotent: a no-op when the pool was never initialized.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None


# =============================================================================
# Query Execution Helper
# =============================================================================

async def execute_query(query: str, *args: Any) -> List[asyncpg.Record]:
    """
    Execute a single read query and return its rows.

    Args:
        query: SQL query string with optional $1, $2, etc. placeholders.
        *args: Query parameters matching the placeholders.

    Returns:
        List[asyncpg.Record]: Rows returned by the query.

    Raises:
        DataSourceError: If the pool is unavailable or the query fails.
    """
    try:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            return await conn.fetch(query, *args)
    except DataSourceError:
        raise
    except (asyncpg.PostgresError, OSError) as e:
        logger.error(f"PostgreSQL query failed: {e}")
        raise DataSourceError("postgres", str(e)) from e
