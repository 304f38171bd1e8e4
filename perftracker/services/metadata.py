"""
Filter metadata service.

Lists the distinct values of each filter dimension for the dashboard's
dropdowns, plus the configured teams. Results are cached process-wide
with an explicit TTL; the tiering path never reads this cache.

Each dimension is returned as a list of {"label", "value"} options.
Months are labelled with their English month name.
"""

import asyncio
import calendar
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from perftracker.core.dependencies import QueryRunner
from perftracker.core.exceptions import DataSourceError
from perftracker.core.warehouse import WarehouseClient
from perftracker.services.teams import load_team_mapping
from perftracker.sql.metadata_queries import METADATA_DIMENSIONS, get_distinct_values_query

logger = logging.getLogger(__name__)


# =============================================================================
# TTL cache
# =============================================================================

# (data, stored_at monotonic seconds)
_cache: Optional[Tuple[Dict[str, List[Dict[str, Any]]], float]] = None
_cache_lock = asyncio.Lock()


def clear_metadata_cache() -> None:
    """Drop the cached metadata."""
    global _cache
    _cache = None


def _cached(ttl_seconds: float) -> Optional[Tuple[Dict[str, List[Dict[str, Any]]], float]]:
    if _cache is None:
        return None
    data, stored_at = _cache
    age = time.monotonic() - stored_at
    if age >= ttl_seconds:
        return None
    return data, age


# =============================================================================
# Formatting
# =============================================================================


def _option(value: Any, label: Optional[str] = None) -> Dict[str, Any]:
    text = "" if value is None else str(value)
    return {"label": label if label is not None else text, "value": text}


def _month_label(value: Any) -> str:
    try:
        month = int(value)
    except (TypeError, ValueError):
        return str(value)
    if 1 <= month <= 12:
        return calendar.month_name[month]
    return str(value)


def format_dimension(key: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if key == "months":
        return [_option(row["value"], _month_label(row["value"])) for row in rows]
    return [_option(row["value"]) for row in rows]


# =============================================================================
# Service
# =============================================================================


async def _fetch_teams(run_query: QueryRunner) -> List[Dict[str, Any]]:
    try:
        mapping = await load_team_mapping(run_query)
    except DataSourceError as e:
        logger.warning(f"Team configuration unavailable, returning no teams: {e}")
        return []
    return [_option(team.team_id, team.team_name) for team in mapping.teams]


async def get_filter_metadata(
    warehouse: WarehouseClient,
    run_query: QueryRunner,
    ttl_seconds: float = 300.0,
    value_limit: int = 1000,
) -> Tuple[Dict[str, List[Dict[str, Any]]], bool, float]:
    """
    Distinct values for every filter dimension.

    Args:
        warehouse: Warehouse client.
        run_query: Relational store query runner (team list).
        ttl_seconds: Cache lifetime.
        value_limit: Max values per dimension.

    Returns:
        (data, served_from_cache, cache_age_seconds)

    Raises:
        DataSourceError: If a warehouse read fails.
    """
    global _cache

    hit = _cached(ttl_seconds)
    if hit is not None:
        logger.info("Returning cached filter metadata")
        return hit[0], True, hit[1]

    async with _cache_lock:
        hit = _cached(ttl_seconds)
        if hit is not None:
            return hit[0], True, hit[1]

        logger.info("Filter metadata cache miss, querying warehouse")
        keys = list(METADATA_DIMENSIONS.keys())
        queries = [
            get_distinct_values_query(warehouse.table_ref, METADATA_DIMENSIONS[key], value_limit)
            for key in keys
        ]
        results = await asyncio.gather(
            *(warehouse.fetch(sql) for sql in queries),
            _fetch_teams(run_query),
        )

        data = {key: format_dimension(key, rows) for key, rows in zip(keys, results[:-1])}
        data["teams"] = results[-1]

        _cache = (data, time.monotonic())
        return data, False, 0.0
