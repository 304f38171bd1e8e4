"""
Metric aggregation service for the deep-dive pipeline.

Runs one grouped aggregation per period against the warehouse, plus the
six-month monthly-average read used to size lost revenue, and merges the
results into one MergedEntityRecord per entity.

Key Functions:
- MetricAggregator.aggregate: concurrent period reads + full outer merge
- merge_period_frames: pandas outer merge on entity_key with zero fill

Merge rules:
- Rows with a NULL entity key are dropped (logged).
- Entities missing from a period get 0 revenue, requests and paid requests.
- The label (`name`) and non-count extra columns prefer period 2 values.
- Count columns (`*_count`) prefer period 2 and fall back to period 1.

The three reads are awaited together; if any of them fails the error
propagates and no partial result is produced.
"""

import asyncio
import logging
import math
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from perftracker.core.warehouse import WarehouseClient
from perftracker.models.enums import FilterDataType, Perspective
from perftracker.models.perspectives import PerspectiveConfig, get_perspective_config
from perftracker.models.records import MergedEntityRecord
from perftracker.models.schemas import Period
from perftracker.sql.deep_dive_queries import (
    get_monthly_average_query,
    get_period_metrics_query,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

METRIC_COLUMNS = ['revenue', 'requests', 'paid_requests']

# Output attribute -> (metric column, period suffix)
_METRIC_FIELDS = {
    'rev_p1': ('revenue', '_p1'),
    'rev_p2': ('revenue', '_p2'),
    'req_p1': ('requests', '_p1'),
    'req_p2': ('requests', '_p2'),
    'paid_p1': ('paid_requests', '_p1'),
    'paid_p2': ('paid_requests', '_p2'),
}


# =============================================================================
# Frame helpers
# =============================================================================


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _to_python(value: Any) -> Any:
    """Convert numpy scalars to Python values and NaN to None."""
    if _is_missing(value):
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value


def _coerce_keys(df: pd.DataFrame, key_type: FilterDataType) -> pd.DataFrame:
    if key_type == FilterDataType.NUMBER:
        df['entity_key'] = pd.to_numeric(df['entity_key'], errors='coerce')
        df = df.dropna(subset=['entity_key'])
        df['entity_key'] = df['entity_key'].astype('int64')
    else:
        df['entity_key'] = df['entity_key'].astype(str)
    return df


def rows_to_frame(
    rows: Sequence[Dict[str, Any]],
    config: PerspectiveConfig,
    label: str = 'period',
) -> pd.DataFrame:
    """
    Build a per-period DataFrame with a clean, typed entity_key column.

    Args:
        rows: Warehouse rows (dicts) from get_period_metrics_query.
        config: Perspective configuration.
        label: Period label used in log messages.

    Returns:
        DataFrame with entity_key, name, extra columns and metric columns.
    """
    columns = ['entity_key', 'name'] + config.extra_aliases + METRIC_COLUMNS
    df = pd.DataFrame(list(rows), columns=columns)

    null_keys = int(df['entity_key'].isna().sum())
    if null_keys:
        logger.warning(f"Dropping {null_keys} {label} rows with NULL {config.key_column}")
        df = df.dropna(subset=['entity_key'])

    df = _coerce_keys(df.copy(), config.key_type)

    for column in METRIC_COLUMNS:
        df[column] = pd.to_numeric(df[column], errors='coerce').fillna(0)

    duplicates = int(df['entity_key'].duplicated().sum())
    if duplicates:
        logger.warning(f"{duplicates} duplicate {config.key_column} keys in {label} rows; summing them")
        aggregations = {column: 'sum' for column in METRIC_COLUMNS}
        for column in ['name'] + config.extra_aliases:
            aggregations[column] = 'max' if column.endswith('_count') else 'first'
        df = df.groupby('entity_key', as_index=False, sort=False).agg(aggregations)

    return df


def merge_period_frames(
    df_p1: pd.DataFrame,
    df_p2: pd.DataFrame,
    config: PerspectiveConfig,
    df_monthly: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Full outer merge of two period frames on entity_key.

    Missing metrics become 0; label and extra columns prefer period 2.
    """
    merged = pd.merge(df_p1, df_p2, on='entity_key', how='outer', suffixes=('_p1', '_p2'))

    for column in METRIC_COLUMNS:
        for suffix in ('_p1', '_p2'):
            merged[column + suffix] = merged[column + suffix].fillna(0)

    for column in ['name'] + config.extra_aliases:
        merged[column] = merged[column + '_p2'].combine_first(merged[column + '_p1'])
        if column.endswith('_count'):
            merged[column] = pd.to_numeric(merged[column], errors='coerce').fillna(0)

    if df_monthly is not None and not df_monthly.empty:
        merged = pd.merge(merged, df_monthly, on='entity_key', how='left')
    else:
        merged['avg_monthly_revenue'] = np.nan
        merged['months_with_data'] = np.nan

    return merged


def frame_to_records(merged: pd.DataFrame, config: PerspectiveConfig) -> List[MergedEntityRecord]:
    """Convert a merged frame into MergedEntityRecord objects."""
    records: List[MergedEntityRecord] = []
    for row in merged.to_dict('records'):
        metrics = {}
        for attr, (column, suffix) in _METRIC_FIELDS.items():
            value = _to_python(row[column + suffix]) or 0
            metrics[attr] = float(value) if attr.startswith('rev') else int(value)

        extras = {}
        for alias in config.extra_aliases:
            value = _to_python(row.get(alias))
            if alias.endswith('_count'):
                value = int(value or 0)
            extras[alias] = value

        name = _to_python(row.get('name'))
        avg_monthly = _to_python(row.get('avg_monthly_revenue'))
        if avg_monthly is not None and not math.isfinite(float(avg_monthly)):
            avg_monthly = None
        months = _to_python(row.get('months_with_data'))

        records.append(MergedEntityRecord(
            entity_key=_to_python(row['entity_key']),
            name=str(name) if name is not None else None,
            extras=extras,
            avg_monthly_revenue=float(avg_monthly) if avg_monthly is not None else None,
            months_with_data=int(months) if months is not None else None,
            **metrics,
        ))
    return records


def _monthly_frame(rows: Sequence[Dict[str, Any]], config: PerspectiveConfig) -> pd.DataFrame:
    df = pd.DataFrame(list(rows), columns=['entity_key', 'avg_monthly_revenue', 'months_with_data'])
    df = df.dropna(subset=['entity_key'])
    df = _coerce_keys(df.copy(), config.key_type)
    df['avg_monthly_revenue'] = pd.to_numeric(df['avg_monthly_revenue'], errors='coerce')
    df['months_with_data'] = pd.to_numeric(df['months_with_data'], errors='coerce')
    return df.drop_duplicates(subset=['entity_key'])


# =============================================================================
# Aggregator
# =============================================================================


class MetricAggregator:
    """
    Fetch and merge per-entity metrics for two periods.

    The aggregator is read-only and never retries; callers may retry the
    whole call.

    Example:
        aggregator = MetricAggregator(warehouse)
        records = await aggregator.aggregate(Perspective.PID, p1, p2, predicates)
    """

    def __init__(self, warehouse: WarehouseClient):
        self.warehouse = warehouse

    async def aggregate(
        self,
        perspective: Perspective,
        period1: Period,
        period2: Period,
        predicates: Sequence[str] = (),
        include_monthly_average: bool = True,
    ) -> List[MergedEntityRecord]:
        """
        Aggregate both periods and merge them by entity key.

        Args:
            perspective: Grouping perspective (team is handled by
                perftracker.services.teams on top of the pic perspective).
            period1: Comparison baseline period.
            period2: Current period.
            predicates: Compiled predicates AND-ed into every read.
            include_monthly_average: Also read the six-month monthly average
                ending at period1.end.

        Returns:
            One MergedEntityRecord per entity seen in either period.

        Raises:
            DataSourceError: If any warehouse read fails.
        """
        config = get_perspective_config(perspective)
        table_ref = self.warehouse.table_ref
        dialect = self.warehouse.dialect

        queries = [
            get_period_metrics_query(config, table_ref, period1.start, period1.end, predicates, dialect),
            get_period_metrics_query(config, table_ref, period2.start, period2.end, predicates, dialect),
        ]
        if include_monthly_average:
            queries.append(get_monthly_average_query(config, table_ref, period1.end, predicates, dialect))

        logger.info(
            f"Aggregating {config.perspective.value} metrics for "
            f"{period1.start}..{period1.end} vs {period2.start}..{period2.end}"
        )
        results = await asyncio.gather(*(self.warehouse.fetch(sql) for sql in queries))

        df_p1 = rows_to_frame(results[0], config, 'period1')
        df_p2 = rows_to_frame(results[1], config, 'period2')
        df_monthly = _monthly_frame(results[2], config) if include_monthly_average else None

        merged = merge_period_frames(df_p1, df_p2, config, df_monthly)
        records = frame_to_records(merged, config)
        logger.info(
            f"Merged {len(records)} {config.perspective.value} entities "
            f"({len(df_p1)} in period1, {len(df_p2)} in period2)"
        )
        return records
