"""
Deep-dive SQL query builders for the monthly metrics table.

Query functions return complete SQL strings. Predicates passed in are
already compiled (see perftracker.sql.filter_compiler); dates are rendered
through perftracker.sql.quoting.

Table columns used: DATE, req, rev, paid, pid, mid, zid, pic, product,
pubname, medianame, zonename, year, month.

Queries:
- get_period_metrics_query: one row per entity for one period
- get_monthly_average_query: six-month average monthly revenue per entity
"""

from datetime import date
from typing import List, Optional, Sequence

import pandas as pd

from perftracker.models.enums import FilterDataType, SqlDialect
from perftracker.models.perspectives import PerspectiveConfig
from perftracker.sql.quoting import quote_literal

# Months of history behind the average used to size lost revenue
MONTHLY_AVERAGE_WINDOW_MONTHS = 6


def _date_bounds(start: date, end: date, dialect: SqlDialect) -> str:
    start_literal = quote_literal(start, FilterDataType.DATE, dialect, "period.start")
    end_literal = quote_literal(end, FilterDataType.DATE, dialect, "period.end")
    return f"DATE >= {start_literal} AND DATE <= {end_literal}"


def _where(bounds: str, predicates: Sequence[str]) -> str:
    conditions = [bounds] + [p for p in predicates if p and p != "TRUE"]
    return "\n        AND ".join(conditions)


def get_period_metrics_query(
    config: PerspectiveConfig,
    table_ref: str,
    start: date,
    end: date,
    predicates: Optional[Sequence[str]] = None,
    dialect: SqlDialect = SqlDialect.BIGQUERY,
) -> str:
    """
    Generate the per-entity aggregation for one period.

    Args:
        config: Perspective configuration (key column, label, extra columns).
        table_ref: Quoted metrics table reference.
        start: Period start (inclusive).
        end: Period end (inclusive).
        predicates: Compiled predicates AND-ed into the WHERE clause
            (simple filters, drill-down parent, simplified filter).
        dialect: Literal quoting dialect.

    Returns:
        SQL selecting entity_key, name, extra columns, revenue, requests
        and paid_requests grouped by the perspective key.

    Example:
        >>> sql = get_period_metrics_query(get_perspective_config("pid"),
        ...     "`proj.ds.table`", date(2025, 9, 1), date(2025, 9, 30))
    """
    key = config.key_column
    select_columns: List[str] = [
        f"{key} AS entity_key",
        f"{config.name_expression} AS name",
    ]
    select_columns.extend(f"{expression} AS {alias}" for alias, expression in config.extra_columns)
    select_columns.extend([
        "SUM(rev) AS revenue",
        "SUM(req) AS requests",
        "SUM(paid) AS paid_requests",
    ])
    columns_sql = ",\n        ".join(select_columns)

    return f"""
    SELECT
        {columns_sql}
    FROM {table_ref}
    WHERE {_where(_date_bounds(start, end, dialect), predicates or [])}
    GROUP BY {key}
    """


def monthly_average_window_start(end: date, months: int = MONTHLY_AVERAGE_WINDOW_MONTHS) -> date:
    """First day covered by the monthly average window ending at `end`."""
    return (pd.Timestamp(end) - pd.DateOffset(months=months)).date()


def get_monthly_average_query(
    config: PerspectiveConfig,
    table_ref: str,
    end: date,
    predicates: Optional[Sequence[str]] = None,
    dialect: SqlDialect = SqlDialect.BIGQUERY,
    months: int = MONTHLY_AVERAGE_WINDOW_MONTHS,
) -> str:
    """
    Generate the average monthly revenue per entity over the `months`
    months ending at `end` (inclusive).

    Returns:
        SQL selecting entity_key, avg_monthly_revenue and months_with_data.
    """
    key = config.key_column
    start = monthly_average_window_start(end, months)

    return f"""
    WITH monthly_revenue AS (
        SELECT
            {key} AS entity_key,
            year,
            month,
            SUM(rev) AS monthly_rev
        FROM {table_ref}
        WHERE {_where(_date_bounds(start, end, dialect), predicates or [])}
        GROUP BY {key}, year, month
    )
    SELECT
        entity_key,
        AVG(monthly_rev) AS avg_monthly_revenue,
        COUNT(*) AS months_with_data
    FROM monthly_revenue
    GROUP BY entity_key
    """
