"""
Filter metadata SQL queries.

Each query lists the distinct non-null values of one dimension of the
metrics table, used to populate the dashboard's filter dropdowns.
"""

from typing import Dict

# Response key -> column, in display order
METADATA_DIMENSIONS: Dict[str, str] = {
    'pics': 'pic',
    'products': 'product',
    'pids': 'pid',
    'mids': 'mid',
    'pubnames': 'pubname',
    'medianames': 'medianame',
    'zids': 'zid',
    'zonenames': 'zonename',
    'months': 'month',
    'years': 'year',
}

# Years are listed newest first, everything else ascending
_DESCENDING_COLUMNS = frozenset({'year'})

DEFAULT_VALUE_LIMIT = 1000


def get_distinct_values_query(table_ref: str, column: str, limit: int = DEFAULT_VALUE_LIMIT) -> str:
    """
    Generate the distinct-values query for one dimension.

    Args:
        table_ref: Quoted metrics table reference.
        column: Column name from METADATA_DIMENSIONS.
        limit: Maximum number of values returned.

    Returns:
        SQL selecting the distinct values as `value`.

    Raises:
        ValueError: If the column is not a metadata dimension.
    """
    if column not in METADATA_DIMENSIONS.values():
        raise ValueError(f"Unknown metadata column: {column}")
    direction = 'DESC' if column in _DESCENDING_COLUMNS else 'ASC'
    return f"""
    SELECT DISTINCT {column} AS value
    FROM {table_ref}
    WHERE {column} IS NOT NULL
    ORDER BY value {direction}
    LIMIT {int(limit)}
    """
