"""
SQL Query Module for the Performance Tracker service.

Provides query text generation for:
- Literal quoting for the bigquery and ansi dialects (quoting)
- Filter predicate compilation, including entity-level subqueries
  (filter_compiler)
- Deep-dive per-period and monthly-average aggregations (deep_dive_queries)
- Filter metadata distinct-value lookups (metadata_queries)

Example usage:
    from perftracker.sql import FilterCompiler, get_period_metrics_query

    compiler = FilterCompiler(table_ref, entity_field="pid")
    predicate = compiler.compile(filter_spec)
    sql = get_period_metrics_query(config, table_ref, start, end, [predicate])
"""

# =============================================================================
# QUOTING - Audited literal rendering
# =============================================================================

from perftracker.sql.quoting import (
    quote_literal,
    quote_string,
    quote_number,
    quote_date,
    escape_like,
    like_predicate,
    regex_predicate,
)

# =============================================================================
# FILTER COMPILER - Direct and entity-quantified predicates
# =============================================================================

from perftracker.sql.filter_compiler import (
    FilterCompiler,
    referenced_teams,
    TRUE_PREDICATE,
    FALSE_PREDICATE,
)

# =============================================================================
# DEEP DIVE QUERIES - Period aggregation and monthly averages
# =============================================================================

from perftracker.sql.deep_dive_queries import (
    get_period_metrics_query,
    get_monthly_average_query,
    monthly_average_window_start,
    MONTHLY_AVERAGE_WINDOW_MONTHS,
)

# =============================================================================
# METADATA QUERIES - Filter dropdown values
# =============================================================================

from perftracker.sql.metadata_queries import (
    get_distinct_values_query,
    METADATA_DIMENSIONS,
    DEFAULT_VALUE_LIMIT,
)

# =============================================================================
# TEAM QUERIES - Team/PIC mapping (PostgreSQL)
# =============================================================================

from perftracker.sql.team_queries import (
    TEAM_CONFIGURATIONS_QUERY,
    TEAM_PIC_MAPPINGS_QUERY,
)

__all__ = [
    # Quoting
    'quote_literal',
    'quote_string',
    'quote_number',
    'quote_date',
    'escape_like',
    'like_predicate',
    'regex_predicate',
    # Filter compiler
    'FilterCompiler',
    'referenced_teams',
    'TRUE_PREDICATE',
    'FALSE_PREDICATE',
    # Deep dive queries
    'get_period_metrics_query',
    'get_monthly_average_query',
    'monthly_average_window_start',
    'MONTHLY_AVERAGE_WINDOW_MONTHS',
    # Metadata queries
    'get_distinct_values_query',
    'METADATA_DIMENSIONS',
    'DEFAULT_VALUE_LIMIT',
    # Team queries
    'TEAM_CONFIGURATIONS_QUERY',
    'TEAM_PIC_MAPPINGS_QUERY',
]
