"""
Perftracker Services Module

Business logic for the deep-dive pipeline. Each service is stateless
apart from the filter metadata TTL cache.

Services:
- aggregation: concurrent period reads and full outer merge by entity
- tiering: ranking, Pareto tiers, status, advisories and severities
- summary: totals, changes and per-tier counts
- teams: team mapping and team perspective rollup
- metadata: filter dropdown values with TTL cache
- deep_dive: request orchestration
"""

# =============================================================================
# Aggregation Service Exports
# =============================================================================

from perftracker.services.aggregation import (
    MetricAggregator,
    rows_to_frame,
    merge_period_frames,
    frame_to_records,
)

# =============================================================================
# Tiering and Summary Service Exports
# =============================================================================

from perftracker.services.summary import summarize
from perftracker.services.tiering import (
    tier,
    tier_records,
    sort_key,
    classify_tier,
    classify_status,
    transition_warning,
    assess_severity,
    SEVERITY_RULES,
)

# =============================================================================
# Team Service Exports
# =============================================================================

from perftracker.services.teams import (
    Team,
    TeamMapping,
    load_team_mapping,
    rollup_teams,
)

# =============================================================================
# Metadata Service Exports
# =============================================================================

from perftracker.services.metadata import (
    get_filter_metadata,
    clear_metadata_cache,
)

# =============================================================================
# Deep Dive Orchestration Exports
# =============================================================================

from perftracker.services.deep_dive import (
    run_deep_dive,
    parse_filter_spec,
    build_predicates,
)

__all__ = [
    # ----- Aggregation -----
    'MetricAggregator',
    'rows_to_frame',
    'merge_period_frames',
    'frame_to_records',
    # ----- Tiering and summary -----
    'summarize',
    'tier',
    'tier_records',
    'sort_key',
    'classify_tier',
    'classify_status',
    'transition_warning',
    'assess_severity',
    'SEVERITY_RULES',
    # ----- Teams -----
    'Team',
    'TeamMapping',
    'load_team_mapping',
    'rollup_teams',
    # ----- Metadata -----
    'get_filter_metadata',
    'clear_metadata_cache',
    # ----- Deep dive -----
    'run_deep_dive',
    'parse_filter_spec',
    'build_predicates',
]
