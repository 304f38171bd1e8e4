"""
Package initialization file for perftracker models.

Exports the enumerations, pydantic schemas, perspective configurations and
pipeline record types so other modules can import them from
perftracker.models directly.

Usage:
    from perftracker.models import (
        Perspective,
        DeepDiveRequest,
        FilterSpec,
        MergedEntityRecord,
        get_perspective_config,
    )
"""

# =============================================================================
# Enums
# =============================================================================

from perftracker.models.enums import (
    Perspective,
    RevenueTier,
    EntityStatus,
    DisplayTier,
    WarningSeverity,
    FilterField,
    FilterDataType,
    FilterOperator,
    SCALAR_OPERATORS,
    LIST_OPERATORS,
    ENTITY_OPERATORS,
    CROSS_REFERENCE_OPERATORS,
    IncludeExclude,
    ClauseLogic,
    SqlDialect,
)

# =============================================================================
# Schemas
# =============================================================================

from perftracker.models.schemas import (
    FIELD_TYPES,
    Period,
    SimpleClause,
    ListClause,
    QuantifiedClause,
    CrossReferenceClause,
    FilterClause,
    FilterSpec,
    DeepDiveRequest,
    TieredRecordOut,
    Summary,
    DeepDiveResponse,
    MetadataResponse,
    ErrorDetail,
    ErrorResponse,
)

# =============================================================================
# Perspectives and records
# =============================================================================

from perftracker.models.perspectives import (
    PerspectiveConfig,
    PERSPECTIVE_CONFIGS,
    get_perspective_config,
    validate_drill_down,
)
from perftracker.models.records import (
    MergedEntityRecord,
    TieredRecord,
)

__all__ = [
    # Enums
    'Perspective',
    'RevenueTier',
    'EntityStatus',
    'DisplayTier',
    'WarningSeverity',
    'FilterField',
    'FilterDataType',
    'FilterOperator',
    'SCALAR_OPERATORS',
    'LIST_OPERATORS',
    'ENTITY_OPERATORS',
    'CROSS_REFERENCE_OPERATORS',
    'IncludeExclude',
    'ClauseLogic',
    'SqlDialect',
    # Schemas
    'FIELD_TYPES',
    'Period',
    'SimpleClause',
    'ListClause',
    'QuantifiedClause',
    'CrossReferenceClause',
    'FilterClause',
    'FilterSpec',
    'DeepDiveRequest',
    'TieredRecordOut',
    'Summary',
    'DeepDiveResponse',
    'MetadataResponse',
    'ErrorDetail',
    'ErrorResponse',
    # Perspectives and records
    'PerspectiveConfig',
    'PERSPECTIVE_CONFIGS',
    'get_perspective_config',
    'validate_drill_down',
    'MergedEntityRecord',
    'TieredRecord',
]
