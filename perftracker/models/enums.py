"""
Enumeration definitions for the Performance Tracker Deep Dive service.

All enums inherit from both `str` and `Enum` so they serialize to their plain
string values in Pydantic models and JSON responses.

Groups:
- Analysis dimensions: Perspective
- Tiering results: RevenueTier, EntityStatus, DisplayTier, WarningSeverity
- Filter grammar: FilterField, FilterDataType, FilterOperator,
  IncludeExclude, ClauseLogic
- Query text generation: SqlDialect
"""

from enum import Enum


class Perspective(str, Enum):
    """
    Grouping dimension for a deep-dive analysis.

    - pid: Publisher
    - mid: Media property
    - zone: Ad zone (grouped by zid)
    - product: Ad product
    - pic: Person in charge (account owner)
    - team: Team of PICs, rolled up from the pic perspective
    """
    PID = "pid"
    MID = "mid"
    ZONE = "zone"
    PRODUCT = "product"
    PIC = "pic"
    TEAM = "team"


class RevenueTier(str, Enum):
    """
    Pareto revenue-concentration bucket based on cumulative share of
    period-2 revenue.

    - A: cumulative share <= 80%
    - B: 80% < cumulative share <= 95%
    - C: cumulative share > 95% (or no period-2 revenue at all)
    """
    A = "A"
    B = "B"
    C = "C"


class EntityStatus(str, Enum):
    """
    Lifecycle status of an entity across the two compared periods.
    """
    EXISTING = "existing"
    NEW = "new"
    LOST = "lost"


class DisplayTier(str, Enum):
    """
    Tier label shown to users. New and lost entities are not folded into
    the A/B/C buckets for display.
    """
    A = "A"
    B = "B"
    C = "C"
    NEW = "NEW"
    LOST = "LOST"


class WarningSeverity(str, Enum):
    """
    Anomaly severity derived from request volume, eCPM and fill-rate swings.

    Ordered from least to most severe: healthy < info < warning < critical.
    Use `rank` to compare severities.
    """
    HEALTHY = "healthy"
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    WarningSeverity.HEALTHY: 0,
    WarningSeverity.INFO: 1,
    WarningSeverity.WARNING: 2,
    WarningSeverity.CRITICAL: 3,
}


class FilterField(str, Enum):
    """
    Warehouse columns that filter clauses may reference.

    Field names are interpolated into query text as identifiers, so only
    members of this enum are ever accepted. `team` is a virtual field that
    resolves to the PICs assigned to a team.
    """
    PID = "pid"
    MID = "mid"
    ZID = "zid"
    MONTH = "month"
    YEAR = "year"
    TEAM = "team"
    PIC = "pic"
    PRODUCT = "product"
    H5 = "h5"
    PUBNAME = "pubname"
    MEDIANAME = "medianame"
    ZONENAME = "zonename"


class FilterDataType(str, Enum):
    """
    Literal type used when rendering a filter value into query text.
    """
    STRING = "string"
    NUMBER = "number"
    DATE = "date"


class FilterOperator(str, Enum):
    """
    Operators supported by filter clauses.

    Direct operators compare a single row's column. Cross-reference and
    legacy entity operators quantify over all rows belonging to an entity
    and compile to subqueries. Cross-reference clauses name the entity
    column themselves; legacy ones use the perspective key.
    """
    # Direct operators, scalar value
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN = "less_than"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    REGEX_MATCH = "regex_match"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"

    # Direct operators, list value
    IN = "in"
    NOT_IN = "not_in"
    BETWEEN = "between"

    # Entity cross-reference operators: "<field> has <attributeField> <condition> <value>"
    HAS = "has"
    DOES_NOT_HAVE = "does_not_have"
    ONLY_HAS = "only_has"
    HAS_ALL = "has_all"
    HAS_ANY = "has_any"

    # Legacy entity-quantified operators, keyed by the perspective column
    ENTITY_HAS = "entity_has"
    ENTITY_NOT_HAS = "entity_not_has"
    ENTITY_HAS_ALL = "entity_has_all"
    ENTITY_HAS_ANY = "entity_has_any"
    ENTITY_ONLY_HAS = "entity_only_has"


SCALAR_OPERATORS = frozenset({
    FilterOperator.EQUALS,
    FilterOperator.NOT_EQUALS,
    FilterOperator.GREATER_THAN,
    FilterOperator.GREATER_THAN_OR_EQUAL,
    FilterOperator.LESS_THAN,
    FilterOperator.LESS_THAN_OR_EQUAL,
    FilterOperator.CONTAINS,
    FilterOperator.STARTS_WITH,
    FilterOperator.ENDS_WITH,
    FilterOperator.REGEX_MATCH,
    FilterOperator.IS_NULL,
    FilterOperator.IS_NOT_NULL,
})

LIST_OPERATORS = frozenset({
    FilterOperator.IN,
    FilterOperator.NOT_IN,
    FilterOperator.BETWEEN,
})

ENTITY_OPERATORS = frozenset({
    FilterOperator.ENTITY_HAS,
    FilterOperator.ENTITY_NOT_HAS,
    FilterOperator.ENTITY_HAS_ALL,
    FilterOperator.ENTITY_HAS_ANY,
    FilterOperator.ENTITY_ONLY_HAS,
})

CROSS_REFERENCE_OPERATORS = frozenset({
    FilterOperator.HAS,
    FilterOperator.DOES_NOT_HAVE,
    FilterOperator.ONLY_HAS,
    FilterOperator.HAS_ALL,
    FilterOperator.HAS_ANY,
})


class IncludeExclude(str, Enum):
    """
    Top-level toggle of a simplified filter: INCLUDE keeps matching rows,
    EXCLUDE keeps everything else.
    """
    INCLUDE = "INCLUDE"
    EXCLUDE = "EXCLUDE"


class ClauseLogic(str, Enum):
    """
    How the clauses of a simplified filter are combined.
    """
    AND = "AND"
    OR = "OR"


class SqlDialect(str, Enum):
    """
    Query dialect used for literal quoting.

    - bigquery: backslash escapes inside quoted strings (production warehouse)
    - ansi: single-quote doubling (SQLite, PostgreSQL)
    """
    BIGQUERY = "bigquery"
    ANSI = "ansi"
