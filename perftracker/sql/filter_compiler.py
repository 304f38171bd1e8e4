"""
Filter predicate compiler.

Turns a FilterSpec (and the request's simple key/value filters) into
WHERE-clause text for the metrics table.

Direct clauses compare a column of the current row. Entity clauses look at
every row of an entity and compile to subqueries over the same table.

Cross-reference clauses name the entity column (`field`) and the attribute
they test (`attributeField`), e.g. "zid has product equals 'video'":

    has(k, cond)              k IN (SELECT DISTINCT k FROM t WHERE cond)
    does_not_have(k, cond)    k NOT IN (SELECT DISTINCT k FROM t
                                        WHERE cond AND k IS NOT NULL)
    has_all(k, a, V)          k IN (SELECT k FROM t WHERE a IN (V)
                                    GROUP BY k HAVING COUNT(DISTINCT a) = |V|)
    has_any(k, a, V)          k IN (SELECT DISTINCT k FROM t WHERE a IN (V))
    only_has(k, a, V)         k IN (SELECT k FROM t WHERE a IS NOT NULL
                                    GROUP BY k
                                    HAVING COUNT(DISTINCT a) = |V|
                                       AND COUNT(DISTINCT CASE WHEN a IN (V)
                                                               THEN a END) = |V|)

`cond` is any direct clause on the attribute column. The legacy
`entity_*` operators are the same subqueries keyed by the perspective's
entity column, with `field` as the attribute:

    entity_has(f, v)          has(key, f = v)
    entity_not_has(f, v)      does_not_have(key, f = v)
    entity_has_all(f, V)      has_all(key, f, V)
    entity_has_any(f, V)      has_any(key, f, V)
    entity_only_has(f, V)     only_has(key, f, V)

|V| counts distinct values after literal rendering, so duplicates in the
request do not make a quantifier unsatisfiable.

The virtual `team` field resolves to `pic IN (<members>)` using the team
mapping supplied by the caller. A team without members matches nothing.

Usage:
    compiler = FilterCompiler(table_ref, entity_field="pid",
                              team_members={"alpha": ["alice", "bob"]})
    where = compiler.compile(filter_spec)   # 'TRUE' when nothing is enabled
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from perftracker.core.exceptions import InputValidationError
from perftracker.models.enums import (
    ClauseLogic,
    FilterDataType,
    FilterField,
    FilterOperator,
    IncludeExclude,
    SqlDialect,
)
from perftracker.models.schemas import (
    CrossReferenceClause,
    FIELD_TYPES,
    FilterSpec,
    ListClause,
    QuantifiedClause,
    SimpleClause,
)
from perftracker.sql.quoting import (
    LIKE_CONTAINS,
    LIKE_ENDS_WITH,
    LIKE_STARTS_WITH,
    like_predicate,
    quote_literal,
    regex_predicate,
)

logger = logging.getLogger(__name__)

TRUE_PREDICATE = "TRUE"
FALSE_PREDICATE = "FALSE"

# Keys of the simple filter dict that are not column filters
IGNORED_SIMPLE_KEYS = frozenset({"startDate", "endDate"})

_COMPARISON_SQL = {
    FilterOperator.EQUALS: "=",
    FilterOperator.NOT_EQUALS: "!=",
    FilterOperator.GREATER_THAN: ">",
    FilterOperator.GREATER_THAN_OR_EQUAL: ">=",
    FilterOperator.LESS_THAN: "<",
    FilterOperator.LESS_THAN_OR_EQUAL: "<=",
}

_LIKE_MODES = {
    FilterOperator.CONTAINS: LIKE_CONTAINS,
    FilterOperator.STARTS_WITH: LIKE_STARTS_WITH,
    FilterOperator.ENDS_WITH: LIKE_ENDS_WITH,
}

_LEGACY_QUANTIFIERS = {
    FilterOperator.ENTITY_HAS: FilterOperator.HAS,
    FilterOperator.ENTITY_NOT_HAS: FilterOperator.DOES_NOT_HAVE,
    FilterOperator.ENTITY_HAS_ALL: FilterOperator.HAS_ALL,
    FilterOperator.ENTITY_HAS_ANY: FilterOperator.HAS_ANY,
    FilterOperator.ENTITY_ONLY_HAS: FilterOperator.ONLY_HAS,
}


def referenced_teams(spec: Optional[FilterSpec], filters: Optional[Mapping[str, Any]] = None) -> bool:
    """True when the filter spec or simple filters reference the team field."""
    if filters and filters.get(FilterField.TEAM.value) not in (None, "", []):
        return True
    if spec is None:
        return False
    return any(c.field == FilterField.TEAM for c in spec.enabled_clauses)


class FilterCompiler:
    """
    Compile filter clauses into predicate text for one table and entity key.

    Attributes:
        table_ref: Quoted table reference used by entity subqueries.
        entity_field: Column entities are grouped by (the perspective key).
        dialect: Literal quoting dialect.
        team_members: Team id -> PIC names, used by `team` clauses.
    """

    def __init__(
        self,
        table_ref: str,
        entity_field: str,
        dialect: SqlDialect = SqlDialect.BIGQUERY,
        team_members: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self.table_ref = table_ref
        self.entity_field = entity_field
        self.dialect = SqlDialect(dialect)
        self.team_members = dict(team_members or {})

    # =========================================================================
    # Public API
    # =========================================================================

    def compile(self, spec: Optional[FilterSpec]) -> str:
        """
        Compile a FilterSpec into a single predicate.

        Returns:
            'TRUE' when the spec is missing or has no enabled clause;
            otherwise '(c1 AND c2 ...)' or '(c1 OR c2 ...)', wrapped in
            'NOT ' for EXCLUDE.

        EXCLUDE follows SQL three-valued logic: a row whose filtered column
        is NULL makes the inner predicate NULL, and `NOT NULL` is not true,
        so that row is dropped by both INCLUDE and EXCLUDE. `NOT (pic =
        'alice')` keeps neither 'alice' rows nor rows with a NULL `pic`.

        Raises:
            InputValidationError: If a clause value cannot be rendered.
        """
        if spec is None:
            return TRUE_PREDICATE

        clauses = spec.enabled_clauses
        if not clauses:
            return TRUE_PREDICATE

        parts = [
            self.compile_clause(clause, path=f"simplifiedFilter.clauses[{i}]")
            for i, clause in enumerate(clauses)
        ]
        joiner = " OR " if spec.clauseLogic == ClauseLogic.OR else " AND "
        group = f"({joiner.join(parts)})"

        if spec.includeExclude == IncludeExclude.EXCLUDE:
            return f"NOT {group}"
        return group

    def compile_clause(self, clause, path: str = "clause") -> str:
        """Compile one clause of any variant."""
        if clause.field == FilterField.TEAM:
            return self._team_clause(clause)
        if isinstance(clause, CrossReferenceClause):
            return self._cross_reference_clause(clause, path)
        if isinstance(clause, QuantifiedClause):
            return self._quantified_clause(clause, path)
        if isinstance(clause, ListClause):
            return self._list_clause(clause, path)
        if isinstance(clause, SimpleClause):
            return self._simple_clause(clause, path)
        raise TypeError(f"Unsupported clause type: {type(clause).__name__}")

    def compile_simple_filters(self, filters: Optional[Mapping[str, Any]]) -> List[str]:
        """
        Compile the request's simple filters into AND-ed predicates.

        Lists become `IN (...)`, scalars become `=`. Empty values are
        skipped. `startDate`/`endDate` are ignored (periods carry the
        dates). `team` resolves through the team mapping.

        Raises:
            InputValidationError: For unknown keys or unrenderable values.
        """
        predicates: List[str] = []
        for key, raw in (filters or {}).items():
            if key in IGNORED_SIMPLE_KEYS:
                continue
            try:
                field = FilterField(key)
            except ValueError:
                raise InputValidationError(f"filters.{key}", f"Unknown filter field '{key}'")

            values = _listify(raw)
            if not values:
                continue

            if field == FilterField.TEAM:
                predicates.append(self._team_predicate([str(v) for v in values], negate=False))
                continue

            data_type = FIELD_TYPES[field]
            rendered = self._render_values(values, data_type, f"filters.{key}")
            if len(rendered) == 1:
                predicates.append(f"{field.value} = {rendered[0]}")
            else:
                predicates.append(f"{field.value} IN ({', '.join(rendered)})")
        return predicates

    # =========================================================================
    # Direct clauses
    # =========================================================================

    def _simple_clause(self, clause: SimpleClause, path: str) -> str:
        column = clause.field.value
        op = clause.operator

        if op == FilterOperator.IS_NULL:
            return f"{column} IS NULL"
        if op == FilterOperator.IS_NOT_NULL:
            return f"{column} IS NOT NULL"
        if op in _LIKE_MODES:
            return like_predicate(column, clause.value, _LIKE_MODES[op], self.dialect, path)
        if op == FilterOperator.REGEX_MATCH:
            return regex_predicate(column, clause.value, self.dialect, path)

        literal = quote_literal(clause.value, clause.data_type, self.dialect, path)
        return f"{column} {_COMPARISON_SQL[op]} {literal}"

    def _list_clause(self, clause: ListClause, path: str) -> str:
        column = clause.field.value
        if clause.operator == FilterOperator.BETWEEN:
            low, high = (
                quote_literal(v, clause.data_type, self.dialect, path) for v in clause.values
            )
            return f"{column} BETWEEN {low} AND {high}"

        rendered = self._render_values(clause.values, clause.data_type, path)
        keyword = "NOT IN" if clause.operator == FilterOperator.NOT_IN else "IN"
        return f"{column} {keyword} ({', '.join(rendered)})"

    # =========================================================================
    # Entity-quantified clauses
    # =========================================================================

    def _quantified_clause(self, clause: QuantifiedClause, path: str) -> str:
        column = clause.field.value
        rendered = self._render_values(clause.values, clause.data_type, path)
        op = _LEGACY_QUANTIFIERS[clause.operator]
        if op in (FilterOperator.HAS, FilterOperator.DOES_NOT_HAVE):
            return self._membership_subquery(
                self.entity_field, f"{column} = {rendered[0]}",
                negate=op == FilterOperator.DOES_NOT_HAVE,
            )
        return self._value_set_subquery(op, self.entity_field, column, rendered, path)

    def _cross_reference_clause(self, clause: CrossReferenceClause, path: str) -> str:
        key = clause.field.value
        op = clause.operator
        if op in (FilterOperator.HAS, FilterOperator.DOES_NOT_HAVE):
            inner = clause.condition_clause
            if isinstance(inner, ListClause):
                condition = self._list_clause(inner, path)
            else:
                condition = self._simple_clause(inner, path)
            return self._membership_subquery(key, condition, negate=op == FilterOperator.DOES_NOT_HAVE)

        rendered = self._render_values(clause.values, clause.attribute_data_type, path)
        return self._value_set_subquery(op, key, clause.attributeField.value, rendered, path)

    def _membership_subquery(self, key: str, condition: str, negate: bool) -> str:
        if negate:
            return (
                f"{key} NOT IN (SELECT DISTINCT {key} FROM {self.table_ref} "
                f"WHERE {condition} AND {key} IS NOT NULL)"
            )
        return f"{key} IN (SELECT DISTINCT {key} FROM {self.table_ref} WHERE {condition})"

    def _value_set_subquery(
        self,
        op: FilterOperator,
        key: str,
        column: str,
        rendered: Sequence[str],
        path: str,
    ) -> str:
        table = self.table_ref
        value_list = ", ".join(rendered)
        n = len(rendered)

        if op == FilterOperator.HAS_ALL:
            return (
                f"{key} IN (SELECT {key} FROM {table} "
                f"WHERE {column} IN ({value_list}) "
                f"GROUP BY {key} HAVING COUNT(DISTINCT {column}) = {n})"
            )
        if op == FilterOperator.HAS_ANY:
            return (
                f"{key} IN (SELECT DISTINCT {key} FROM {table} "
                f"WHERE {column} IN ({value_list}))"
            )
        if op == FilterOperator.ONLY_HAS:
            return (
                f"{key} IN (SELECT {key} FROM {table} "
                f"WHERE {column} IS NOT NULL "
                f"GROUP BY {key} "
                f"HAVING COUNT(DISTINCT {column}) = {n} "
                f"AND COUNT(DISTINCT CASE WHEN {column} IN ({value_list}) "
                f"THEN {column} END) = {n})"
            )
        raise InputValidationError(path, f"Unsupported entity operator '{op.value}'")

    # =========================================================================
    # Team clauses
    # =========================================================================

    def _team_clause(self, clause) -> str:
        if isinstance(clause, ListClause):
            names = [str(v) for v in clause.values]
        else:
            names = [str(clause.value)]
        negate = clause.operator in (FilterOperator.NOT_EQUALS, FilterOperator.NOT_IN)
        return self._team_predicate(names, negate)

    def _team_predicate(self, team_ids: Iterable[str], negate: bool) -> str:
        members: List[str] = []
        for team_id in team_ids:
            pics = self.team_members.get(team_id)
            if pics is None:
                logger.warning(f"Team '{team_id}' has no PIC mapping")
                continue
            for pic in pics:
                if pic not in members:
                    members.append(pic)

        if not members:
            return TRUE_PREDICATE if negate else FALSE_PREDICATE

        rendered = ", ".join(
            quote_literal(pic, FilterDataType.STRING, self.dialect, "team") for pic in members
        )
        keyword = "NOT IN" if negate else "IN"
        return f"{FilterField.PIC.value} {keyword} ({rendered})"

    # =========================================================================
    # Helpers
    # =========================================================================

    def _render_values(self, values: Iterable[Any], data_type: FilterDataType, path: str) -> List[str]:
        """Render literals, dropping duplicates while keeping order."""
        rendered: List[str] = []
        for value in values:
            literal = quote_literal(value, data_type, self.dialect, path)
            if literal not in rendered:
                rendered.append(literal)
        return rendered


def _listify(raw: Any) -> List[Any]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple, set)):
        return [v for v in raw if v is not None and v != ""]
    if raw == "":
        return []
    return [raw]
