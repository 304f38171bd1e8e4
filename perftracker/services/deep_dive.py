"""
Deep-dive orchestration.

Validates a DeepDiveRequest, compiles its filters, aggregates both
periods, tiers the full population and returns the response payload.

Flow:
    validate request -> load team mapping (only when teams are involved)
    -> compile predicates -> aggregate (team perspective rolls up PICs)
    -> tier -> apply tierFilter -> summarize -> DeepDiveResponse

Every InputValidationError is raised before the first warehouse query.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from perftracker.core.dependencies import QueryRunner
from perftracker.core.exceptions import InputValidationError
from perftracker.core.warehouse import WarehouseClient
from perftracker.models.enums import FilterField, Perspective
from perftracker.models.perspectives import (
    PerspectiveConfig,
    get_perspective_config,
    validate_drill_down,
)
from perftracker.models.records import TieredRecord
from perftracker.models.schemas import (
    DeepDiveRequest,
    DeepDiveResponse,
    FilterSpec,
    Period,
    TieredRecordOut,
)
from perftracker.services.aggregation import MetricAggregator
from perftracker.services.summary import summarize
from perftracker.services.teams import TeamMapping, load_team_mapping, rollup_teams
from perftracker.services.tiering import tier_records
from perftracker.sql.filter_compiler import FilterCompiler, referenced_teams
from perftracker.sql.quoting import quote_literal

logger = logging.getLogger(__name__)


# =============================================================================
# Validation
# =============================================================================


def _check_period(name: str, period: Period) -> None:
    if not period.is_ordered:
        raise InputValidationError(
            name,
            f"start ({period.start.isoformat()}) must not be after end ({period.end.isoformat()})",
        )


def parse_filter_spec(raw: Optional[Dict[str, Any]]) -> Optional[FilterSpec]:
    """
    Validate the simplifiedFilter payload.

    Raises:
        InputValidationError: Naming the first offending location.
    """
    if raw is None:
        return None
    try:
        return FilterSpec.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        field = f"simplifiedFilter.{location}" if location else "simplifiedFilter"
        raise InputValidationError(field, first.get("msg", "Invalid filter"))


def _parent_perspective(request: DeepDiveRequest, perspective: Perspective) -> Optional[PerspectiveConfig]:
    if request.parentId is None:
        if request.parentPerspective is not None:
            raise InputValidationError("parentId", "parentId is required with parentPerspective")
        return None
    if request.parentPerspective is None:
        raise InputValidationError("parentPerspective", "parentPerspective is required with parentId")

    parent = get_perspective_config(request.parentPerspective)
    validate_drill_down(perspective, parent.perspective)
    return parent


def _team_filter_ids(filters: Dict[str, Any]) -> Optional[List[str]]:
    raw = filters.get(FilterField.TEAM.value)
    if raw in (None, "", []):
        return None
    if isinstance(raw, (list, tuple)):
        return [str(v) for v in raw]
    return [str(raw)]


# =============================================================================
# Predicate compilation
# =============================================================================


def build_predicates(
    request: DeepDiveRequest,
    config: PerspectiveConfig,
    parent: Optional[PerspectiveConfig],
    spec: Optional[FilterSpec],
    compiler: FilterCompiler,
) -> List[str]:
    """Compile simple filters, the drill-down parent and the filter spec."""
    filters = dict(request.filters)
    if config.perspective == Perspective.TEAM:
        # Applied to the rolled-up teams instead
        filters.pop(FilterField.TEAM.value, None)

    predicates = compiler.compile_simple_filters(filters)

    if parent is not None:
        if parent.perspective == Perspective.TEAM:
            predicates.extend(compiler.compile_simple_filters({FilterField.TEAM.value: [request.parentId]}))
        else:
            literal = quote_literal(request.parentId, parent.key_type, compiler.dialect, "parentId")
            predicates.append(f"{parent.key_column} = {literal}")

    predicates.append(compiler.compile(spec))
    return predicates


# =============================================================================
# Orchestration
# =============================================================================


async def run_deep_dive(
    request: DeepDiveRequest,
    warehouse: WarehouseClient,
    run_query: QueryRunner,
) -> DeepDiveResponse:
    """
    Execute a deep-dive comparison.

    Args:
        request: Validated request body.
        warehouse: Warehouse client.
        run_query: Relational store query runner for team mappings.

    Returns:
        DeepDiveResponse with records in ranking order.

    Raises:
        InputValidationError: For malformed perspective, periods, filters
            or drill-down pairs.
        DataSourceError: If the warehouse or relational store fails.
    """
    config = get_perspective_config(request.perspective)
    _check_period("period1", request.period1)
    _check_period("period2", request.period2)
    spec = parse_filter_spec(request.simplifiedFilter)
    parent = _parent_perspective(request, config.perspective)

    needs_teams = (
        config.perspective == Perspective.TEAM
        or (parent is not None and parent.perspective == Perspective.TEAM)
        or referenced_teams(spec, request.filters)
    )
    mapping = await load_team_mapping(run_query) if needs_teams else TeamMapping()

    compiler = FilterCompiler(
        table_ref=warehouse.table_ref,
        entity_field=config.key_column,
        dialect=warehouse.dialect,
        team_members=mapping.members,
    )
    predicates = build_predicates(request, config, parent, spec, compiler)

    aggregator = MetricAggregator(warehouse)
    if config.perspective == Perspective.TEAM:
        pic_records = await aggregator.aggregate(Perspective.PIC, request.period1, request.period2, predicates)
        records = rollup_teams(pic_records, mapping, _team_filter_ids(request.filters))
    else:
        records = await aggregator.aggregate(config.perspective, request.period1, request.period2, predicates)

    tiered: List[TieredRecord] = tier_records(records)
    if request.tierFilter is not None:
        tiered = [r for r in tiered if r.display_tier == request.tierFilter.value]

    summary = summarize(tiered)
    logger.info(
        f"Deep dive {config.perspective.value}: {summary.total_items} records, "
        f"revenue change {summary.revenue_change_pct:.1f}%"
    )

    return DeepDiveResponse(
        status="ok",
        data=[TieredRecordOut(**r.to_dict()) for r in tiered],
        summary=summary,
        context={
            "perspective": config.perspective.value,
            "perspectiveName": config.display_name,
            "childPerspective": config.child.value if config.child else None,
            "period1": {"start": request.period1.start.isoformat(), "end": request.period1.end.isoformat()},
            "period2": {"start": request.period2.start.isoformat(), "end": request.period2.end.isoformat()},
            "parentId": request.parentId,
            "parentPerspective": parent.perspective.value if parent else None,
            "tierFilter": request.tierFilter.value if request.tierFilter else None,
        },
    )
