"""
Perspective configurations for deep-dive analysis.

Each perspective describes how entity rows are grouped in the warehouse:
the key column, the label expression, per-entity count columns and the
child perspective used for drill-down.

Drill-down hierarchy:
    team -> pic -> pid -> mid -> zone
    product -> zone

The team perspective has no column of its own in the warehouse. It is
computed from the pic perspective and rolled up with the team/PIC mapping
kept in the relational store (see perftracker.services.teams).
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from perftracker.core.exceptions import InputValidationError
from perftracker.models.enums import FilterDataType, Perspective


@dataclass(frozen=True)
class PerspectiveConfig:
    """
    Query shape for one perspective.

    Attributes:
        perspective: Perspective identifier.
        display_name: Human readable name for the UI.
        key_column: Warehouse column the entities are grouped by.
        key_type: Literal type of the key column (number or string).
        name_expression: Aggregate expression producing the entity label.
        extra_columns: (alias, aggregate expression) pairs selected per entity.
        child: Child perspective for drill-down, None for leaf perspectives.
        source: Perspective whose rows are rolled up to build this one.
    """
    perspective: Perspective
    display_name: str
    key_column: str
    key_type: FilterDataType
    name_expression: str
    extra_columns: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    child: Optional[Perspective] = None
    source: Optional[Perspective] = None

    @property
    def extra_aliases(self) -> List[str]:
        return [alias for alias, _ in self.extra_columns]

    @property
    def is_leaf(self) -> bool:
        return self.child is None


PERSPECTIVE_CONFIGS: Dict[Perspective, PerspectiveConfig] = {
    Perspective.TEAM: PerspectiveConfig(
        perspective=Perspective.TEAM,
        display_name="Team Analysis",
        key_column="pic",
        key_type=FilterDataType.STRING,
        name_expression="MAX(pic)",
        child=Perspective.PIC,
        source=Perspective.PIC,
    ),
    Perspective.PIC: PerspectiveConfig(
        perspective=Perspective.PIC,
        display_name="PIC (Person in Charge) Analysis",
        key_column="pic",
        key_type=FilterDataType.STRING,
        name_expression="MAX(pic)",
        extra_columns=(("publisher_count", "COUNT(DISTINCT pid)"),),
        child=Perspective.PID,
    ),
    Perspective.PID: PerspectiveConfig(
        perspective=Perspective.PID,
        display_name="Publisher Analysis",
        key_column="pid",
        key_type=FilterDataType.NUMBER,
        name_expression="MAX(pubname)",
        extra_columns=(("media_count", "COUNT(DISTINCT mid)"),),
        child=Perspective.MID,
    ),
    Perspective.MID: PerspectiveConfig(
        perspective=Perspective.MID,
        display_name="Media Property Analysis",
        key_column="mid",
        key_type=FilterDataType.NUMBER,
        name_expression="MAX(medianame)",
        extra_columns=(("zone_count", "COUNT(DISTINCT zid)"),),
        child=Perspective.ZONE,
    ),
    Perspective.PRODUCT: PerspectiveConfig(
        perspective=Perspective.PRODUCT,
        display_name="Product Analysis",
        key_column="product",
        key_type=FilterDataType.STRING,
        name_expression="MAX(product)",
        extra_columns=(
            ("publisher_count", "COUNT(DISTINCT pid)"),
            ("media_count", "COUNT(DISTINCT mid)"),
            ("zone_count", "COUNT(DISTINCT zid)"),
        ),
        child=Perspective.ZONE,
    ),
    Perspective.ZONE: PerspectiveConfig(
        perspective=Perspective.ZONE,
        display_name="Zone Analysis",
        key_column="zid",
        key_type=FilterDataType.NUMBER,
        name_expression="MAX(zonename)",
        extra_columns=(("product", "MAX(product)"),),
    ),
}


def get_perspective_config(perspective) -> PerspectiveConfig:
    """
    Look up the configuration for a perspective.

    Args:
        perspective: Perspective enum member or its string value.

    Returns:
        PerspectiveConfig for the perspective.

    Raises:
        InputValidationError: If the perspective is unknown.
    """
    try:
        key = Perspective(perspective)
    except ValueError:
        valid = ", ".join(p.value for p in Perspective)
        raise InputValidationError(
            "perspective",
            f"Unknown perspective '{perspective}'. Expected one of: {valid}",
        )
    return PERSPECTIVE_CONFIGS[key]


def validate_drill_down(perspective: Perspective, parent: Perspective) -> None:
    """
    Check that `perspective` is the drill-down child of `parent`.

    Raises:
        InputValidationError: If the pair does not follow the hierarchy.
    """
    parent_config = get_perspective_config(parent)
    if parent_config.child != Perspective(perspective):
        raise InputValidationError(
            "parentPerspective",
            f"Cannot drill down from '{parent_config.perspective.value}' "
            f"to '{Perspective(perspective).value}'",
        )
