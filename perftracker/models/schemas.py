"""
Pydantic request/response models for the Performance Tracker deep-dive API.

Groups:
- Periods and requests: Period, DeepDiveRequest
- Filter grammar: SimpleClause, ListClause, QuantifiedClause and
  CrossReferenceClause (a tagged union discriminated on `operator`),
  FilterSpec
- Responses: TieredRecordOut, Summary, DeepDiveResponse, MetadataResponse

Request field names follow the camelCase wire format used by the
dashboard (`includeExclude`, `parentId`, ...). Record and summary fields
are snake_case, matching the rows the dashboard renders.

All models use Pydantic v2 syntax.
"""

from datetime import date
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    Tag,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from perftracker.models.enums import (
    ClauseLogic,
    CROSS_REFERENCE_OPERATORS,
    DisplayTier,
    ENTITY_OPERATORS,
    FilterDataType,
    FilterField,
    FilterOperator,
    IncludeExclude,
    LIST_OPERATORS,
    SCALAR_OPERATORS,
)

# Booleans are not accepted anywhere a filter value is expected.
Scalar = Union[StrictInt, StrictFloat, StrictStr]


# =============================================================================
# Field Types
# =============================================================================

FIELD_TYPES: Dict[FilterField, FilterDataType] = {
    FilterField.PID: FilterDataType.NUMBER,
    FilterField.MID: FilterDataType.NUMBER,
    FilterField.ZID: FilterDataType.NUMBER,
    FilterField.MONTH: FilterDataType.NUMBER,
    FilterField.YEAR: FilterDataType.NUMBER,
    FilterField.TEAM: FilterDataType.STRING,
    FilterField.PIC: FilterDataType.STRING,
    FilterField.PRODUCT: FilterDataType.STRING,
    FilterField.H5: FilterDataType.STRING,
    FilterField.PUBNAME: FilterDataType.STRING,
    FilterField.MEDIANAME: FilterDataType.STRING,
    FilterField.ZONENAME: FilterDataType.STRING,
}

TEAM_OPERATORS = frozenset({
    FilterOperator.EQUALS,
    FilterOperator.NOT_EQUALS,
    FilterOperator.IN,
    FilterOperator.NOT_IN,
})

VALUELESS_OPERATORS = frozenset({
    FilterOperator.IS_NULL,
    FilterOperator.IS_NOT_NULL,
})

SINGLE_VALUE_ENTITY_OPERATORS = frozenset({
    FilterOperator.ENTITY_HAS,
    FilterOperator.ENTITY_NOT_HAS,
})


# =============================================================================
# Periods
# =============================================================================


class Period(BaseModel):
    """
    Inclusive date range. `start > end` is rejected by the deep-dive
    service with an InputValidationError before any query runs.
    """
    start: date
    end: date

    @property
    def is_ordered(self) -> bool:
        return self.start <= self.end


# =============================================================================
# Filter Clauses
# =============================================================================


class _ClauseBase(BaseModel):
    """Fields shared by every clause variant."""
    model_config = ConfigDict(populate_by_name=True)

    field: FilterField
    operator: FilterOperator
    dataType: Optional[FilterDataType] = Field(
        default=None,
        description="Literal type; inferred from the field when omitted",
    )
    enabled: bool = True

    @property
    def data_type(self) -> FilterDataType:
        return self.dataType or FIELD_TYPES[self.field]

    @property
    def is_team(self) -> bool:
        return self.field == FilterField.TEAM

    def _check_team_operator(self) -> None:
        if self.is_team and self.operator not in TEAM_OPERATORS:
            allowed = ", ".join(sorted(op.value for op in TEAM_OPERATORS))
            raise ValueError(
                f"Operator '{self.operator.value}' is not supported for field 'team' "
                f"(allowed: {allowed})"
            )


class SimpleClause(_ClauseBase):
    """
    Direct comparison of one column against a scalar.

    `is_null` / `is_not_null` take no value; every other operator
    requires one.
    """
    value: Optional[Scalar] = None

    @field_validator("operator")
    @classmethod
    def _operator_is_scalar(cls, v: FilterOperator) -> FilterOperator:
        if v not in SCALAR_OPERATORS:
            raise ValueError(f"'{v.value}' is not a scalar operator")
        return v

    @model_validator(mode="after")
    def _value_present(self) -> "SimpleClause":
        self._check_team_operator()
        if self.operator not in VALUELESS_OPERATORS and self.value is None:
            raise ValueError(f"Operator '{self.operator.value}' requires a value")
        if self.operator == FilterOperator.REGEX_MATCH and self.data_type != FilterDataType.STRING:
            raise ValueError("regex_match is only supported on string fields")
        return self


def _as_list(v: Any) -> Any:
    if v is None or isinstance(v, (list, tuple)):
        return v
    return [v]


class ListClause(_ClauseBase):
    """
    Column compared against a list: `in`, `not_in`, or `between` (exactly
    two values, inclusive bounds).
    """
    values: List[Scalar] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("values", "value"),
    )

    @field_validator("operator")
    @classmethod
    def _operator_is_list(cls, v: FilterOperator) -> FilterOperator:
        if v not in LIST_OPERATORS:
            raise ValueError(f"'{v.value}' is not a list operator")
        return v

    @field_validator("values", mode="before")
    @classmethod
    def _normalize_values(cls, v: Any) -> Any:
        return _as_list(v)

    @model_validator(mode="after")
    def _check_shape(self) -> "ListClause":
        self._check_team_operator()
        if self.operator == FilterOperator.BETWEEN and len(self.values) != 2:
            raise ValueError("between requires exactly two values")
        return self


class QuantifiedClause(_ClauseBase):
    """
    Entity-level predicate evaluated over every row of an entity.

    `entity_has` / `entity_not_has` take exactly one value (a scalar
    `value` is accepted and normalised to a one-element list); the other
    quantifiers take a non-empty list.
    """
    values: List[Scalar] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("values", "value"),
    )

    @field_validator("operator")
    @classmethod
    def _operator_is_entity(cls, v: FilterOperator) -> FilterOperator:
        if v not in ENTITY_OPERATORS:
            raise ValueError(f"'{v.value}' is not an entity operator")
        return v

    @field_validator("values", mode="before")
    @classmethod
    def _normalize_values(cls, v: Any) -> Any:
        return _as_list(v)

    @model_validator(mode="after")
    def _check_shape(self) -> "QuantifiedClause":
        self._check_team_operator()
        if self.operator in SINGLE_VALUE_ENTITY_OPERATORS and len(self.values) != 1:
            raise ValueError(f"{self.operator.value} takes exactly one value")
        return self

    @property
    def value(self) -> Scalar:
        return self.values[0]


SET_CONDITIONS = frozenset({
    FilterOperator.EQUALS,
    FilterOperator.IN,
})


class CrossReferenceClause(_ClauseBase):
    """
    Entity cross-reference: `<field> <operator> <attributeField>
    <condition> <value>`, e.g. "zid has product equals 'video'".

    `field` is the entity column the subquery is keyed by. `has` and
    `does_not_have` accept any direct operator as `condition` and take
    whatever value that operator takes. `has_all`, `has_any` and
    `only_has` compare the attribute against a value set, so their
    condition may only be `equals` or `in` (or omitted).
    """
    attributeField: FilterField
    attributeDataType: Optional[FilterDataType] = None
    condition: Optional[FilterOperator] = None
    values: List[Scalar] = Field(
        default_factory=list,
        validation_alias=AliasChoices("values", "value"),
    )

    @field_validator("operator")
    @classmethod
    def _operator_is_cross_reference(cls, v: FilterOperator) -> FilterOperator:
        if v not in CROSS_REFERENCE_OPERATORS:
            raise ValueError(f"'{v.value}' is not a cross-reference operator")
        return v

    @field_validator("values", mode="before")
    @classmethod
    def _normalize_values(cls, v: Any) -> Any:
        return [] if v is None else _as_list(v)

    @model_validator(mode="after")
    def _check_shape(self) -> "CrossReferenceClause":
        self._check_team_operator()
        if self.attributeField == FilterField.TEAM:
            raise ValueError("'team' cannot be used as an attribute field")

        if self.operator in (FilterOperator.HAS, FilterOperator.DOES_NOT_HAVE):
            if self.condition is None:
                raise ValueError(f"{self.operator.value} requires a condition")
            if self.condition not in SCALAR_OPERATORS | LIST_OPERATORS:
                raise ValueError(f"'{self.condition.value}' is not a direct operator")
            if self.condition in SCALAR_OPERATORS and len(self.values) > 1:
                raise ValueError(f"Condition '{self.condition.value}' takes a single value")
            try:
                self.condition_clause
            except ValidationError as exc:
                raise ValueError(f"Invalid condition: {exc.errors()[0]['msg']}")
            return self

        if self.condition is not None and self.condition not in SET_CONDITIONS:
            raise ValueError(f"{self.operator.value} only supports 'equals' or 'in' conditions")
        if not self.values:
            raise ValueError(f"{self.operator.value} requires at least one value")
        return self

    @property
    def attribute_data_type(self) -> FilterDataType:
        return self.attributeDataType or FIELD_TYPES[self.attributeField]

    @property
    def condition_clause(self) -> Union[SimpleClause, ListClause]:
        """The attribute condition as a direct clause."""
        payload: Dict[str, Any] = {
            "field": self.attributeField,
            "operator": self.condition,
            "dataType": self.attributeDataType,
        }
        if self.condition in LIST_OPERATORS:
            payload["values"] = self.values
            return ListClause.model_validate(payload)
        if self.values:
            payload["value"] = self.values[0]
        return SimpleClause.model_validate(payload)


def _clause_kind(v: Any) -> Optional[str]:
    """Discriminator: map the clause operator to its variant tag."""
    operator = v.get("operator") if isinstance(v, dict) else getattr(v, "operator", None)
    try:
        operator = FilterOperator(operator)
    except ValueError:
        return None
    if operator in SCALAR_OPERATORS:
        return "simple"
    if operator in LIST_OPERATORS:
        return "list"
    if operator in CROSS_REFERENCE_OPERATORS:
        return "cross_reference"
    return "quantified"


FilterClause = Annotated[
    Union[
        Annotated[SimpleClause, Tag("simple")],
        Annotated[ListClause, Tag("list")],
        Annotated[QuantifiedClause, Tag("quantified")],
        Annotated[CrossReferenceClause, Tag("cross_reference")],
    ],
    Discriminator(
        _clause_kind,
        custom_error_type="invalid_operator",
        custom_error_message="Unknown filter operator",
    ),
]

filter_clause_adapter = TypeAdapter(FilterClause)


class FilterSpec(BaseModel):
    """
    Simplified filter: a flat group of clauses.

    Disabled clauses are ignored. With no enabled clause the filter is a
    tautology, whatever `includeExclude` says.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "includeExclude": "INCLUDE",
                "clauseLogic": "AND",
                "clauses": [
                    {"field": "product", "operator": "entity_has_all",
                     "values": ["video", "banner"]},
                    {"field": "zid", "operator": "has", "attributeField": "product",
                     "condition": "equals", "value": "video"},
                    {"field": "pic", "operator": "equals", "value": "alice"},
                ],
            }
        }
    )

    includeExclude: IncludeExclude = IncludeExclude.INCLUDE
    clauses: List[FilterClause] = Field(default_factory=list)
    clauseLogic: ClauseLogic = ClauseLogic.AND

    @property
    def enabled_clauses(self) -> List[Union[SimpleClause, ListClause, QuantifiedClause, CrossReferenceClause]]:
        return [c for c in self.clauses if c.enabled]


# =============================================================================
# Deep Dive Request
# =============================================================================


class DeepDiveRequest(BaseModel):
    """
    Body of POST /performance-tracker/deep-dive.

    `perspective`, `parentPerspective` and `simplifiedFilter` are kept
    loose here and validated by the service so malformed values surface as
    400 responses naming the offending field.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "perspective": "pid",
                "period1": {"start": "2025-08-01", "end": "2025-08-31"},
                "period2": {"start": "2025-09-01", "end": "2025-09-30"},
                "filters": {"pic": ["alice", "bob"]},
                "tierFilter": "A",
            }
        }
    )

    perspective: str = Field(..., description="pid, mid, zone, product, pic or team")
    period1: Period
    period2: Period
    filters: Dict[str, Any] = Field(
        default_factory=dict,
        description="Simple column filters, e.g. {'pic': ['alice'], 'pid': 123}",
    )
    simplifiedFilter: Optional[Dict[str, Any]] = Field(
        default=None,
        description="FilterSpec with entity-level clauses",
    )
    parentId: Optional[Union[StrictInt, StrictStr]] = None
    parentPerspective: Optional[str] = None
    tierFilter: Optional[DisplayTier] = None


# =============================================================================
# Responses
# =============================================================================


class TieredRecordOut(BaseModel):
    """
    One tiered entity row. Perspective-specific columns (name, counts,
    product) are passed through as extra fields.
    """
    model_config = ConfigDict(extra="allow")

    entity_key: Union[int, str]
    name: Optional[str] = None
    rev_p1: float
    rev_p2: float
    req_p1: int
    req_p2: int
    paid_p1: int
    paid_p2: int
    rev_change_pct: float
    req_change_pct: float
    fill_rate_p1: float
    fill_rate_p2: float
    ecpm_p1: float
    ecpm_p2: float
    ecpm_change_pct: float
    cumulative_revenue: float
    cumulative_revenue_pct: float
    total_revenue: float
    revenue_tier: str
    status: str
    display_tier: str
    tier_group: str
    transition_warning: Optional[str] = None
    warning_severity: str
    warning_message: Optional[str] = None
    warning_metrics: List[str] = Field(default_factory=list)
    avg_monthly_revenue: Optional[float] = None
    months_with_data: Optional[int] = None
    lost_revenue: Optional[float] = None


class Summary(BaseModel):
    """Aggregate statistics over a tiered record set."""
    total_items: int = 0
    total_revenue_p1: float = 0.0
    total_revenue_p2: float = 0.0
    revenue_change_pct: float = 0.0
    total_requests_p1: int = 0
    total_requests_p2: int = 0
    requests_change_pct: float = 0.0
    total_ecpm_p1: float = 0.0
    total_ecpm_p2: float = 0.0
    ecpm_change_pct: float = 0.0
    tier_counts: Dict[str, int] = Field(default_factory=dict)
    tier_revenue: Dict[str, float] = Field(default_factory=dict)


class DeepDiveResponse(BaseModel):
    """Response of POST /performance-tracker/deep-dive."""
    status: str = "ok"
    data: List[TieredRecordOut]
    summary: Summary
    context: Dict[str, Any] = Field(default_factory=dict)


class MetadataResponse(BaseModel):
    """Response of GET /performance-tracker/metadata."""
    status: str = "ok"
    data: Dict[str, List[Any]]
    cached: bool = False
    cache_age_seconds: float = 0.0


class ErrorDetail(BaseModel):
    """Offending request field and explanation."""
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Body of 400 responses."""
    detail: ErrorDetail
