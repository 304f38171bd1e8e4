"""
In-memory record types flowing through the deep-dive pipeline.

MergedEntityRecord is produced by the metric aggregator (one per entity,
both periods side by side). TieredRecord extends it with the fields the
tiering engine assigns.

Derived metrics are computed once in __post_init__. Every ratio degrades
to 0 when its denominator is 0, and no NaN or infinite value is ever
stored.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

EntityKey = Union[int, str]


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the result is undefined."""
    if not denominator:
        return 0.0
    result = numerator / denominator
    return result if math.isfinite(result) else 0.0


def pct_change(old: float, new: float) -> float:
    """Percent change from old to new; 0.0 when old is 0."""
    return safe_ratio(new - old, old) * 100.0


def fill_rate(paid: int, requests: int) -> float:
    """Paid share of requests in percent, clamping paid to requests."""
    return safe_ratio(min(paid, requests), requests) * 100.0


def ecpm(revenue: float, requests: int) -> float:
    """Revenue per thousand requests."""
    return safe_ratio(revenue, requests) * 1000.0


@dataclass
class MergedEntityRecord:
    """
    One entity with metrics for both periods. Missing-period metrics are 0.

    Attributes:
        entity_key: Perspective key value (int for pid/mid/zone, str otherwise).
        name: Display label, period 2 value preferred.
        extras: Perspective-specific columns (counts, product, ...).
        avg_monthly_revenue: Six-month monthly average revenue ending at
            period 1's end, None when unavailable.
        months_with_data: Months contributing to avg_monthly_revenue.
    """
    entity_key: EntityKey
    rev_p1: float = 0.0
    rev_p2: float = 0.0
    req_p1: int = 0
    req_p2: int = 0
    paid_p1: int = 0
    paid_p2: int = 0
    name: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)
    avg_monthly_revenue: Optional[float] = None
    months_with_data: Optional[int] = None

    # Derived, filled in __post_init__
    rev_change_pct: float = field(init=False, default=0.0)
    req_change_pct: float = field(init=False, default=0.0)
    fill_rate_p1: float = field(init=False, default=0.0)
    fill_rate_p2: float = field(init=False, default=0.0)
    ecpm_p1: float = field(init=False, default=0.0)
    ecpm_p2: float = field(init=False, default=0.0)
    ecpm_change_pct: float = field(init=False, default=0.0)

    def __post_init__(self) -> None:
        self.rev_change_pct = pct_change(self.rev_p1, self.rev_p2)
        self.req_change_pct = pct_change(self.req_p1, self.req_p2)
        self.fill_rate_p1 = fill_rate(self.paid_p1, self.req_p1)
        self.fill_rate_p2 = fill_rate(self.paid_p2, self.req_p2)
        self.ecpm_p1 = ecpm(self.rev_p1, self.req_p1)
        self.ecpm_p2 = ecpm(self.rev_p2, self.req_p2)
        self.ecpm_change_pct = pct_change(self.ecpm_p1, self.ecpm_p2)

    @property
    def fill_rate_change(self) -> float:
        """Fill-rate change in percentage points."""
        return self.fill_rate_p2 - self.fill_rate_p1


@dataclass
class TieredRecord(MergedEntityRecord):
    """MergedEntityRecord annotated by the tiering engine."""
    cumulative_revenue: float = 0.0
    cumulative_revenue_pct: float = 0.0
    total_revenue: float = 0.0
    revenue_tier: str = "C"
    status: str = "existing"
    display_tier: str = "C"
    tier_group: str = "C"
    transition_warning: Optional[str] = None
    warning_severity: str = "healthy"
    warning_message: Optional[str] = None
    warning_metrics: List[str] = field(default_factory=list)
    lost_revenue: Optional[float] = None

    @classmethod
    def from_merged(cls, record: MergedEntityRecord, **tier_fields: Any) -> "TieredRecord":
        return cls(
            entity_key=record.entity_key,
            rev_p1=record.rev_p1,
            rev_p2=record.rev_p2,
            req_p1=record.req_p1,
            req_p2=record.req_p2,
            paid_p1=record.paid_p1,
            paid_p2=record.paid_p2,
            name=record.name,
            extras=dict(record.extras),
            avg_monthly_revenue=record.avg_monthly_revenue,
            months_with_data=record.months_with_data,
            **tier_fields,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Flat dict for the response; extras become top-level keys."""
        out = {
            "entity_key": self.entity_key,
            "name": self.name,
            "rev_p1": self.rev_p1,
            "rev_p2": self.rev_p2,
            "req_p1": self.req_p1,
            "req_p2": self.req_p2,
            "paid_p1": self.paid_p1,
            "paid_p2": self.paid_p2,
            "rev_change_pct": self.rev_change_pct,
            "req_change_pct": self.req_change_pct,
            "fill_rate_p1": self.fill_rate_p1,
            "fill_rate_p2": self.fill_rate_p2,
            "ecpm_p1": self.ecpm_p1,
            "ecpm_p2": self.ecpm_p2,
            "ecpm_change_pct": self.ecpm_change_pct,
            "cumulative_revenue": self.cumulative_revenue,
            "cumulative_revenue_pct": self.cumulative_revenue_pct,
            "total_revenue": self.total_revenue,
            "revenue_tier": self.revenue_tier,
            "status": self.status,
            "display_tier": self.display_tier,
            "tier_group": self.tier_group,
            "transition_warning": self.transition_warning,
            "warning_severity": self.warning_severity,
            "warning_message": self.warning_message,
            "warning_metrics": list(self.warning_metrics),
            "avg_monthly_revenue": self.avg_monthly_revenue,
            "months_with_data": self.months_with_data,
            "lost_revenue": self.lost_revenue,
        }
        for key, value in self.extras.items():
            out.setdefault(key, value)
        return out
