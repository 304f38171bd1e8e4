"""
Comparative tiering engine.

Ranks merged entity records by period-2 revenue, assigns Pareto revenue
tiers from the cumulative revenue share, classifies each entity's status
across the two periods and annotates it with a transition advisory and an
anomaly severity.

Steps (in order):
1. Sort by rev_p2 descending, ties broken by entity_key ascending
   (numeric keys before string keys, numbers compared numerically).
2. Cumulative revenue and cumulative share of total period-2 revenue.
   A zero total makes every share 0 and every tier C.
3. Revenue tier: share <= 80 -> A, <= 95 -> B, otherwise C.
4. Status: new (rev_p1 == 0 < rev_p2), lost (rev_p1 > 0 == rev_p2),
   otherwise existing.
5. Display tier (NEW / LOST / tier) and tier group (tier, NEW-<tier>,
   LOST-<tier>).
6. Transition advisory for existing entities.
7. Anomaly severity for existing entities from request, eCPM, revenue
   and fill-rate changes (see SEVERITY_RULES).

All ratios degrade to 0 on a zero denominator.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from perftracker.models.enums import (
    DisplayTier,
    EntityStatus,
    RevenueTier,
    WarningSeverity,
)
from perftracker.models.records import MergedEntityRecord, TieredRecord, safe_ratio
from perftracker.models.schemas import Summary
from perftracker.services.summary import summarize

logger = logging.getLogger(__name__)


# =============================================================================
# Thresholds
# =============================================================================

TIER_A_MAX_PCT = 80.0
TIER_B_MAX_PCT = 95.0

# Half-width of the band around a tier boundary reported as "at threshold"
THRESHOLD_BAND = 0.5

APPROACHING_B_PCT = 75.0
CLOSE_TO_A_PCT = 85.0


# =============================================================================
# Ordering
# =============================================================================


def sort_key(record: MergedEntityRecord) -> Tuple:
    """Revenue descending, then numeric keys before string keys, ascending."""
    key = record.entity_key
    if isinstance(key, (int, float)) and not isinstance(key, bool):
        key_part = (0, key, "")
    else:
        key_part = (1, 0, str(key))
    return (-record.rev_p2, key_part)


# =============================================================================
# Per-record classification
# =============================================================================


def classify_tier(cumulative_pct: float, total_revenue: float) -> RevenueTier:
    """Pareto tier from cumulative share; C when there is no revenue at all."""
    if total_revenue <= 0:
        return RevenueTier.C
    if cumulative_pct <= TIER_A_MAX_PCT:
        return RevenueTier.A
    if cumulative_pct <= TIER_B_MAX_PCT:
        return RevenueTier.B
    return RevenueTier.C


def classify_status(rev_p1: float, rev_p2: float) -> EntityStatus:
    if rev_p1 == 0 and rev_p2 > 0:
        return EntityStatus.NEW
    if rev_p1 > 0 and rev_p2 == 0:
        return EntityStatus.LOST
    return EntityStatus.EXISTING


def display_tier_for(tier: RevenueTier, status: EntityStatus) -> DisplayTier:
    if status == EntityStatus.NEW:
        return DisplayTier.NEW
    if status == EntityStatus.LOST:
        return DisplayTier.LOST
    return DisplayTier(tier.value)


def tier_group_for(tier: RevenueTier, status: EntityStatus) -> str:
    if status == EntityStatus.NEW:
        return f"NEW-{tier.value}"
    if status == EntityStatus.LOST:
        return f"LOST-{tier.value}"
    return tier.value


def transition_warning(
    tier: RevenueTier,
    status: EntityStatus,
    cumulative_pct: float,
    rev_change_pct: float,
) -> Optional[str]:
    """
    Advisory about an existing entity's position relative to tier boundaries.

    Returns:
        The advisory text, or None.
    """
    if status != EntityStatus.EXISTING:
        return None

    if tier == RevenueTier.A:
        if abs(cumulative_pct - TIER_A_MAX_PCT) <= THRESHOLD_BAND:
            return "At 80% threshold"
        if cumulative_pct > TIER_A_MAX_PCT:
            return f"Risk: outside top 80% ({cumulative_pct:.1f}%)"
        if cumulative_pct > APPROACHING_B_PCT:
            return "Approaching tier B"
        return None

    if tier == RevenueTier.B:
        if cumulative_pct <= CLOSE_TO_A_PCT:
            gap = cumulative_pct - TIER_A_MAX_PCT
            return f"Close to tier A (needs {gap:.1f}% more)"
        if abs(cumulative_pct - TIER_B_MAX_PCT) <= THRESHOLD_BAND:
            return "At 95% threshold"
        return None

    if rev_change_pct < 0:
        return "Removal candidate"
    return None


# =============================================================================
# Anomaly severity
# =============================================================================


@dataclass(frozen=True)
class SeverityRule:
    """
    One anomaly rule.

    Attributes:
        severity: Severity assigned when the rule matches.
        metrics: Metrics the rule refers to.
        matches: Predicate over the record.
        describe: Message builder over the record.
    """
    severity: WarningSeverity
    metrics: Tuple[str, ...]
    matches: Callable[[MergedEntityRecord], bool]
    describe: Callable[[MergedEntityRecord], str]


def _revenue_band(r: MergedEntityRecord) -> bool:
    return -40 < r.rev_change_pct <= -25


SEVERITY_RULES: Tuple[SeverityRule, ...] = (
    # Critical
    SeverityRule(
        WarningSeverity.CRITICAL, ("requests",),
        lambda r: r.req_change_pct <= -40,
        lambda r: (
            f"Request volume dropped {abs(r.req_change_pct):.1f}% - "
            "Contact publisher immediately to check integration"
        ),
    ),
    SeverityRule(
        WarningSeverity.CRITICAL, ("ecpm",),
        lambda r: r.ecpm_change_pct <= -40,
        lambda r: (
            f"eCPM dropped {abs(r.ecpm_change_pct):.1f}% - "
            "Urgent floor price review or demand partner check needed"
        ),
    ),
    SeverityRule(
        WarningSeverity.CRITICAL, ("requests", "ecpm", "revenue"),
        lambda r: r.req_change_pct <= -25 and r.ecpm_change_pct <= -25,
        lambda r: (
            f"Revenue crisis: Requests down {abs(r.req_change_pct):.1f}%, "
            f"eCPM down {abs(r.ecpm_change_pct):.1f}% - Immediate investigation required"
        ),
    ),
    SeverityRule(
        WarningSeverity.CRITICAL, ("fill_rate",),
        lambda r: r.fill_rate_p2 < 50 and r.fill_rate_change <= -15,
        lambda r: (
            f"Fill rate critically low at {r.fill_rate_p2:.1f}% - "
            "Check demand partner health immediately"
        ),
    ),
    # Warning
    SeverityRule(
        WarningSeverity.WARNING, ("requests",),
        lambda r: -40 < r.req_change_pct <= -25,
        lambda r: (
            f"Traffic dropped {abs(r.req_change_pct):.1f}% - "
            "Verify publisher ad tag implementation"
        ),
    ),
    SeverityRule(
        WarningSeverity.WARNING, ("ecpm",),
        lambda r: -40 < r.ecpm_change_pct <= -25,
        lambda r: (
            f"eCPM declining {abs(r.ecpm_change_pct):.1f}% - "
            "Consider floor price optimization"
        ),
    ),
    SeverityRule(
        WarningSeverity.WARNING, ("revenue", "requests"),
        lambda r: _revenue_band(r) and r.req_change_pct <= -15 and r.ecpm_change_pct > -10,
        lambda r: (
            f"Revenue down {abs(r.rev_change_pct):.1f}% due to traffic drop - "
            "Contact publisher about ad inventory"
        ),
    ),
    SeverityRule(
        WarningSeverity.WARNING, ("revenue", "ecpm"),
        lambda r: _revenue_band(r) and r.ecpm_change_pct <= -15 and r.req_change_pct > -10,
        lambda r: (
            f"Revenue down {abs(r.rev_change_pct):.1f}% due to eCPM decline - "
            "Review pricing strategy"
        ),
    ),
    SeverityRule(
        WarningSeverity.WARNING, ("fill_rate",),
        lambda r: -30 < r.fill_rate_change <= -15 and r.fill_rate_p2 >= 50,
        lambda r: (
            f"Fill rate dropped {abs(r.fill_rate_change):.1f}pp - "
            "Monitor demand partner performance"
        ),
    ),
    # Info
    SeverityRule(
        WarningSeverity.INFO, ("requests",),
        lambda r: -25 < r.req_change_pct <= -15,
        lambda r: (
            f"Requests declining {abs(r.req_change_pct):.1f}% - "
            "Monitor for continued trend"
        ),
    ),
    SeverityRule(
        WarningSeverity.INFO, ("ecpm",),
        lambda r: -25 < r.ecpm_change_pct <= -15,
        lambda r: (
            f"eCPM slightly down {abs(r.ecpm_change_pct):.1f}% - "
            "Within normal market fluctuation range"
        ),
    ),
    SeverityRule(
        WarningSeverity.INFO, ("fill_rate",),
        lambda r: -15 < r.fill_rate_change <= -10,
        lambda r: (
            f"Fill rate decreased {abs(r.fill_rate_change):.1f}pp - "
            "Continue monitoring"
        ),
    ),
)


def assess_severity(
    record: MergedEntityRecord,
    status: EntityStatus,
) -> Tuple[WarningSeverity, Optional[str], List[str]]:
    """
    Strongest anomaly for an existing entity.

    The most severe matching rule wins; among rules of equal severity the
    first in SEVERITY_RULES wins. New and lost entities are healthy.

    Returns:
        (severity, message or None, metrics the message refers to)
    """
    if status != EntityStatus.EXISTING:
        return WarningSeverity.HEALTHY, None, []

    best: Optional[SeverityRule] = None
    for rule in SEVERITY_RULES:
        if not rule.matches(record):
            continue
        if best is None or rule.severity.rank > best.severity.rank:
            best = rule

    if best is None:
        return WarningSeverity.HEALTHY, None, []
    return best.severity, best.describe(record), list(best.metrics)


# =============================================================================
# Engine
# =============================================================================


def tier_records(records: Sequence[MergedEntityRecord]) -> List[TieredRecord]:
    """
    Sort, accumulate, tier, classify and annotate merged records.

    Args:
        records: Merged records for one perspective.

    Returns:
        TieredRecord list in ranking order. The input is not modified.
    """
    ordered = sorted(records, key=sort_key)
    total_revenue = float(sum(r.rev_p2 for r in ordered))

    tiered: List[TieredRecord] = []
    cumulative = 0.0
    for record in ordered:
        cumulative += record.rev_p2
        cumulative_pct = safe_ratio(cumulative, total_revenue) * 100.0 if total_revenue > 0 else 0.0

        tier = classify_tier(cumulative_pct, total_revenue)
        status = classify_status(record.rev_p1, record.rev_p2)
        severity, message, metrics = assess_severity(record, status)

        lost_revenue = None
        if status == EntityStatus.LOST:
            lost_revenue = record.avg_monthly_revenue or record.rev_p1

        tiered.append(TieredRecord.from_merged(
            record,
            cumulative_revenue=cumulative,
            cumulative_revenue_pct=cumulative_pct,
            total_revenue=total_revenue,
            revenue_tier=tier.value,
            status=status.value,
            display_tier=display_tier_for(tier, status).value,
            tier_group=tier_group_for(tier, status),
            transition_warning=transition_warning(tier, status, cumulative_pct, record.rev_change_pct),
            warning_severity=severity.value,
            warning_message=message,
            warning_metrics=metrics,
            lost_revenue=lost_revenue,
        ))

    logger.debug(f"Tiered {len(tiered)} records, total period-2 revenue {total_revenue:.2f}")
    return tiered


def tier(records: Sequence[MergedEntityRecord]) -> Tuple[List[TieredRecord], Summary]:
    """Tier records and summarize the full population."""
    tiered = tier_records(records)
    return tiered, summarize(tiered)
