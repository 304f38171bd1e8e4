"""
Summary reducer for tiered deep-dive results.

Totals both periods, computes the period-over-period changes and counts
entities and period-2 revenue per display tier. Every display tier key
(A, B, C, NEW, LOST) is always present.
"""

from typing import Dict, Sequence

from perftracker.models.enums import DisplayTier
from perftracker.models.records import TieredRecord, ecpm, pct_change
from perftracker.models.schemas import Summary


def empty_tier_map(initial=0) -> Dict[str, float]:
    return {tier.value: initial for tier in DisplayTier}


def summarize(tiered: Sequence[TieredRecord]) -> Summary:
    """
    Reduce tiered records into summary statistics.

    Args:
        tiered: Records produced by tier_records.

    Returns:
        Summary with totals, changes, tier counts and tier revenue.
    """
    revenue_p1 = float(sum(r.rev_p1 for r in tiered))
    revenue_p2 = float(sum(r.rev_p2 for r in tiered))
    requests_p1 = int(sum(r.req_p1 for r in tiered))
    requests_p2 = int(sum(r.req_p2 for r in tiered))

    ecpm_p1 = ecpm(revenue_p1, requests_p1)
    ecpm_p2 = ecpm(revenue_p2, requests_p2)

    tier_counts = empty_tier_map(0)
    tier_revenue = empty_tier_map(0.0)
    for record in tiered:
        tier_counts[record.display_tier] += 1
        tier_revenue[record.display_tier] += record.rev_p2

    return Summary(
        total_items=len(tiered),
        total_revenue_p1=revenue_p1,
        total_revenue_p2=revenue_p2,
        revenue_change_pct=pct_change(revenue_p1, revenue_p2),
        total_requests_p1=requests_p1,
        total_requests_p2=requests_p2,
        requests_change_pct=pct_change(requests_p1, requests_p2),
        total_ecpm_p1=ecpm_p1,
        total_ecpm_p2=ecpm_p2,
        ecpm_change_pct=pct_change(ecpm_p1, ecpm_p2),
        tier_counts=tier_counts,
        tier_revenue=tier_revenue,
    )
