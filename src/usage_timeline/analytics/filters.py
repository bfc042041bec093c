"""Predicate helpers for filtering timeline points."""

from __future__ import annotations

from typing import List, Sequence

from usage_timeline.domain.models import TimeBucketPoint, TimelineFilter


def matches(point: TimeBucketPoint, criteria: TimelineFilter) -> bool:
    """Return True when the point satisfies every criterion in the filter."""

    if criteria.providers and criteria.providers.isdisjoint(point.provider_breakdown):
        return False
    if criteria.models and criteria.models.isdisjoint(point.model_breakdown):
        return False
    if criteria.min_tokens is not None and point.total_tokens < criteria.min_tokens:
        return False
    if criteria.max_cost is not None and point.cost_usd > criteria.max_cost:
        return False
    if criteria.start_ms is not None and point.timestamp_ms < criteria.start_ms:
        return False
    if criteria.end_ms is not None and point.timestamp_ms > criteria.end_ms:
        return False
    return True


def apply_filter(
    points: Sequence[TimeBucketPoint], criteria: TimelineFilter
) -> List[TimeBucketPoint]:
    return [point for point in points if matches(point, criteria)]
