"""Summation rules shared by bucket aggregation and downsampling.

Token fields are summed as integers. Costs are collected and summed with
``math.fsum`` so the total does not depend on fold order, then rounded to
``COST_PRECISION`` decimals once when the point is built.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from usage_timeline.domain.exceptions import MalformedBatchError
from usage_timeline.domain.models import (
    COST_PRECISION,
    ModelUsage,
    ProviderUsage,
    TimeBucketPoint,
    UsageRecord,
)


@dataclass
class _Totals:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    total_tokens: int = 0
    entry_count: int = 0
    costs: List[float] = field(default_factory=list)

    def add(
        self,
        *,
        input_tokens: int = 0,
        output_tokens: int = 0,
        cache_creation_tokens: int = 0,
        cache_read_tokens: int = 0,
        total_tokens: int = 0,
        cost_usd: float = 0.0,
        entry_count: int = 1,
    ) -> None:
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.cache_creation_tokens += cache_creation_tokens
        self.cache_read_tokens += cache_read_tokens
        self.total_tokens += total_tokens
        self.entry_count += entry_count
        self.costs.append(cost_usd)

    @property
    def cost_usd(self) -> float:
        return round(math.fsum(self.costs), COST_PRECISION)


@dataclass
class _Fold:
    totals: _Totals = field(default_factory=_Totals)
    models: Dict[str, _Totals] = field(default_factory=dict)
    providers: Dict[str, _Totals] = field(default_factory=dict)
    provider_names: Dict[str, str] = field(default_factory=dict)

    def model(self, key: str) -> _Totals:
        return self.models.setdefault(key, _Totals())

    def provider(self, key: str, name: str) -> _Totals:
        self.provider_names.setdefault(key, name)
        return self.providers.setdefault(key, _Totals())

    def build(self, timestamp_ms: int, duration_ms: int) -> TimeBucketPoint:
        totals = self.totals
        return TimeBucketPoint(
            timestamp_ms=timestamp_ms,
            duration_ms=max(duration_ms, 0),
            input_tokens=totals.input_tokens,
            output_tokens=totals.output_tokens,
            cache_creation_tokens=totals.cache_creation_tokens,
            cache_read_tokens=totals.cache_read_tokens,
            total_tokens=totals.total_tokens,
            cost_usd=totals.cost_usd,
            entry_count=totals.entry_count,
            model_breakdown={
                key: ModelUsage(
                    model=key,
                    input_tokens=usage.input_tokens,
                    output_tokens=usage.output_tokens,
                    total_tokens=usage.total_tokens,
                    cost_usd=usage.cost_usd,
                    entry_count=usage.entry_count,
                )
                for key, usage in self.models.items()
            },
            provider_breakdown={
                key: ProviderUsage(
                    provider_id=key,
                    provider_name=self.provider_names[key],
                    input_tokens=usage.input_tokens,
                    output_tokens=usage.output_tokens,
                    cache_creation_tokens=usage.cache_creation_tokens,
                    cache_read_tokens=usage.cache_read_tokens,
                    total_tokens=usage.total_tokens,
                    cost_usd=usage.cost_usd,
                    entry_count=usage.entry_count,
                )
                for key, usage in self.providers.items()
            },
        )


def fold_records(
    bucket_start_ms: int, records: Sequence[UsageRecord], *, padding_ms: int
) -> TimeBucketPoint:
    """Fold the records of one resolution bucket into a single point."""

    if not records:
        raise MalformedBatchError(context={"bucket_start_ms": bucket_start_ms})

    ordered = sorted(records, key=lambda record: record.timestamp_ms)
    fold = _Fold()
    for record in ordered:
        fields = dict(
            input_tokens=record.input_tokens,
            output_tokens=record.output_tokens,
            cache_creation_tokens=record.cache_creation_tokens,
            cache_read_tokens=record.cache_read_tokens,
            total_tokens=record.total_tokens,
            cost_usd=record.cost_usd,
        )
        fold.totals.add(**fields)
        fold.model(record.model).add(**fields)
        fold.provider(record.provider, record.display_name).add(**fields)

    last_ms = ordered[-1].timestamp_ms
    return fold.build(bucket_start_ms, (last_ms - bucket_start_ms) + padding_ms)


def fold_points(points: Sequence[TimeBucketPoint]) -> TimeBucketPoint:
    """Merge consecutive points into one synthetic point spanning all of them."""

    if not points:
        raise MalformedBatchError("Cannot fold an empty point batch")

    first, last = points[0], points[-1]
    # A breakdown is only kept when every folded point carries one.
    with_models = all(point.model_breakdown for point in points)
    with_providers = all(point.provider_breakdown for point in points)
    fold = _Fold()
    for point in points:
        fold.totals.add(
            input_tokens=point.input_tokens,
            output_tokens=point.output_tokens,
            cache_creation_tokens=point.cache_creation_tokens,
            cache_read_tokens=point.cache_read_tokens,
            total_tokens=point.total_tokens,
            cost_usd=point.cost_usd,
            entry_count=point.entry_count,
        )
        models = point.model_breakdown if with_models else {}
        for key, model_usage in models.items():
            fold.model(key).add(
                input_tokens=model_usage.input_tokens,
                output_tokens=model_usage.output_tokens,
                total_tokens=model_usage.total_tokens,
                cost_usd=model_usage.cost_usd,
                entry_count=model_usage.entry_count,
            )
        providers = point.provider_breakdown if with_providers else {}
        for key, provider_usage in providers.items():
            fold.provider(key, provider_usage.provider_name).add(
                input_tokens=provider_usage.input_tokens,
                output_tokens=provider_usage.output_tokens,
                cache_creation_tokens=provider_usage.cache_creation_tokens,
                cache_read_tokens=provider_usage.cache_read_tokens,
                total_tokens=provider_usage.total_tokens,
                cost_usd=provider_usage.cost_usd,
                entry_count=provider_usage.entry_count,
            )

    return fold.build(first.timestamp_ms, last.end_ms - first.timestamp_ms)
