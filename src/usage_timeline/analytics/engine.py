"""Pure business-logic helpers for timeline analytics."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from usage_timeline.domain.interfaces import IAnalyticsEngine
from usage_timeline.domain.models import (
    TimeBucketPoint,
    TimelineAnalytics,
    TrendDirection,
    TrendInfo,
    UsagePrediction,
)

TREND_THRESHOLD_PERCENT = 5.0
MIN_PREDICTION_CONFIDENCE = 0.1
_MS_PER_MINUTE = 60 * 1000


class AnalyticsEngine(IAnalyticsEngine):
    """Performs read-only calculations on a chronological point series."""

    def analyze(
        self,
        points: Sequence[TimeBucketPoint],
        *,
        prediction_enabled: bool = False,
        max_points: int = 200,
    ) -> TimelineAnalytics:
        if not points:
            return TimelineAnalytics.neutral()

        rate = self.average_usage_rate(points)
        growth = self.growth_rate(points)
        prediction = (
            self.predict(rate, len(points), max_points) if prediction_enabled else None
        )
        return TimelineAnalytics(
            peak_usage_time_ms=self.peak_usage_time(points),
            average_usage_rate=rate,
            growth_rate=growth,
            trend=self.trend(growth),
            prediction=prediction,
        )

    @staticmethod
    def peak_usage_time(points: Sequence[TimeBucketPoint]) -> Optional[int]:
        if not points:
            return None
        peak = points[0]
        for point in points[1:]:
            if point.total_tokens > peak.total_tokens:
                peak = point
        return peak.timestamp_ms

    @staticmethod
    def average_usage_rate(points: Sequence[TimeBucketPoint]) -> float:
        """Tokens per minute between the first and last point timestamps."""

        if not points:
            return 0.0
        span_minutes = (points[-1].timestamp_ms - points[0].timestamp_ms) / _MS_PER_MINUTE
        if span_minutes <= 0:
            return 0.0
        return sum(point.total_tokens for point in points) / span_minutes

    @staticmethod
    def growth_rate(points: Sequence[TimeBucketPoint]) -> float:
        midpoint = len(points) // 2
        first_half = sum(point.total_tokens for point in points[:midpoint])
        second_half = sum(point.total_tokens for point in points[midpoint:])
        if first_half == 0:
            return 0.0
        return (second_half - first_half) / first_half * 100

    @staticmethod
    def trend(growth_rate: float) -> TrendInfo:
        if growth_rate > TREND_THRESHOLD_PERCENT:
            direction = TrendDirection.INCREASING
        elif growth_rate < -TREND_THRESHOLD_PERCENT:
            direction = TrendDirection.DECREASING
        else:
            return TrendInfo()
        return TrendInfo(direction=direction, strength=min(abs(growth_rate) / 100, 1.0))

    @staticmethod
    def predict(rate: float, sample_size: int, max_points: int) -> UsagePrediction:
        """Linear extrapolation of ``rate``; not a forecasting model."""

        if max_points < 1:
            raise ValueError("max_points must be at least 1")
        return UsagePrediction(
            next_hour_tokens=_round_half_up(rate * 60),
            next_day_tokens=_round_half_up(rate * 60 * 24),
            confidence=max(MIN_PREDICTION_CONFIDENCE, 1 - sample_size / max_points),
        )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
