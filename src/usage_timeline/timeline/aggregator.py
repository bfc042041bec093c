"""Folds raw usage records into time buckets stored in a ring buffer."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional

from usage_timeline.analytics.engine import AnalyticsEngine
from usage_timeline.analytics.filters import apply_filter
from usage_timeline.core.config import TimelineConfig
from usage_timeline.core.events import EventBus
from usage_timeline.domain.exceptions import MalformedBatchError
from usage_timeline.domain.interfaces import Clock, IAnalyticsEngine
from usage_timeline.domain.models import (
    AggregatedPoint,
    BufferStats,
    EventType,
    MemoryStats,
    ProviderSeries,
    TimeBucketPoint,
    TimelineAnalytics,
    TimelineFilter,
    UsageRecord,
)
from usage_timeline.timeline.ring_buffer import RingBuffer
from usage_timeline.timeline.sweeper import RetentionSweeper
from usage_timeline.utils.clock import bucket_start, now_ms
from usage_timeline.utils.folding import fold_records


class BucketAggregator:
    """Owns the ring buffer, its retention sweeper and the active config.

    Every buffer access goes through one re-entrant lock so the sweeper thread
    and the producer never interleave cursor updates.
    """

    def __init__(
        self,
        config: TimelineConfig | None = None,
        *,
        events: EventBus | None = None,
        engine: IAnalyticsEngine | None = None,
        clock: Clock = now_ms,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or TimelineConfig()
        self._events = events if events is not None else EventBus()
        self._engine = engine or AnalyticsEngine()
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._buffer = RingBuffer(
            self._config.buffer_capacity, events=self._events, clock=clock
        )
        self._sweeper = RetentionSweeper(self.cleanup, self._config.sweep_interval_ms)

    @property
    def config(self) -> TimelineConfig:
        return self._config

    @property
    def sweeper(self) -> RetentionSweeper:
        return self._sweeper

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    def process(
        self, records: Iterable[UsageRecord | Mapping[str, Any]]
    ) -> List[TimeBucketPoint]:
        """Bucket a batch of records and append one point per bucket."""

        batch = [
            record
            if isinstance(record, UsageRecord)
            else UsageRecord.model_validate(record)
            for record in records
        ]
        if not batch:
            return []

        with self._lock:
            config = self._config
            groups = self._group_by_bucket(batch, config.bucket_resolution_ms)
            if not groups:
                raise MalformedBatchError(context={"records": len(batch)})

            points: List[TimeBucketPoint] = []
            overflowed = False
            for start in sorted(groups):
                point = fold_records(
                    start, groups[start], padding_ms=config.duration_padding_ms
                )
                overflowed = self._buffer.add(point) or overflowed
                points.append(point)

            removed = (
                self._buffer.cleanup(config.max_retention_ms) if overflowed else 0
            )

        self._logger.debug(
            "timeline_process",
            extra={
                "records": len(batch),
                "buckets": len(points),
                "overflowed": overflowed,
                "expired": removed,
            },
        )
        return points

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def series(
        self, window_ms: int, max_points: Optional[int] = None
    ) -> List[TimeBucketPoint]:
        """Downsampled points from the last ``window_ms`` milliseconds.

        A ``max_points`` of ``None`` or ``0`` falls back to the configured limit.
        """

        start, end = self._window(window_ms)
        with self._lock:
            limit = max_points or self._config.max_downsample_points
            return self._buffer.downsampled(start, end, limit)

    def aggregated_series(
        self, window_ms: int, max_points: Optional[int] = None
    ) -> List[AggregatedPoint]:
        return [self.to_aggregated(point) for point in self.series(window_ms, max_points)]

    def windowed(self, window_ms: int) -> List[TimeBucketPoint]:
        start, end = self._window(window_ms)
        with self._lock:
            return self._buffer.windowed(start, end)

    def analytics(self, window_ms: int) -> TimelineAnalytics:
        points = self.windowed(window_ms)
        config = self._config
        return self._engine.analyze(
            points,
            prediction_enabled=config.prediction_enabled,
            max_points=config.max_downsample_points,
        )

    def filtered(
        self, window_ms: int, criteria: TimelineFilter
    ) -> List[TimeBucketPoint]:
        return apply_filter(self.windowed(window_ms), criteria)

    def recent(self, count: int) -> List[TimeBucketPoint]:
        with self._lock:
            return self._buffer.recent(count)

    def buffer_stats(self) -> BufferStats:
        with self._lock:
            return self._buffer.stats()

    def memory_stats(self) -> MemoryStats:
        with self._lock:
            return self._buffer.memory_stats()

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    def update_config(self, **changes: Any) -> TimelineConfig:
        """Merge ``changes`` into the config, resizing or rescheduling as needed."""

        with self._lock:
            old = self._config
            new = old.merge(**changes)
            if new.buffer_capacity != old.buffer_capacity:
                self._buffer.resize(new.buffer_capacity)
            self._config = new

        if new.sweep_interval_ms != old.sweep_interval_ms:
            self._sweeper.reschedule(new.sweep_interval_ms)

        old_values, new_values = old.to_dict(), new.to_dict()
        changed = sorted(key for key in new_values if new_values[key] != old_values[key])
        self._logger.info("config_updated", extra={"changed": changed})
        self._events.emit(
            EventType.CONFIG_UPDATED,
            metadata={
                "old_config": old_values,
                "new_config": new_values,
                "changed": changed,
            },
        )
        return new

    def cleanup(self) -> int:
        """Evict points older than the configured retention horizon."""

        with self._lock:
            return self._buffer.cleanup(self._config.max_retention_ms)

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def start(self) -> None:
        self.cleanup()
        self._sweeper.start()

    def stop(self) -> None:
        self._sweeper.stop()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _window(self, window_ms: int) -> tuple[int, int]:
        if window_ms < 0:
            raise ValueError("window_ms must be non-negative")
        end = self._clock()
        return end - window_ms, end

    @staticmethod
    def _group_by_bucket(
        records: List[UsageRecord], resolution_ms: int
    ) -> Dict[int, List[UsageRecord]]:
        groups: Dict[int, List[UsageRecord]] = {}
        for record in records:
            groups.setdefault(bucket_start(record.timestamp_ms, resolution_ms), []).append(
                record
            )
        return groups

    @staticmethod
    def to_aggregated(point: TimeBucketPoint) -> AggregatedPoint:
        return AggregatedPoint(
            timestamp_ms=point.timestamp_ms,
            total_tokens=point.total_tokens,
            total_cost_usd=point.cost_usd,
            entry_count=point.entry_count,
            provider_data={
                provider_id: ProviderSeries(
                    tokens=usage.total_tokens,
                    cost=usage.cost_usd,
                    color_key=provider_id,
                )
                for provider_id, usage in point.provider_breakdown.items()
            },
        )
