"""Main timeline facade coordinating aggregation, analytics and export."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional

from usage_timeline.core.config import TIME_WINDOWS, TimelineConfig
from usage_timeline.core.events import EventBus
from usage_timeline.domain.exceptions import UnsupportedExportFormatError
from usage_timeline.domain.interfaces import IEventListener, ITimelineRenderer
from usage_timeline.domain.models import (
    AggregatedPoint,
    BufferStats,
    EventType,
    ExportFormat,
    MemoryStats,
    TimeBucketPoint,
    TimelineAnalytics,
    TimelineFilter,
    TimeWindowOption,
    UsageRecord,
)
from usage_timeline.export.formatter import ExportFormatter, resolve_format
from usage_timeline.timeline.aggregator import BucketAggregator

_WINDOW_LABELS = {
    "ONE_HOUR": "1 Hour",
    "SIX_HOURS": "6 Hours",
    "ONE_DAY": "1 Day",
    "SEVEN_DAYS": "7 Days",
    "THIRTY_DAYS": "30 Days",
}


class TimelineManager:
    """High-level API for producers and consumers of the usage timeline.

    While disabled every query returns a neutral result so callers can render
    an empty state without handling exceptions.
    """

    def __init__(
        self,
        aggregator: BucketAggregator,
        events: EventBus,
        *,
        formatter: ExportFormatter | None = None,
        renderer: ITimelineRenderer | None = None,
        render_size: tuple[int, int] = (800, 400),
        logger: logging.Logger | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._events = events
        self._formatter = formatter or ExportFormatter()
        self._renderer = renderer
        self._render_size = render_size
        self._logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        self._aggregator.start()
        config = self._aggregator.config
        self._logger.info(
            "timeline_started",
            extra={
                "buffer_capacity": config.buffer_capacity,
                "bucket_resolution_ms": config.bucket_resolution_ms,
                "max_retention_ms": config.max_retention_ms,
            },
        )

    def shutdown(self) -> None:
        self._aggregator.stop()

    def __enter__(self) -> "TimelineManager":
        self.start()
        return self

    def __exit__(self, *_: Any) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Ingress
    # ------------------------------------------------------------------
    def process(
        self, records: Iterable[UsageRecord | Mapping[str, Any]]
    ) -> List[TimeBucketPoint]:
        if not self.is_enabled():
            return []
        try:
            points = self._aggregator.process(records)
        except Exception:
            self._logger.exception("timeline_process_failed")
            raise
        if points:
            self._logger.info(
                "timeline_processed",
                extra={
                    "buckets": len(points),
                    "entries": sum(point.entry_count for point in points),
                },
            )
        return points

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_series(
        self, window_ms: int, max_points: Optional[int] = None
    ) -> List[TimeBucketPoint]:
        if not self.is_enabled():
            return []
        return self._aggregator.series(window_ms, max_points)

    def get_aggregated_series(
        self, window_ms: int, max_points: Optional[int] = None
    ) -> List[AggregatedPoint]:
        if not self.is_enabled():
            return []
        return self._aggregator.aggregated_series(window_ms, max_points)

    def get_analytics(self, window_ms: int) -> TimelineAnalytics:
        if not self.is_enabled():
            return TimelineAnalytics.neutral()
        return self._aggregator.analytics(window_ms)

    def get_filtered_series(
        self, window_ms: int, criteria: TimelineFilter
    ) -> List[TimeBucketPoint]:
        if not self.is_enabled():
            return []
        return self._aggregator.filtered(window_ms, criteria)

    def recent(self, count: int) -> List[TimeBucketPoint]:
        if not self.is_enabled():
            return []
        return self._aggregator.recent(count)

    def get_memory_stats(self) -> MemoryStats:
        return self._aggregator.memory_stats()

    def get_buffer_stats(self) -> BufferStats:
        return self._aggregator.buffer_stats()

    def available_time_windows(self) -> List[TimeWindowOption]:
        names = {value: name for name, value in TIME_WINDOWS.items()}
        options = []
        for value in self._aggregator.config.time_windows_ms:
            name = names.get(value, f"CUSTOM_{value}")
            label = _WINDOW_LABELS.get(name, f"{value // 60000} Minutes")
            options.append(TimeWindowOption(name=name, value_ms=value, label=label))
        return options

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def export(
        self,
        fmt: ExportFormat | str,
        window_ms: int,
        *,
        include_breakdown: bool = False,
        resolution: Optional[int] = None,
    ) -> str | bytes:
        """Export the window as CSV/JSON text or PNG bytes from the renderer."""

        resolved = resolve_format(fmt)
        if resolved is ExportFormat.PNG:
            if self._renderer is None:
                raise UnsupportedExportFormatError(
                    "PNG export requires a timeline renderer",
                    context={"format": resolved.value},
                )
            width, height = self._render_size
            return self._renderer.render(
                self.get_aggregated_series(window_ms, resolution), width, height
            )

        points = self.get_series(window_ms, resolution)
        payload = self._formatter.format(
            points, resolved, include_breakdown=include_breakdown
        )
        self._logger.debug(
            "timeline_exported",
            extra={"format": resolved.value, "points": len(points)},
        )
        return payload

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def get_config(self) -> TimelineConfig:
        return self._aggregator.config

    def update_config(self, **changes: Any) -> TimelineConfig:
        was_enabled = self.is_enabled()
        config = self._aggregator.update_config(**changes)
        if was_enabled and not config.enabled:
            self._aggregator.clear()
        return config

    def set_enabled(self, enabled: bool) -> None:
        """Toggle the timeline; disabling drops all buffered points."""

        if self.is_enabled() != enabled:
            self.update_config(enabled=enabled)

    def is_enabled(self) -> bool:
        return self._aggregator.config.enabled

    def clear(self) -> None:
        self._aggregator.clear()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def subscribe(self, listener: IEventListener, *event_types: EventType) -> None:
        self._events.subscribe(listener, *event_types)

    def unsubscribe(self, listener: IEventListener) -> bool:
        return self._events.unsubscribe(listener)
