"""Dependency injection container for building fully-wired timeline instances."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from usage_timeline.analytics.engine import AnalyticsEngine
from usage_timeline.core.config import TimelineConfig
from usage_timeline.core.events import EventBus, LoggingListener
from usage_timeline.core.manager import TimelineManager
from usage_timeline.domain.interfaces import Clock, IEventListener, ITimelineRenderer
from usage_timeline.export.formatter import ExportFormatter
from usage_timeline.timeline.aggregator import BucketAggregator
from usage_timeline.utils.clock import now_ms


class DIContainer:
    """Factory helpers that assemble a TimelineManager with default wiring."""

    @staticmethod
    def create_timeline(
        *,
        config: Optional[TimelineConfig] = None,
        clock: Clock = now_ms,
        renderer: Optional[ITimelineRenderer] = None,
        listeners: Iterable[IEventListener] = (),
        log_events: bool = True,
    ) -> TimelineManager:
        cfg = config or TimelineConfig.from_env()
        events = DIContainer._build_event_bus(listeners, log_events=log_events)
        aggregator = BucketAggregator(
            cfg,
            events=events,
            engine=AnalyticsEngine(),
            clock=clock,
        )
        return TimelineManager(
            aggregator,
            events,
            formatter=ExportFormatter(),
            renderer=renderer,
        )

    @staticmethod
    def create_custom_timeline(
        *,
        aggregator: BucketAggregator,
        events: EventBus,
        formatter: Optional[ExportFormatter] = None,
        renderer: Optional[ITimelineRenderer] = None,
    ) -> TimelineManager:
        return TimelineManager(
            aggregator, events, formatter=formatter, renderer=renderer
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _build_event_bus(
        listeners: Iterable[IEventListener], *, log_events: bool
    ) -> EventBus:
        bus = EventBus(listeners)
        if log_events:
            bus.subscribe(
                LoggingListener(logging.getLogger("usage_timeline.events"))
            )
        return bus
