"""Domain-level interfaces defining contracts for timeline collaborators."""

from __future__ import annotations

from typing import Callable, Protocol, Sequence

from .models import (
    AggregatedPoint,
    ExportFormat,
    TimeBucketPoint,
    TimelineAnalytics,
    TimelineEvent,
)

Clock = Callable[[], int]
"""Callable returning the current time in epoch milliseconds."""


class IEventListener(Protocol):
    """Receives timeline events published by the buffer or aggregator."""

    def __call__(self, event: TimelineEvent) -> None:
        """Handle a single event; the payload is a copy owned by the listener."""


class IAnalyticsEngine(Protocol):
    """Derives trend and prediction statistics from a point series."""

    def analyze(
        self,
        points: Sequence[TimeBucketPoint],
        *,
        prediction_enabled: bool = False,
        max_points: int = 200,
    ) -> TimelineAnalytics:
        """Return analytics for a chronologically ordered series."""


class IExportFormatter(Protocol):
    """Serializes a point series into a portable text payload."""

    def format(
        self,
        points: Sequence[TimeBucketPoint],
        fmt: ExportFormat | str,
        *,
        include_breakdown: bool = False,
    ) -> str:
        """Return the rendered payload for the requested format."""


class ITimelineRenderer(Protocol):
    """External image renderer used for PNG exports."""

    def render(
        self, points: Sequence[AggregatedPoint], width: int, height: int
    ) -> bytes:
        """Draw the aggregated series and return encoded image bytes."""
