"""Observer list used to publish buffer and aggregator events."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from usage_timeline.domain.interfaces import IEventListener
from usage_timeline.domain.models import EventType, TimelineEvent


class EventBus:
    """Delivers typed events to registered listeners in subscription order."""

    def __init__(
        self,
        listeners: Iterable[IEventListener] = (),
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._subscriptions: List[
            Tuple[IEventListener, Optional[frozenset[EventType]]]
        ] = [(listener, None) for listener in listeners]
        self._logger = logger or logging.getLogger(__name__)

    def subscribe(self, listener: IEventListener, *event_types: EventType) -> None:
        """Register a listener for the given event types (all types when empty)."""

        types = frozenset(EventType(t) for t in event_types) if event_types else None
        self._subscriptions.append((listener, types))

    def unsubscribe(self, listener: IEventListener) -> bool:
        before = len(self._subscriptions)
        self._subscriptions = [
            (registered, types)
            for registered, types in self._subscriptions
            if registered is not listener
        ]
        return len(self._subscriptions) != before

    def publish(self, event: TimelineEvent) -> None:
        """Deliver ``event``; a failing listener is logged and skipped."""

        for listener, types in list(self._subscriptions):
            if types is not None and event.type not in types:
                continue
            try:
                listener(event)
            except Exception:
                self._logger.exception(
                    "timeline_listener_failed",
                    extra={"event_type": event.type.value},
                )

    def emit(self, event_type: EventType, **payload) -> TimelineEvent:
        event = TimelineEvent(type=event_type, **payload)
        self.publish(event)
        return event

    def __len__(self) -> int:
        return len(self._subscriptions)


class LoggingListener:
    """Forwards every event to a logger as a structured record."""

    def __init__(
        self, logger: logging.Logger | None = None, *, level: int = logging.DEBUG
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._level = level

    def __call__(self, event: TimelineEvent) -> None:
        self._logger.log(
            self._level,
            "timeline_event",
            extra={
                "event_type": event.type.value,
                "event_timestamp": event.timestamp.isoformat(),
                "point_timestamp_ms": (
                    event.point.timestamp_ms if event.point is not None else None
                ),
                "metadata": event.metadata,
            },
        )
