import logging
from typing import List

from usage_timeline.core.events import EventBus, LoggingListener
from usage_timeline.domain.models import EventType, TimelineEvent


class _FakeLogger:
    def __init__(self):
        self.records: List[tuple] = []

    def log(self, level, msg, *_, **kwargs):
        self.records.append((level, msg, kwargs.get("extra")))


def test_publish_reaches_all_listeners_in_order():
    calls = []
    bus = EventBus(
        [
            lambda event: calls.append(("a", event.type)),
            lambda event: calls.append(("b", event.type)),
        ]
    )

    bus.emit(EventType.BUFFER_CLEARED)

    assert calls == [
        ("a", EventType.BUFFER_CLEARED),
        ("b", EventType.BUFFER_CLEARED),
    ]


def test_subscribe_filters_by_event_type():
    received: List[TimelineEvent] = []
    bus = EventBus()
    bus.subscribe(received.append, EventType.BUFFER_OVERFLOW, "retention-cleanup")

    bus.emit(EventType.POINT_ADDED)
    bus.emit(EventType.RETENTION_CLEANUP, metadata={"removed": 2})

    assert [event.type for event in received] == [EventType.RETENTION_CLEANUP]
    assert received[0].metadata == {"removed": 2}


def test_unsubscribe_removes_listener():
    received = []

    def listener(event: TimelineEvent) -> None:
        received.append(event)

    bus = EventBus()
    bus.subscribe(listener, EventType.POINT_ADDED)

    assert bus.unsubscribe(listener) is True
    assert bus.unsubscribe(listener) is False
    bus.emit(EventType.POINT_ADDED)
    assert received == []
    assert len(bus) == 0


def test_failing_listener_is_logged_and_skipped(caplog):
    received: List[TimelineEvent] = []

    def broken(event: TimelineEvent) -> None:
        raise RuntimeError("listener broke")

    bus = EventBus([broken, received.append])

    with caplog.at_level(logging.ERROR, logger="usage_timeline.core.events"):
        bus.emit(EventType.POINT_ADDED)

    assert [event.type for event in received] == [EventType.POINT_ADDED]
    failure = next(
        r for r in caplog.records if r.getMessage() == "timeline_listener_failed"
    )
    assert failure.event_type == "point-added"
    assert failure.exc_info is not None


def test_logging_listener_writes_structured_record():
    fake_logger = _FakeLogger()
    listener = LoggingListener(fake_logger, level=logging.INFO)  # type: ignore[arg-type]

    listener(TimelineEvent(type=EventType.CONFIG_UPDATED, metadata={"changed": ["x"]}))

    level, msg, extra = fake_logger.records[0]
    assert level == logging.INFO
    assert msg == "timeline_event"
    assert extra["event_type"] == "config-updated"
    assert extra["metadata"] == {"changed": ["x"]}
