"""Demonstrates reacting to buffer events with a custom listener."""

from usage_timeline.core.config import TimelineConfig
from usage_timeline.core.container import DIContainer
from usage_timeline.domain.interfaces import IEventListener
from usage_timeline.domain.models import EventType, TimelineEvent, UsageRecord
from usage_timeline.utils.clock import now_ms


class OverflowCounter(IEventListener):
    """Counts points evicted because the buffer wrapped around."""

    def __init__(self) -> None:
        self.evicted = 0

    def __call__(self, event: TimelineEvent) -> None:
        if event.type is EventType.BUFFER_OVERFLOW:
            self.evicted += 1


def main() -> None:
    counter = OverflowCounter()
    timeline = DIContainer.create_timeline(
        config=TimelineConfig(buffer_capacity=10),
        listeners=[counter],
    )

    start = now_ms() - 25 * 60 * 1000

    timeline.process(
        UsageRecord(
            timestamp_ms=start + minute * 60 * 1000,
            model="gpt-4o",
            provider="openai",
            input_tokens=500,
            output_tokens=120,
            cache_creation_tokens=0,
            cache_read_tokens=0,
            cost_usd=0.002,
        )
        for minute in range(25)
    )
    print("Evicted points:", counter.evicted)
    print("Buffer:", timeline.get_buffer_stats())


if __name__ == "__main__":
    main()
