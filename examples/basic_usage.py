"""Feeding a timeline from a usage log and exporting the last hour."""

from usage_timeline.core.config import TIME_WINDOWS, TimelineConfig
from usage_timeline.core.container import DIContainer
from usage_timeline.utils.clock import now_ms


def main() -> None:
    timeline = DIContainer.create_timeline(
        config=TimelineConfig(max_downsample_points=30, prediction_enabled=True)
    )
    start = now_ms() - 45 * 60 * 1000

    with timeline:
        timeline.process(
            {
                "timestamp_ms": start + minute * 60 * 1000,
                "model": "claude-sonnet" if minute % 3 else "claude-opus",
                "provider": "claude-code",
                "input_tokens": 1200 + 40 * minute,
                "output_tokens": 300,
                "cache_creation_tokens": 0,
                "cache_read_tokens": 800,
                "cost_usd": 0.004 + 0.0001 * minute,
            }
            for minute in range(45)
        )

        analytics = timeline.get_analytics(TIME_WINDOWS["ONE_HOUR"])
        print("Trend:", analytics.trend.direction.value)
        print("Tokens/min:", round(analytics.average_usage_rate, 1))
        if analytics.prediction is not None:
            print("Next hour:", analytics.prediction.next_hour_tokens)
        print(timeline.export("csv", TIME_WINDOWS["ONE_HOUR"]))


if __name__ == "__main__":
    main()
