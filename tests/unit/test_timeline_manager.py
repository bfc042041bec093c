import json

import pytest

from usage_timeline.core.config import TIME_WINDOWS, TimelineConfig
from usage_timeline.core.events import EventBus
from usage_timeline.core.manager import TimelineManager
from usage_timeline.domain.exceptions import UnsupportedExportFormatError
from usage_timeline.domain.models import EventType, TrendDirection, UsageRecord
from usage_timeline.timeline.aggregator import BucketAggregator

NOW_MS = 60 * 60 * 1000


class _StubRenderer:
    def __init__(self):
        self.calls = []

    def render(self, points, width, height) -> bytes:
        self.calls.append((list(points), width, height))
        return b"\x89PNG"


def _record(timestamp_ms: int, tokens: int, provider: str = "claude-code") -> UsageRecord:
    return UsageRecord(
        timestamp_ms=timestamp_ms,
        model="opus",
        provider=provider,
        input_tokens=tokens,
        output_tokens=0,
        cache_creation_tokens=0,
        cache_read_tokens=0,
        cost_usd=0.01,
    )


def _manager(renderer=None, **config) -> TimelineManager:
    events = EventBus()
    aggregator = BucketAggregator(
        TimelineConfig(**config), events=events, clock=lambda: NOW_MS
    )
    return TimelineManager(aggregator, events, renderer=renderer)


def _seeded(**config) -> TimelineManager:
    manager = _manager(**config)
    manager.process([_record(ts * 60_000, 10 * ts) for ts in range(1, 6)])
    return manager


def test_process_and_query_series():
    manager = _seeded()

    series = manager.get_series(NOW_MS)

    assert [p.total_tokens for p in series] == [10, 20, 30, 40, 50]
    assert manager.recent(1)[0].total_tokens == 50


def test_get_series_applies_max_points():
    manager = _seeded()
    assert len(manager.get_series(NOW_MS, max_points=2)) == 2


def test_get_aggregated_series():
    manager = _seeded()
    points = manager.get_aggregated_series(NOW_MS)
    assert points[0].provider_data["claude-code"].tokens == 10


def test_get_analytics_reports_trend():
    manager = _seeded()
    analytics = manager.get_analytics(NOW_MS)
    assert analytics.trend.direction is TrendDirection.INCREASING


def test_disabled_manager_returns_neutral_results():
    manager = _seeded()

    manager.set_enabled(False)

    assert manager.is_enabled() is False
    assert manager.get_series(NOW_MS) == []
    assert manager.get_aggregated_series(NOW_MS) == []
    assert manager.process([_record(1000, 1)]) == []
    analytics = manager.get_analytics(NOW_MS)
    assert analytics.trend.direction is TrendDirection.STABLE
    assert analytics.prediction is None
    assert manager.get_memory_stats().used == 0
    payload = json.loads(manager.export("json", NOW_MS))
    assert payload["points"] == []


def test_reenabling_accepts_new_data():
    manager = _seeded()
    manager.set_enabled(False)
    manager.set_enabled(True)

    manager.process([_record(120_000, 7)])

    assert [p.total_tokens for p in manager.get_series(NOW_MS)] == [7]


def test_export_csv_and_json():
    manager = _seeded()

    csv_text = manager.export("csv", NOW_MS, include_breakdown=True)
    json_text = manager.export("json", NOW_MS, resolution=2)

    assert csv_text.splitlines()[0].endswith("model_breakdown,provider_breakdown")
    assert len(csv_text.strip().splitlines()) == 6
    assert json.loads(json_text)["point_count"] == 2


def test_export_png_delegates_to_renderer():
    renderer = _StubRenderer()
    manager = _manager(renderer=renderer)
    manager.process([_record(60_000, 5)])

    payload = manager.export("png", NOW_MS)

    assert payload == b"\x89PNG"
    points, width, height = renderer.calls[0]
    assert (width, height) == (800, 400)
    assert points[0].total_tokens == 5


def test_export_png_without_renderer_fails():
    with pytest.raises(UnsupportedExportFormatError):
        _manager().export("png", NOW_MS)


def test_export_unknown_format_fails():
    with pytest.raises(UnsupportedExportFormatError):
        _seeded().export("pdf", NOW_MS)


def test_update_config_round_trip_and_events():
    manager = _manager()
    received = []
    manager.subscribe(received.append, EventType.CONFIG_UPDATED)

    config = manager.update_config(max_downsample_points=50)

    assert config.max_downsample_points == 50
    assert manager.get_config().max_downsample_points == 50
    assert len(received) == 1
    assert received[0].metadata["changed"] == ["max_downsample_points"]


def test_available_time_windows():
    manager = _manager(time_windows_ms=(TIME_WINDOWS["ONE_HOUR"], 90_000))

    options = manager.available_time_windows()

    assert options[0].name == "ONE_HOUR"
    assert options[0].label == "1 Hour"
    assert options[1].name == "CUSTOM_90000"


def test_memory_and_buffer_stats():
    manager = _seeded(buffer_capacity=10)

    memory = manager.get_memory_stats()
    stats = manager.get_buffer_stats()

    assert memory.capacity == 10
    assert memory.used == 5
    assert memory.oldest_timestamp_ms == 60_000
    assert memory.newest_timestamp_ms == 300_000
    assert memory.estimated_megabytes == pytest.approx(5 * 512 / (1024 * 1024))
    assert stats.usage_percent == pytest.approx(50.0)


def test_context_manager_starts_and_stops_sweeper():
    manager = _manager()
    with manager as running:
        assert running._aggregator.sweeper.is_running  # type: ignore[attr-defined]
    assert not manager._aggregator.sweeper.is_running  # type: ignore[attr-defined]


def test_clear_drops_points():
    manager = _seeded()
    manager.clear()
    assert manager.get_series(NOW_MS) == []
