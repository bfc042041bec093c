import json
from pathlib import Path

import pytest

from usage_timeline.core.config import TIME_WINDOWS, TimelineConfig


def test_timeline_config_defaults():
    config = TimelineConfig()
    assert config.buffer_capacity == 1000
    assert config.bucket_resolution_ms == 60_000
    assert config.max_retention_ms == TIME_WINDOWS["THIRTY_DAYS"]
    assert config.max_downsample_points == 200
    assert config.prediction_enabled is False
    assert config.duration_padding_ms == 1000
    assert config.time_windows_ms == tuple(TIME_WINDOWS.values())


def test_timeline_config_from_env(monkeypatch):
    monkeypatch.setenv("TIMELINE_BUFFER_CAPACITY", "50")
    monkeypatch.setenv("TIMELINE_BUCKET_RESOLUTION_MS", "5000")
    monkeypatch.setenv("TIMELINE_PREDICTION_ENABLED", "yes")
    monkeypatch.setenv("TIMELINE_ENABLED", "off")
    monkeypatch.setenv("TIMELINE_TIME_WINDOWS_MS", "60000, 120000")

    config = TimelineConfig.from_env()

    assert config.buffer_capacity == 50
    assert config.bucket_resolution_ms == 5000
    assert config.prediction_enabled is True
    assert config.enabled is False
    assert config.time_windows_ms == (60000, 120000)


def test_timeline_config_from_env_rejects_bad_integer(monkeypatch):
    monkeypatch.setenv("TIMELINE_SWEEP_INTERVAL_MS", "soon")
    with pytest.raises(ValueError):
        TimelineConfig.from_env()


def test_timeline_config_from_file_json(tmp_path: Path):
    path = tmp_path / "timeline.json"
    path.write_text(json.dumps({"buffer_capacity": 10, "max_downsample_points": 5}))

    config = TimelineConfig.from_file(str(path))

    assert config.buffer_capacity == 10
    assert config.max_downsample_points == 5
    assert config.sweep_interval_ms == 60_000


def test_timeline_config_from_file_yaml(tmp_path: Path):
    yaml = pytest.importorskip("yaml")
    path = tmp_path / "timeline.yaml"
    path.write_text(
        yaml.safe_dump({"prediction_enabled": True, "time_windows_ms": [1000, 2000]})
    )

    config = TimelineConfig.from_file(str(path))

    assert config.prediction_enabled is True
    assert config.time_windows_ms == (1000, 2000)


def test_timeline_config_from_file_rejects_unknown_suffix(tmp_path: Path):
    path = tmp_path / "timeline.ini"
    path.write_text("[timeline]")
    with pytest.raises(ValueError):
        TimelineConfig.from_file(str(path))


def test_timeline_config_from_file_missing():
    with pytest.raises(FileNotFoundError):
        TimelineConfig.from_file("/nonexistent/timeline.json")


@pytest.mark.parametrize(
    "overrides",
    [
        {"buffer_capacity": 0},
        {"bucket_resolution_ms": 0},
        {"max_retention_ms": -1},
        {"sweep_interval_ms": 0},
        {"max_downsample_points": 0},
        {"duration_padding_ms": -5},
        {"time_windows_ms": (0,)},
    ],
)
def test_timeline_config_validate_rejects_invalid_values(overrides):
    with pytest.raises(ValueError):
        TimelineConfig(**overrides)


def test_merge_returns_validated_copy():
    config = TimelineConfig()

    merged = config.merge(buffer_capacity=20)

    assert merged.buffer_capacity == 20
    assert config.buffer_capacity == 1000
    with pytest.raises(ValueError):
        config.merge(buffer_capacity=0)
    with pytest.raises(ValueError):
        config.merge(unknown=True)
