"""Timeline configuration management helpers."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Tuple

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

TIME_WINDOWS: Dict[str, int] = {
    "ONE_HOUR": HOUR_MS,
    "SIX_HOURS": 6 * HOUR_MS,
    "ONE_DAY": DAY_MS,
    "SEVEN_DAYS": 7 * DAY_MS,
    "THIRTY_DAYS": 30 * DAY_MS,
}


def _str_to_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    value = value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _str_to_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Invalid integer value: {value}") from exc


def _str_to_windows(value: str | None, default: Tuple[int, ...]) -> Tuple[int, ...]:
    if not value:
        return default
    return tuple(_str_to_int(item.strip(), 0) for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class TimelineConfig:
    """Immutable configuration object loaded from env or files."""

    buffer_capacity: int = 1000
    bucket_resolution_ms: int = MINUTE_MS
    max_retention_ms: int = TIME_WINDOWS["THIRTY_DAYS"]
    sweep_interval_ms: int = MINUTE_MS
    max_downsample_points: int = 200
    prediction_enabled: bool = False
    duration_padding_ms: int = 1000
    enabled: bool = True
    time_windows_ms: Tuple[int, ...] = field(
        default_factory=lambda: tuple(TIME_WINDOWS.values())
    )

    def __post_init__(self) -> None:
        if not isinstance(self.time_windows_ms, tuple):
            object.__setattr__(self, "time_windows_ms", tuple(self.time_windows_ms))
        self.validate()

    @classmethod
    def from_env(cls) -> "TimelineConfig":
        defaults = cls()
        return cls(
            buffer_capacity=_str_to_int(
                os.getenv("TIMELINE_BUFFER_CAPACITY"), defaults.buffer_capacity
            ),
            bucket_resolution_ms=_str_to_int(
                os.getenv("TIMELINE_BUCKET_RESOLUTION_MS"),
                defaults.bucket_resolution_ms,
            ),
            max_retention_ms=_str_to_int(
                os.getenv("TIMELINE_MAX_RETENTION_MS"), defaults.max_retention_ms
            ),
            sweep_interval_ms=_str_to_int(
                os.getenv("TIMELINE_SWEEP_INTERVAL_MS"), defaults.sweep_interval_ms
            ),
            max_downsample_points=_str_to_int(
                os.getenv("TIMELINE_MAX_DOWNSAMPLE_POINTS"),
                defaults.max_downsample_points,
            ),
            prediction_enabled=_str_to_bool(
                os.getenv("TIMELINE_PREDICTION_ENABLED"), defaults.prediction_enabled
            ),
            duration_padding_ms=_str_to_int(
                os.getenv("TIMELINE_DURATION_PADDING_MS"),
                defaults.duration_padding_ms,
            ),
            enabled=_str_to_bool(os.getenv("TIMELINE_ENABLED"), defaults.enabled),
            time_windows_ms=_str_to_windows(
                os.getenv("TIMELINE_TIME_WINDOWS_MS"), defaults.time_windows_ms
            ),
        )

    @classmethod
    def from_file(cls, path: str) -> "TimelineConfig":
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        raw = file_path.read_text()
        data: Dict[str, Any]
        suffix = file_path.suffix.lower()
        if suffix == ".json":
            data = json.loads(raw)
        elif suffix in {".yaml", ".yml"}:
            data = cls._load_yaml(raw)
        else:
            raise ValueError("Unsupported config format. Use JSON or YAML.")
        return cls(**cls._merge_with_defaults(data))

    def merge(self, **changes: Any) -> "TimelineConfig":
        """Return a validated copy with ``changes`` applied."""

        unknown = set(changes) - self.field_names()
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["time_windows_ms"] = list(self.time_windows_ms)
        return data

    def validate(self) -> None:
        if self.buffer_capacity < 1:
            raise ValueError("buffer_capacity must be at least 1")
        if self.bucket_resolution_ms <= 0:
            raise ValueError("bucket_resolution_ms must be greater than zero")
        if self.max_retention_ms <= 0:
            raise ValueError("max_retention_ms must be greater than zero")
        if self.sweep_interval_ms <= 0:
            raise ValueError("sweep_interval_ms must be greater than zero")
        if self.max_downsample_points < 1:
            raise ValueError("max_downsample_points must be at least 1")
        if self.duration_padding_ms < 0:
            raise ValueError("duration_padding_ms must be non-negative")
        if any(window <= 0 for window in self.time_windows_ms):
            raise ValueError("time_windows_ms entries must be greater than zero")

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}

    @classmethod
    def _merge_with_defaults(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(data) - cls.field_names()
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        merged = cls().to_dict()
        merged.update(data)
        return merged

    @staticmethod
    def _load_yaml(raw: str) -> Dict[str, Any]:
        try:
            import yaml  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to parse YAML config files") from exc
        return yaml.safe_load(raw) or {}
