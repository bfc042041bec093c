"""Domain value objects representing usage records and timeline buckets."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

COST_PRECISION = 6


def ms_to_datetime(value_ms: int) -> datetime:
    """Convert epoch milliseconds into an aware UTC datetime."""

    return datetime.fromtimestamp(value_ms / 1000, tz=timezone.utc)


class UsageRecord(BaseModel):
    """Normalized usage entry handed over by the ingestion layer."""

    model_config = ConfigDict(frozen=True)

    timestamp_ms: int = Field(..., ge=0)
    model: str = Field(..., min_length=1)
    provider: str = Field(..., min_length=1)
    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)
    cache_creation_tokens: int = Field(..., ge=0)
    cache_read_tokens: int = Field(..., ge=0)
    cost_usd: float = Field(..., ge=0)
    provider_name: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )

    @property
    def display_name(self) -> str:
        return self.provider_name or self.provider


class ModelUsage(BaseModel):
    """Per-model partial sums nested inside a bucket."""

    model_config = ConfigDict(frozen=True)

    model: str
    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)
    total_tokens: int = Field(0, ge=0)
    cost_usd: float = Field(0.0, ge=0)
    entry_count: int = Field(0, ge=0)


class ProviderUsage(BaseModel):
    """Per-provider partial sums nested inside a bucket."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    provider_name: str
    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)
    cache_creation_tokens: int = Field(0, ge=0)
    cache_read_tokens: int = Field(0, ge=0)
    total_tokens: int = Field(0, ge=0)
    cost_usd: float = Field(0.0, ge=0)
    entry_count: int = Field(0, ge=0)


class TimeBucketPoint(BaseModel):
    """One aggregated time slice stored in the ring buffer."""

    model_config = ConfigDict(frozen=True)

    timestamp_ms: int = Field(..., ge=0)
    duration_ms: int = Field(0, ge=0)
    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)
    cache_creation_tokens: int = Field(0, ge=0)
    cache_read_tokens: int = Field(0, ge=0)
    total_tokens: int = Field(0, ge=0)
    cost_usd: float = Field(0.0, ge=0)
    entry_count: int = Field(0, ge=0)
    model_breakdown: Dict[str, ModelUsage] = Field(default_factory=dict)
    provider_breakdown: Dict[str, ProviderUsage] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_totals(self) -> "TimeBucketPoint":
        expected = (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )
        if self.total_tokens != expected:
            raise ValueError(
                "total_tokens must equal the sum of input, output and cache tokens"
            )
        for key, usage in self.model_breakdown.items():
            if usage.model != key:
                raise ValueError(f"model breakdown key '{key}' does not match entry")
        for key, usage in self.provider_breakdown.items():
            if usage.provider_id != key:
                raise ValueError(f"provider breakdown key '{key}' does not match entry")
        if self.model_breakdown and (
            sum(u.total_tokens for u in self.model_breakdown.values())
            != self.total_tokens
        ):
            raise ValueError("model breakdown totals must equal point total_tokens")
        if self.provider_breakdown and (
            sum(u.total_tokens for u in self.provider_breakdown.values())
            != self.total_tokens
        ):
            raise ValueError("provider breakdown totals must equal point total_tokens")
        return self

    @property
    def timestamp(self) -> datetime:
        return ms_to_datetime(self.timestamp_ms)

    @property
    def end_ms(self) -> int:
        return self.timestamp_ms + self.duration_ms


class TrendDirection(str, Enum):
    """Direction of usage change across an analysed window."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class TrendInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    direction: TrendDirection = TrendDirection.STABLE
    strength: float = Field(0.0, ge=0, le=1)


class UsagePrediction(BaseModel):
    """Naive linear extrapolation of the current usage rate."""

    model_config = ConfigDict(frozen=True)

    next_hour_tokens: int
    next_day_tokens: int
    confidence: float = Field(..., ge=0, le=1)


class TimelineAnalytics(BaseModel):
    """Derived statistics over a chronologically ordered point series."""

    model_config = ConfigDict(frozen=True)

    peak_usage_time_ms: Optional[int] = None
    average_usage_rate: float = 0.0
    growth_rate: float = 0.0
    trend: TrendInfo = Field(default_factory=TrendInfo)
    prediction: Optional[UsagePrediction] = None

    @classmethod
    def neutral(cls) -> "TimelineAnalytics":
        return cls()

    @property
    def peak_usage_time(self) -> Optional[datetime]:
        if self.peak_usage_time_ms is None:
            return None
        return ms_to_datetime(self.peak_usage_time_ms)


class TimelineFilter(BaseModel):
    """AND-combined criteria applied to a windowed series."""

    model_config = ConfigDict(frozen=True)

    providers: FrozenSet[str] = Field(default_factory=frozenset)
    models: FrozenSet[str] = Field(default_factory=frozenset)
    min_tokens: Optional[int] = Field(default=None, ge=0)
    max_cost: Optional[float] = Field(default=None, ge=0)
    start_ms: Optional[int] = None
    end_ms: Optional[int] = None

    @model_validator(mode="after")
    def validate_range(self) -> "TimelineFilter":
        if (
            self.start_ms is not None
            and self.end_ms is not None
            and self.start_ms > self.end_ms
        ):
            raise ValueError("start_ms must not be after end_ms")
        return self


class ProviderSeries(BaseModel):
    """Per-provider slice of an aggregated point; color_key is resolved by renderers."""

    model_config = ConfigDict(frozen=True)

    tokens: int
    cost: float
    color_key: str


class AggregatedPoint(BaseModel):
    """Rendering-oriented projection of a bucket."""

    model_config = ConfigDict(frozen=True)

    timestamp_ms: int
    total_tokens: int
    total_cost_usd: float
    entry_count: int
    provider_data: Dict[str, ProviderSeries] = Field(default_factory=dict)


class BufferStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    capacity: int
    size: int
    usage_percent: float
    is_full: bool


class MemoryStats(BaseModel):
    """Buffer occupancy with a rough memory footprint estimate."""

    model_config = ConfigDict(frozen=True)

    capacity: int
    used: int
    estimated_bytes: int
    oldest_timestamp_ms: Optional[int] = None
    newest_timestamp_ms: Optional[int] = None

    @property
    def estimated_megabytes(self) -> float:
        return self.estimated_bytes / (1024 * 1024)


class EventType(str, Enum):
    """Observable buffer and aggregator events."""

    POINT_ADDED = "point-added"
    BUFFER_OVERFLOW = "buffer-overflow"
    RETENTION_CLEANUP = "retention-cleanup"
    CONFIG_UPDATED = "config-updated"
    BUFFER_CLEARED = "buffer-cleared"
    BUFFER_RESIZED = "buffer-resized"


class TimelineEvent(BaseModel):
    """Notification delivered to registered listeners."""

    model_config = ConfigDict(frozen=True)

    type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    point: Optional[TimeBucketPoint] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ExportFormat(str, Enum):
    """Export selectors understood by the timeline facade."""

    CSV = "csv"
    JSON = "json"
    PNG = "png"


class TimeWindowOption(BaseModel):
    """Preset query window offered to consumers."""

    model_config = ConfigDict(frozen=True)

    name: str
    value_ms: int
    label: str
