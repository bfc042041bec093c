"""Fixed-capacity circular storage for timeline points."""

from __future__ import annotations

import logging
import math
from typing import List, Optional

from usage_timeline.core.events import EventBus
from usage_timeline.domain.exceptions import InvalidCapacityError
from usage_timeline.domain.interfaces import Clock
from usage_timeline.domain.models import (
    BufferStats,
    EventType,
    MemoryStats,
    TimeBucketPoint,
)
from usage_timeline.utils.clock import now_ms
from usage_timeline.utils.folding import fold_points

ESTIMATED_BYTES_PER_POINT = 512


class RingBuffer:
    """Circular array of points with O(1) insert and oldest-overwrite.

    ``head`` is the next write slot, ``tail`` the oldest live slot. Points are
    expected in non-decreasing timestamp order; ``cleanup`` relies on it.
    """

    def __init__(
        self,
        capacity: int,
        *,
        events: EventBus | None = None,
        clock: Clock = now_ms,
        logger: logging.Logger | None = None,
    ) -> None:
        self._validate_capacity(capacity, size=0)
        self._capacity = capacity
        self._slots: List[Optional[TimeBucketPoint]] = [None] * capacity
        self._head = 0
        self._tail = 0
        self._size = 0
        self._events = events if events is not None else EventBus()
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return self._size

    def is_full(self) -> bool:
        return self._size == self._capacity

    def is_empty(self) -> bool:
        return self._size == 0

    def add(self, point: TimeBucketPoint) -> bool:
        """Store a point, overwriting the oldest one when full.

        Returns True when a live point was overwritten.
        """

        overwritten = self.is_full()
        evicted = self._slots[self._head] if overwritten else None

        self._slots[self._head] = point
        self._head = (self._head + 1) % self._capacity
        if overwritten:
            self._tail = (self._tail + 1) % self._capacity
        else:
            self._size += 1

        if evicted is not None:
            self._logger.debug(
                "buffer_overflow",
                extra={"evicted_timestamp_ms": evicted.timestamp_ms},
            )
            self._events.emit(
                EventType.BUFFER_OVERFLOW,
                point=evicted.model_copy(deep=True),
                metadata={"capacity": self._capacity, "size": self._size},
            )
        self._events.emit(EventType.POINT_ADDED, point=point.model_copy(deep=True))
        return overwritten

    def recent(self, count: int) -> List[TimeBucketPoint]:
        """Return up to ``count`` points, newest first."""

        result: List[TimeBucketPoint] = []
        for offset in range(min(max(count, 0), self._size)):
            index = (self._head - 1 - offset) % self._capacity
            result.append(self._slot(index))
        return result

    def windowed(self, start_ms: int, end_ms: int) -> List[TimeBucketPoint]:
        """Return live points with ``start_ms <= timestamp <= end_ms`` in order."""

        return [
            point
            for point in self._live()
            if start_ms <= point.timestamp_ms <= end_ms
        ]

    def downsampled(
        self, start_ms: int, end_ms: int, max_points: int
    ) -> List[TimeBucketPoint]:
        """Windowed query reduced to at most ``max_points`` sum-preserving points."""

        if max_points < 1:
            raise ValueError("max_points must be at least 1")
        points = self.windowed(start_ms, end_ms)
        if len(points) <= max_points:
            return points

        step = math.ceil(len(points) / max_points)
        result: List[TimeBucketPoint] = []
        for offset in range(0, len(points), step):
            batch = points[offset : offset + step]
            result.append(batch[0] if len(batch) == 1 else fold_points(batch))
        return result

    def oldest(self) -> Optional[TimeBucketPoint]:
        if self._size == 0:
            return None
        return self._slot(self._tail)

    def newest(self) -> Optional[TimeBucketPoint]:
        if self._size == 0:
            return None
        return self._slot((self._head - 1) % self._capacity)

    def cleanup(self, max_age_ms: int, now: int | None = None) -> int:
        """Evict points older than ``max_age_ms`` from the tail; return the count."""

        if max_age_ms < 0:
            raise ValueError("max_age_ms must be non-negative")
        current = self._clock() if now is None else now
        removed = 0
        while self._size > 0:
            oldest = self._slot(self._tail)
            if current - oldest.timestamp_ms <= max_age_ms:
                break
            self._slots[self._tail] = None
            self._tail = (self._tail + 1) % self._capacity
            self._size -= 1
            removed += 1

        if removed:
            self._logger.debug(
                "retention_cleanup",
                extra={"removed": removed, "remaining": self._size},
            )
            self._events.emit(
                EventType.RETENTION_CLEANUP,
                metadata={
                    "removed": removed,
                    "remaining": self._size,
                    "max_age_ms": max_age_ms,
                },
            )
        return removed

    def clear(self) -> None:
        """Drop every point while keeping the allocated capacity."""

        cleared = self._size
        self._slots = [None] * self._capacity
        self._head = 0
        self._tail = 0
        self._size = 0
        self._events.emit(EventType.BUFFER_CLEARED, metadata={"removed": cleared})

    def resize(self, new_capacity: int) -> None:
        """Reallocate storage, repacking live points oldest-to-newest."""

        self._validate_capacity(new_capacity, size=self._size)
        old_capacity = self._capacity
        live = list(self._live())
        self._slots = live + [None] * (new_capacity - len(live))
        self._capacity = new_capacity
        self._tail = 0
        self._head = self._size % new_capacity
        self._logger.info(
            "buffer_resized",
            extra={"old_capacity": old_capacity, "new_capacity": new_capacity},
        )
        self._events.emit(
            EventType.BUFFER_RESIZED,
            metadata={"old_capacity": old_capacity, "new_capacity": new_capacity},
        )

    def stats(self) -> BufferStats:
        return BufferStats(
            capacity=self._capacity,
            size=self._size,
            usage_percent=(self._size / self._capacity) * 100,
            is_full=self.is_full(),
        )

    def memory_stats(self) -> MemoryStats:
        oldest = self.oldest()
        newest = self.newest()
        return MemoryStats(
            capacity=self._capacity,
            used=self._size,
            estimated_bytes=self._size * ESTIMATED_BYTES_PER_POINT,
            oldest_timestamp_ms=oldest.timestamp_ms if oldest else None,
            newest_timestamp_ms=newest.timestamp_ms if newest else None,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _live(self):
        for offset in range(self._size):
            yield self._slot((self._tail + offset) % self._capacity)

    def _slot(self, index: int) -> TimeBucketPoint:
        point = self._slots[index]
        if point is None:  # pragma: no cover - guarded by size bookkeeping
            raise RuntimeError(f"Ring buffer slot {index} is unexpectedly empty")
        return point

    @staticmethod
    def _validate_capacity(capacity: int, *, size: int) -> None:
        if capacity < 1:
            raise InvalidCapacityError(
                "Buffer capacity must be at least 1", context={"capacity": capacity}
            )
        if capacity < size:
            raise InvalidCapacityError(
                f"Cannot resize to {capacity}: buffer contains {size} points",
                context={"capacity": capacity, "size": size},
            )
