"""Wall-clock helpers expressed in epoch milliseconds."""

from __future__ import annotations

import time


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""

    return int(time.time() * 1000)


def bucket_start(timestamp_ms: int, resolution_ms: int) -> int:
    """Floor a timestamp onto the start of its resolution bucket."""

    if resolution_ms <= 0:
        raise ValueError("resolution_ms must be greater than zero")
    return (timestamp_ms // resolution_ms) * resolution_ms
