"""CSV and JSON rendering of timeline point series."""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

from usage_timeline.domain.exceptions import UnsupportedExportFormatError
from usage_timeline.domain.interfaces import IExportFormatter
from usage_timeline.domain.models import ExportFormat, TimeBucketPoint

CORE_COLUMNS = (
    "timestamp",
    "duration_ms",
    "input_tokens",
    "output_tokens",
    "cache_creation_tokens",
    "cache_read_tokens",
    "total_tokens",
    "cost_usd",
    "entry_count",
)
BREAKDOWN_COLUMNS = ("model_breakdown", "provider_breakdown")


def resolve_format(fmt: ExportFormat | str) -> ExportFormat:
    """Normalize a selector into an ``ExportFormat`` or raise."""

    try:
        return ExportFormat(fmt.lower() if isinstance(fmt, str) else fmt)
    except ValueError as exc:
        raise UnsupportedExportFormatError(
            f"Unsupported export format: {fmt}", context={"format": str(fmt)}
        ) from exc


class ExportFormatter(IExportFormatter):
    """Serializes points; image formats belong to the external renderer."""

    def format(
        self,
        points: Sequence[TimeBucketPoint],
        fmt: ExportFormat | str,
        *,
        include_breakdown: bool = False,
        exported_at: datetime | None = None,
    ) -> str:
        resolved = resolve_format(fmt)
        if resolved is ExportFormat.CSV:
            return self.to_csv(points, include_breakdown=include_breakdown)
        if resolved is ExportFormat.JSON:
            return self.to_json(
                points, include_breakdown=include_breakdown, exported_at=exported_at
            )
        raise UnsupportedExportFormatError(
            f"{resolved.value} export is handled by a renderer",
            context={"format": resolved.value},
        )

    def to_csv(
        self, points: Sequence[TimeBucketPoint], *, include_breakdown: bool = False
    ) -> str:
        header = list(CORE_COLUMNS)
        if include_breakdown:
            header.extend(BREAKDOWN_COLUMNS)

        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")
        writer.writerow(header)
        for point in points:
            row = self._point_to_dict(point, include_breakdown=include_breakdown)
            writer.writerow(
                [
                    json.dumps(row[column], sort_keys=True)
                    if column in BREAKDOWN_COLUMNS
                    else row[column]
                    for column in header
                ]
            )
        return output.getvalue()

    def to_json(
        self,
        points: Sequence[TimeBucketPoint],
        *,
        include_breakdown: bool = False,
        exported_at: datetime | None = None,
    ) -> str:
        stamp = exported_at or datetime.now(timezone.utc)
        payload = {
            "exported_at": stamp.isoformat(),
            "point_count": len(points),
            "points": [
                self._point_to_dict(point, include_breakdown=include_breakdown)
                for point in points
            ],
        }
        return json.dumps(payload, indent=2)

    def to_dataframe(self, points: Sequence[TimeBucketPoint]) -> Any:
        """Export the core fields of a series to a pandas DataFrame."""

        try:
            import pandas as pd  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("pandas is required for dataframe export") from exc

        rows: List[Dict[str, Any]] = [
            self._point_to_dict(point, include_breakdown=False) for point in points
        ]
        return pd.DataFrame(rows, columns=list(CORE_COLUMNS))

    @staticmethod
    def _point_to_dict(
        point: TimeBucketPoint, *, include_breakdown: bool
    ) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "timestamp": point.timestamp.isoformat(),
            "duration_ms": point.duration_ms,
            "input_tokens": point.input_tokens,
            "output_tokens": point.output_tokens,
            "cache_creation_tokens": point.cache_creation_tokens,
            "cache_read_tokens": point.cache_read_tokens,
            "total_tokens": point.total_tokens,
            "cost_usd": point.cost_usd,
            "entry_count": point.entry_count,
        }
        if include_breakdown:
            dumped = point.model_dump(
                mode="json", include={"model_breakdown", "provider_breakdown"}
            )
            data.update(dumped)
        return data
