"""Exception hierarchy for timeline buffer and aggregation failures."""

from __future__ import annotations

from typing import Any, Mapping


class TimelineError(Exception):
    """Base class for all domain-level errors in the usage timeline."""

    default_message = "Usage timeline error occurred"

    def __init__(
        self, message: str | None = None, *, context: Mapping[str, Any] | None = None
    ):
        self.message = message or self.default_message
        self.context: Mapping[str, Any] = dict(context or {})
        formatted = self._format_message()
        super().__init__(formatted)

    def _format_message(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


class InvalidCapacityError(TimelineError):
    """Raised when a buffer capacity cannot hold the live points."""

    default_message = "Invalid buffer capacity"


class MalformedBatchError(TimelineError):
    """Raised when a record batch folds into an empty bucket group."""

    default_message = "Record batch produced an empty bucket"


class UnsupportedExportFormatError(TimelineError):
    """Raised when an export is requested in an unknown format."""

    default_message = "Unsupported export format"
