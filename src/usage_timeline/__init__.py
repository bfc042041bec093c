"""Usage timeline package following Clean Architecture layering."""

from .core.container import DIContainer
from .core.manager import TimelineManager

__all__ = [
    "TimelineManager",
    "DIContainer",
    "domain",
    "timeline",
    "core",
    "analytics",
    "export",
    "utils",
]
