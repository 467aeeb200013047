"""
Principal Activity Engine.

Cached, filtered, paginated activity timeline and analytics over principal
snapshots supplied by an external data platform.

Usage:
    from principal_activity import InMemoryProvider, TimelineEngine

    async with TimelineEngine(provider) as engine:
        view = await engine.load()
        await engine.set_filters(activity_types=["INTERACTION"])
"""

from principal_activity.config import EngineConfig
from principal_activity.engine import Snapshot, TimelineEngine
from principal_activity.errors import (
    EngineDisposedError,
    EngineError,
    FetchError,
    FilterValidationError,
    MutationError,
    StateImportError,
)
from principal_activity.models import (
    ActivityRecord,
    ActivityStatus,
    ActivityType,
    PrincipalSummary,
    TimelineGroup,
)
from principal_activity.pipeline import PaginatedResponse, TimelineView, run_pipeline
from principal_activity.providers import InMemoryProvider, MutationAPI, RecordsProvider
from principal_activity.query import QueryModel, SortSpec, SummaryFilter, TimelineFilter

__version__ = "0.1.0"

__all__ = [
    "ActivityRecord",
    "ActivityStatus",
    "ActivityType",
    "EngineConfig",
    "EngineDisposedError",
    "EngineError",
    "FetchError",
    "FilterValidationError",
    "InMemoryProvider",
    "MutationAPI",
    "MutationError",
    "PaginatedResponse",
    "PrincipalSummary",
    "QueryModel",
    "RecordsProvider",
    "Snapshot",
    "SortSpec",
    "StateImportError",
    "SummaryFilter",
    "TimelineEngine",
    "TimelineFilter",
    "TimelineGroup",
    "TimelineView",
    "run_pipeline",
]
