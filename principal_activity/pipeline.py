"""
Sort, paginate and group pipeline.

Stage order is fixed: filter, sort, paginate, group. Each stage is a pure
function over lists so a view can be recomputed from the raw snapshot at any
time without touching the cache.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from principal_activity.filtering import filter_records
from principal_activity.formatting import format_activity_date
from principal_activity.models import ActivityRecord, TimelineGroup
from principal_activity.query import SortField, SortOrder, SortSpec, TimelineFilter, ViewMode

logger = logging.getLogger(__name__)


class PaginatedResponse(BaseModel):
    """One page of a list plus the counts needed to navigate it."""

    data: list[Any] = Field(..., description="Items on this page")
    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number (1-indexed)")
    page_size: int = Field(..., description="Items per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_previous: bool = Field(..., description="Whether there is a previous page")

    def meta(self) -> dict:
        """Everything but the page data."""
        return self.model_dump(exclude={"data"})


def sort_records(records: list[ActivityRecord], sort: SortSpec) -> list[ActivityRecord]:
    """
    Order entries by the sort field.

    Entries with equal keys always come out in ascending timeline rank, in
    either direction, so the result is stable across runs.
    """
    ranked = sorted(records, key=lambda r: r.timeline_rank)
    if sort.field == SortField.TIMELINE_RANK:
        return ranked[::-1] if sort.order == SortOrder.DESC else ranked

    if sort.field == SortField.ACTIVITY_TYPE:
        key = _type_key
    else:
        key = _date_key

    # sorted() stays stable with reverse=True, so equal keys keep ascending rank
    return sorted(ranked, key=key, reverse=sort.order == SortOrder.DESC)


def _type_key(record: ActivityRecord) -> str:
    return record.activity_type.value


def _date_key(record: ActivityRecord) -> datetime:
    return record.activity_date


def paginate(items: list[Any], page: int, page_size: int) -> PaginatedResponse:
    """
    Slice items and wrap them in a PaginatedResponse.

    Counts are taken before slicing. A page beyond the end yields empty data
    with the true totals; page and page_size below 1 are treated as 1.
    """
    page = max(page, 1)
    page_size = max(page_size, 1)

    total = len(items)
    total_pages = (total + page_size - 1) // page_size
    start_idx = (page - 1) * page_size
    end_idx = start_idx + page_size

    return PaginatedResponse(
        data=items[start_idx:end_idx],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_previous=page > 1,
    )


def group_by_day(records: list[ActivityRecord]) -> list[TimelineGroup]:
    """Bucket entries by UTC calendar day, newest day first."""
    groups: dict[str, TimelineGroup] = {}
    for record in records:
        day = record.activity_date.astimezone(UTC).date()
        group_id = day.isoformat()
        group = groups.get(group_id)
        if group is None:
            group = TimelineGroup(
                group_id=group_id,
                label=format_activity_date(record.activity_date, "long"),
                date=day,
            )
            groups[group_id] = group
        group.entries.append(record)
        group.summary.count(record.activity_type)

    return sorted(groups.values(), key=lambda g: g.date, reverse=True)


@dataclass
class TimelineView:
    """Display-ready result of one pipeline run."""

    entries: list[ActivityRecord] = field(default_factory=list)
    groups: list[TimelineGroup] = field(default_factory=list)
    pagination: PaginatedResponse = field(default_factory=lambda: paginate([], 1, 1))
    filtered_count: int = 0
    view_mode: ViewMode = ViewMode.GROUPED

    @property
    def is_empty(self) -> bool:
        return self.filtered_count == 0

    def to_dict(self) -> dict:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "groups": [g.to_dict() for g in self.groups],
            "pagination": self.pagination.meta(),
            "filtered_count": self.filtered_count,
            "view_mode": self.view_mode.value,
        }


def run_pipeline(
    records: list[ActivityRecord],
    criteria: TimelineFilter,
    sort: SortSpec,
    page: int = 1,
    page_size: int = 20,
    view_mode: ViewMode = ViewMode.GROUPED,
    now: datetime | None = None,
) -> TimelineView:
    """
    Produce the display view for a raw snapshot.

    Groups are built from the current page only and only in grouped mode.
    """
    filtered = filter_records(records, criteria, now=now)
    ordered = sort_records(filtered, sort)
    page_result = paginate(ordered, page, page_size)
    entries = list(page_result.data)
    groups = group_by_day(entries) if view_mode == ViewMode.GROUPED else []

    logger.debug(
        f"Pipeline: {len(records)} raw, {len(filtered)} filtered, "
        f"page {page_result.page}/{page_result.total_pages}"
    )
    return TimelineView(
        entries=entries,
        groups=groups,
        pagination=page_result,
        filtered_count=len(filtered),
        view_mode=view_mode,
    )
