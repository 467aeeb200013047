"""
Query parameter model for the activity timeline.

Holds the active filter set, sort spec, pagination and selections, and
renders the canonical query descriptor used as the snapshot cache key.

Filter state is immutable (frozen dataclasses over frozensets) so that two
logically equal states compare and serialize identically regardless of the
order values were added in.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import StrEnum
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel, Field

from principal_activity import config
from principal_activity.errors import FilterValidationError
from principal_activity.models import ActivityStatus, ActivityType, parse_datetime, parse_tristate

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "timeline"


class SortField(StrEnum):
    ACTIVITY_DATE = "activity_date"
    TIMELINE_RANK = "timeline_rank"
    ACTIVITY_TYPE = "activity_type"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


class ViewMode(StrEnum):
    LIST = "list"
    GROUPED = "grouped"
    COMPACT = "compact"


@dataclass(frozen=True)
class SortSpec:
    """Sort configuration. Ties always fall back to ascending rank."""

    field: SortField = SortField.ACTIVITY_DATE
    order: SortOrder = SortOrder.DESC


@dataclass(frozen=True)
class TimelineFilter:
    """Criteria for timeline entries. Empty fields impose no constraint."""

    activity_types: frozenset[ActivityType] = frozenset()
    date_start: date | None = None
    date_end: date | None = None
    search: str = ""
    principal_ids: frozenset[str] = frozenset()
    source_tables: frozenset[str] = frozenset()
    activity_statuses: frozenset[str] = frozenset()
    follow_up_required: bool | None = None
    overdue_only: bool = False

    def is_empty(self) -> bool:
        return self == TimelineFilter()

    def active_count(self) -> int:
        return sum(
            (
                bool(self.activity_types),
                self.date_start is not None or self.date_end is not None,
                bool(self.search),
                bool(self.principal_ids),
                bool(self.source_tables),
                bool(self.activity_statuses),
                self.follow_up_required is not None,
                self.overdue_only,
            )
        )

    def to_dict(self) -> dict:
        return {
            "activity_types": sorted(t.value for t in self.activity_types),
            "date_start": self.date_start.isoformat() if self.date_start else None,
            "date_end": self.date_end.isoformat() if self.date_end else None,
            "search": self.search,
            "principal_ids": sorted(self.principal_ids),
            "source_tables": sorted(self.source_tables),
            "activity_statuses": sorted(self.activity_statuses),
            "follow_up_required": self.follow_up_required,
            "overdue_only": self.overdue_only,
        }


@dataclass(frozen=True)
class SummaryFilter:
    """Criteria for principal summaries on the analytics side."""

    search: str = ""
    activity_statuses: frozenset[ActivityStatus] = frozenset()
    has_opportunities: bool | None = None
    has_products: bool | None = None
    engagement_min: float | None = None
    engagement_max: float | None = None
    countries: frozenset[str] = frozenset()
    product_categories: frozenset[str] = frozenset()


class PaginationParams(BaseModel):
    """Pagination parameters."""

    page: int = Field(ge=1, default=1, description="Page number (1-indexed)")
    page_size: int = Field(
        ge=1,
        le=config.MAX_PAGE_SIZE,
        default=config.DEFAULT_PAGE_SIZE,
        description="Items per page (1-500)",
    )


# =====================================================================
# INPUT COERCION AND VALIDATION
# =====================================================================


def _as_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v).strip() for v in value if str(v).strip()]


def _as_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValueError(f"not a date: {value!r}")
    return parsed.date()


def _as_score(value: Any) -> float | None:
    if value is None or value == "":
        return None
    score = float(value)
    if not 0.0 <= score <= 100.0:
        raise ValueError("score must be between 0 and 100")
    return score


@dataclass
class FilterInput:
    """Result of validating caller-supplied filter input."""

    timeline: dict[str, Any] = field(default_factory=dict)
    summary: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_filter_input(raw: dict[str, Any]) -> FilterInput:
    """
    Validate form-style filter input field by field.

    Each offending field gets one message in ``errors``; every other field is
    converted and returned so it can still be applied.

    Recognised keys: activity_types, date_start, date_end, search,
    principal_ids, source_tables, activity_statuses, follow_up_required,
    overdue_only, engagement_min, engagement_max, has_opportunities,
    has_products, countries, product_categories.
    """
    result = FilterInput()

    if "activity_types" in raw:
        values = _as_list(raw["activity_types"])
        unknown = [v for v in values if v not in ActivityType.__members__]
        if unknown:
            result.errors["activity_types"] = f"Unknown activity type: {', '.join(unknown)}"
        else:
            result.timeline["activity_types"] = frozenset(ActivityType(v) for v in values)

    dates: dict[str, date | None] = {}
    for key in ("date_start", "date_end"):
        if key in raw:
            try:
                dates[key] = _as_date(raw[key])
            except ValueError as e:
                result.errors[key] = str(e)
    if dates.get("date_start") and dates.get("date_end") and dates["date_start"] > dates["date_end"]:
        result.errors["date_range"] = "Start date cannot be after end date"
    else:
        result.timeline.update(dates)

    if "search" in raw:
        result.timeline["search"] = str(raw["search"] or "").strip()
        result.summary["search"] = result.timeline["search"]

    for key in ("principal_ids", "source_tables"):
        if key in raw:
            result.timeline[key] = frozenset(_as_list(raw[key]))

    if "activity_statuses" in raw:
        result.timeline["activity_statuses"] = frozenset(_as_list(raw["activity_statuses"]))

    if "principal_statuses" in raw:
        values = _as_list(raw["principal_statuses"])
        unknown = [v for v in values if v not in ActivityStatus.__members__]
        if unknown:
            result.errors["principal_statuses"] = f"Unknown activity status: {', '.join(unknown)}"
        else:
            result.summary["activity_statuses"] = frozenset(ActivityStatus(v) for v in values)

    for key, target in (
        ("follow_up_required", result.timeline),
        ("has_opportunities", result.summary),
        ("has_products", result.summary),
    ):
        if key in raw:
            try:
                target[key] = parse_tristate(raw[key])
            except ValueError as e:
                result.errors[key] = str(e)

    if "overdue_only" in raw:
        try:
            result.timeline["overdue_only"] = bool(parse_tristate(raw["overdue_only"]))
        except ValueError as e:
            result.errors["overdue_only"] = str(e)

    scores: dict[str, float | None] = {}
    for key in ("engagement_min", "engagement_max"):
        if key in raw:
            try:
                scores[key] = _as_score(raw[key])
            except (TypeError, ValueError) as e:
                result.errors[key] = str(e)
    low, high = scores.get("engagement_min"), scores.get("engagement_max")
    if low is not None and high is not None and low > high:
        result.errors["engagement_range"] = "Minimum score cannot be greater than maximum score"
    else:
        result.summary.update(scores)

    for key in ("countries", "product_categories"):
        if key in raw:
            result.summary[key] = frozenset(_as_list(raw[key]))

    return result


def require_valid(raw: dict[str, Any]) -> FilterInput:
    """Like validate_filter_input, but raise when any field is invalid."""
    result = validate_filter_input(raw)
    if result.errors:
        raise FilterValidationError(result.errors)
    return result


# =====================================================================
# QUERY MODEL
# =====================================================================


def _join(values) -> str:
    return ",".join(sorted(quote(str(v), safe="") for v in values))


def scope_key(principal_ids) -> str:
    """Order-independent key for a fetch scope. None means every principal."""
    if principal_ids is None:
        return "*"
    return _join(set(principal_ids)) or "*"


class QueryModel:
    """
    Mutable holder for the timeline query.

    Every filter-mutating call is idempotent: re-applying the current value
    leaves all state (including the page) untouched and returns False. A call
    that changes filters resets the page to 1 and returns True.
    """

    def __init__(
        self,
        page_size: int = config.DEFAULT_PAGE_SIZE,
        view_mode: str = config.DEFAULT_VIEW_MODE,
        max_selections: int = config.MAX_SELECTIONS,
    ):
        self.filters = TimelineFilter()
        self.summary_filter = SummaryFilter()
        self.sort = SortSpec()
        self.pagination = PaginationParams(page=1, page_size=page_size)
        self.view_mode = ViewMode(view_mode)
        self.max_selections = max_selections
        self.selections: list[str] = []
        self.filter_errors: dict[str, str] = {}
        # Set by the pipeline after each run; bounds page navigation
        self.total_pages = 0

    # ---------------------------------------------------------------- filters

    def _set_filters(self, new_filters: TimelineFilter) -> bool:
        if new_filters == self.filters:
            return False
        self.filters = new_filters
        self._reset_page()
        logger.debug(f"Filters changed: {self.canonical_query()}")
        return True

    def update_filters(self, **changes: Any) -> bool:
        """Replace any TimelineFilter fields. Collections are frozen first."""
        normalized = {}
        for key, value in changes.items():
            if key in ("activity_types",):
                value = frozenset(ActivityType(v) for v in value or ())
            elif key in ("principal_ids", "source_tables", "activity_statuses"):
                value = frozenset(value or ())
            elif key in ("date_start", "date_end"):
                value = _as_date(value)
            elif key == "search":
                value = (value or "").strip()
            normalized[key] = value
        return self._set_filters(replace(self.filters, **normalized))

    def set_activity_types(self, types) -> bool:
        return self.update_filters(activity_types=types)

    def set_date_range(self, start, end) -> bool:
        return self.update_filters(date_start=start, date_end=end)

    def set_search(self, query: str) -> bool:
        return self.update_filters(search=query)

    def set_principal_ids(self, principal_ids) -> bool:
        return self.update_filters(principal_ids=principal_ids)

    def set_source_tables(self, tables) -> bool:
        return self.update_filters(source_tables=tables)

    def set_activity_statuses(self, statuses) -> bool:
        return self.update_filters(activity_statuses=statuses)

    def set_follow_up(self, required: bool | None, overdue_only: bool = False) -> bool:
        return self.update_filters(follow_up_required=required, overdue_only=overdue_only)

    def clear_filters(self) -> bool:
        self.filter_errors = {}
        changed = self._set_filters(TimelineFilter())
        if self.summary_filter != SummaryFilter():
            self.summary_filter = SummaryFilter()
            changed = True
        return changed

    def set_summary_filter(self, **changes: Any) -> bool:
        new_filter = replace(self.summary_filter, **changes)
        if new_filter == self.summary_filter:
            return False
        self.summary_filter = new_filter
        return True

    def apply_filter_input(self, raw: dict[str, Any]) -> dict[str, str]:
        """
        Apply validated form input.

        Valid fields are applied even when others fail. Returns the per-field
        errors (empty on success), which are also kept on ``filter_errors``.
        """
        result = validate_filter_input(raw)
        self.filter_errors = result.errors
        if result.timeline:
            self._set_filters(replace(self.filters, **result.timeline))
        if result.summary:
            self.set_summary_filter(**result.summary)
        if result.errors:
            logger.warning(f"Rejected filter fields: {sorted(result.errors)}")
        return result.errors

    @property
    def has_active_filters(self) -> bool:
        return not self.filters.is_empty()

    @property
    def active_filter_count(self) -> int:
        return self.filters.active_count()

    # ------------------------------------------------------------------- sort

    def update_sort(self, field: str, order: str | None = None) -> bool:
        """
        Set the sort field.

        An explicit order is applied as given. Without one, choosing the
        current field toggles direction and choosing a new field sorts
        descending.
        """
        new_field = SortField(field)
        if order is not None:
            new_order = SortOrder(order)
        elif new_field == self.sort.field:
            new_order = SortOrder.ASC if self.sort.order == SortOrder.DESC else SortOrder.DESC
        else:
            new_order = SortOrder.DESC
        new_sort = SortSpec(field=new_field, order=new_order)
        if new_sort == self.sort:
            return False
        self.sort = new_sort
        return True

    def set_view_mode(self, mode: str) -> bool:
        new_mode = ViewMode(mode)
        if new_mode == self.view_mode:
            return False
        self.view_mode = new_mode
        return True

    def toggle_grouping(self) -> ViewMode:
        self.view_mode = ViewMode.LIST if self.view_mode == ViewMode.GROUPED else ViewMode.GROUPED
        return self.view_mode

    # ------------------------------------------------------------- pagination

    @property
    def page(self) -> int:
        return self.pagination.page

    @property
    def page_size(self) -> int:
        return self.pagination.page_size

    def _reset_page(self) -> None:
        if self.pagination.page != 1:
            self.pagination = PaginationParams(page=1, page_size=self.pagination.page_size)

    def go_to_page(self, page: int) -> bool:
        """Move to page if it exists in the last computed view."""
        if page < 1 or page > max(self.total_pages, 1) or page == self.pagination.page:
            return False
        self.pagination = PaginationParams(page=page, page_size=self.pagination.page_size)
        return True

    def next_page(self) -> bool:
        return self.go_to_page(self.pagination.page + 1)

    def previous_page(self) -> bool:
        return self.go_to_page(self.pagination.page - 1)

    def set_page_size(self, size: int) -> bool:
        if size == self.pagination.page_size:
            return False
        # Validates 1..MAX_PAGE_SIZE
        self.pagination = PaginationParams(page=1, page_size=size)
        return True

    # ------------------------------------------------------------- selection

    def _capped(self, ids: list[str]) -> list[str]:
        if self.max_selections > 0:
            return ids[: self.max_selections]
        return ids

    def select(self, principal_id: str) -> bool:
        if principal_id in self.selections:
            return False
        if self.max_selections > 0 and len(self.selections) >= self.max_selections:
            return False
        self.selections.append(principal_id)
        return True

    def toggle_selection(self, principal_id: str) -> bool:
        """Returns True if the principal is selected afterwards."""
        if principal_id in self.selections:
            self.selections.remove(principal_id)
            return False
        return self.select(principal_id)

    def select_many(self, principal_ids) -> None:
        deduped = list(dict.fromkeys(principal_ids))
        self.selections = self._capped(deduped)

    def clear_selections(self) -> None:
        self.selections = []

    def is_selected(self, principal_id: str) -> bool:
        return principal_id in self.selections

    # -------------------------------------------------------------- canonical

    def canonical_query(self, principal_ids=None) -> str:
        """
        Deterministic descriptor of filters, sort and fetch scope.

        Multi-valued fields are sorted and comma-joined; every value is
        percent-quoted so separators inside search text cannot collide.
        """
        f = self.filters
        parts = [
            ("scope", scope_key(principal_ids)),
            ("types", _join(t.value for t in f.activity_types)),
            ("start", f.date_start.isoformat() if f.date_start else ""),
            ("end", f.date_end.isoformat() if f.date_end else ""),
            ("search", quote(f.search.lower(), safe="")),
            ("principals", _join(f.principal_ids)),
            ("sources", _join(f.source_tables)),
            ("statuses", _join(f.activity_statuses)),
            ("follow_up", "" if f.follow_up_required is None else str(f.follow_up_required).lower()),
            ("overdue", "1" if f.overdue_only else "0"),
            ("sort", f"{self.sort.field.value}:{self.sort.order.value}"),
        ]
        return f"{CACHE_KEY_PREFIX}:" + "&".join(f"{k}={v}" for k, v in parts)
