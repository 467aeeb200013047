"""
Shareable query state.

Two encodings of the same FilterState:
- a JSON document for persisting state (filters, sort, view, page, selections)
- flat query parameters for shareable URLs, where from_query_params() is the
  exact inverse of to_query_params()

Imports never raise: malformed input is reported as a failure flag and the
caller's current state is returned unchanged.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from principal_activity import config
from principal_activity.errors import StateImportError
from principal_activity.models import ActivityType, parse_tristate
from principal_activity.query import (
    PaginationParams,
    QueryModel,
    SortField,
    SortOrder,
    SortSpec,
    TimelineFilter,
    ViewMode,
)

logger = logging.getLogger(__name__)

STATE_VERSION = 1


@dataclass
class FilterState:
    """Snapshot of everything a user can share or restore."""

    filters: TimelineFilter = field(default_factory=TimelineFilter)
    sort: SortSpec = field(default_factory=SortSpec)
    view_mode: ViewMode = ViewMode(config.DEFAULT_VIEW_MODE)
    page: int = 1
    page_size: int = config.DEFAULT_PAGE_SIZE
    selections: list[str] = field(default_factory=list)

    @classmethod
    def from_query(cls, query: QueryModel) -> "FilterState":
        return cls(
            filters=query.filters,
            sort=query.sort,
            view_mode=query.view_mode,
            page=query.page,
            page_size=query.page_size,
            selections=list(query.selections),
        )

    def apply_to(self, query: QueryModel) -> None:
        """Overwrite the query's state with this snapshot."""
        query.filters = self.filters
        query.sort = self.sort
        query.view_mode = self.view_mode
        query.pagination = PaginationParams(page=self.page, page_size=self.page_size)
        query.select_many(self.selections)


# =====================================================================
# JSON STATE
# =====================================================================


def _filters_from_dict(raw: dict[str, Any]) -> TimelineFilter:
    try:
        return TimelineFilter(
            activity_types=frozenset(ActivityType(t) for t in raw.get("activity_types") or ()),
            date_start=date.fromisoformat(raw["date_start"]) if raw.get("date_start") else None,
            date_end=date.fromisoformat(raw["date_end"]) if raw.get("date_end") else None,
            search=str(raw.get("search") or ""),
            principal_ids=frozenset(str(v) for v in raw.get("principal_ids") or ()),
            source_tables=frozenset(str(v) for v in raw.get("source_tables") or ()),
            activity_statuses=frozenset(str(v) for v in raw.get("activity_statuses") or ()),
            follow_up_required=parse_tristate(raw.get("follow_up_required")),
            overdue_only=bool(parse_tristate(raw.get("overdue_only"))),
        )
    except (TypeError, ValueError) as e:
        raise StateImportError(f"Invalid filters: {e}") from e


def _state_from_dict(raw: Any) -> FilterState:
    if not isinstance(raw, dict):
        raise StateImportError("Filter state must be a JSON object")
    filters = raw.get("filters") or {}
    sort = raw.get("sort") or {}
    selections = raw.get("selections") or []
    if not isinstance(filters, dict) or not isinstance(sort, dict):
        raise StateImportError("filters and sort must be objects")
    if not isinstance(selections, list):
        raise StateImportError("selections must be a list")
    try:
        pagination = PaginationParams(
            page=raw.get("page", 1), page_size=raw.get("page_size", config.DEFAULT_PAGE_SIZE)
        )
        return FilterState(
            filters=_filters_from_dict(filters),
            sort=SortSpec(
                field=SortField(sort.get("field", SortField.ACTIVITY_DATE)),
                order=SortOrder(sort.get("order", SortOrder.DESC)),
            ),
            view_mode=ViewMode(raw.get("view_mode", config.DEFAULT_VIEW_MODE)),
            page=pagination.page,
            page_size=pagination.page_size,
            selections=[str(s) for s in selections],
        )
    except ValueError as e:
        # pydantic.ValidationError is a ValueError
        raise StateImportError(str(e)) from e


def export_filter_state(state: FilterState) -> str:
    return json.dumps(
        {
            "version": STATE_VERSION,
            "filters": state.filters.to_dict(),
            "sort": {"field": state.sort.field.value, "order": state.sort.order.value},
            "view_mode": state.view_mode.value,
            "page": state.page,
            "page_size": state.page_size,
            "selections": list(state.selections),
        },
        indent=2,
    )


def import_filter_state(text: str, current: FilterState) -> tuple[bool, FilterState]:
    """
    Parse a state document produced by export_filter_state().

    Returns:
        (True, imported_state) on success, (False, current) otherwise
    """
    try:
        return True, _state_from_dict(json.loads(text))
    except (json.JSONDecodeError, TypeError, StateImportError) as e:
        logger.warning(f"Filter state import rejected: {e}")
        return False, current


# =====================================================================
# QUERY PARAMETERS
# =====================================================================


def _join(values) -> str:
    return ",".join(sorted(values))


def _split(value: str) -> list[str]:
    return [v for v in value.split(",") if v]


def to_query_params(state: FilterState) -> dict[str, str]:
    """
    Flatten state into URL query parameters.

    Empty filters are omitted; sort, order, view, page and limit are always
    present. Multi-valued fields are sorted and comma-joined.
    """
    f = state.filters
    params: dict[str, str] = {}
    if f.activity_types:
        params["types"] = _join(t.value for t in f.activity_types)
    if f.search:
        params["search"] = f.search
    if f.date_start:
        params["start"] = f.date_start.isoformat()
    if f.date_end:
        params["end"] = f.date_end.isoformat()
    if f.principal_ids:
        params["principals"] = _join(f.principal_ids)
    if f.source_tables:
        params["sources"] = _join(f.source_tables)
    if f.activity_statuses:
        params["statuses"] = _join(f.activity_statuses)
    if f.follow_up_required is not None:
        params["follow_up"] = "true" if f.follow_up_required else "false"
    if f.overdue_only:
        params["overdue"] = "1"
    params["sort"] = state.sort.field.value
    params["order"] = state.sort.order.value
    params["view"] = state.view_mode.value
    params["page"] = str(state.page)
    params["limit"] = str(state.page_size)
    return params


def from_query_params(params: dict[str, str]) -> FilterState:
    """
    Rebuild state from query parameters.

    Unrecognised or malformed values are skipped with a warning and the
    corresponding default is kept.
    """
    state = FilterState()
    filters: dict[str, Any] = {}

    def parse(key: str, convert):
        if key not in params:
            return None
        try:
            return convert(params[key])
        except ValueError:
            logger.warning(f"Ignoring invalid query parameter {key}={params[key]!r}")
            return None

    types = parse("types", lambda v: frozenset(ActivityType(t) for t in _split(v)))
    if types is not None:
        filters["activity_types"] = types
    if "search" in params:
        filters["search"] = params["search"]
    for key, target in (("start", "date_start"), ("end", "date_end")):
        value = parse(key, date.fromisoformat)
        if value is not None:
            filters[target] = value
    for key, target in (
        ("principals", "principal_ids"),
        ("sources", "source_tables"),
        ("statuses", "activity_statuses"),
    ):
        if key in params:
            filters[target] = frozenset(_split(params[key]))
    follow_up = parse("follow_up", parse_tristate)
    if follow_up is not None:
        filters["follow_up_required"] = follow_up
    overdue = parse("overdue", parse_tristate)
    if overdue is not None:
        filters["overdue_only"] = overdue
    state.filters = TimelineFilter(**filters)

    field_ = parse("sort", SortField)
    order = parse("order", SortOrder)
    state.sort = SortSpec(field=field_ or SortField.ACTIVITY_DATE, order=order or SortOrder.DESC)

    view = parse("view", ViewMode)
    if view is not None:
        state.view_mode = view
    page = parse("page", int)
    if page is not None and page >= 1:
        state.page = page
    limit = parse("limit", int)
    if limit is not None and 1 <= limit <= config.MAX_PAGE_SIZE:
        state.page_size = limit
    return state


def shareable_url(base_url: str, state: FilterState) -> str:
    """Attach state to base_url, replacing any query string it already has."""
    parts = urlsplit(base_url)
    return urlunsplit(parts._replace(query=urlencode(to_query_params(state)), fragment=""))


def parse_shareable_url(url: str) -> FilterState:
    query = urlsplit(url).query
    params = {k: v[-1] for k, v in parse_qs(query, keep_blank_values=True).items()}
    return from_query_params(params)
