"""
Property-based tests for core invariants using Hypothesis.

These tests stress the pipeline with random inputs to find edge cases.
"""

from datetime import UTC, date, datetime, timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from principal_activity.analytics import activity_status_distribution, engagement_distribution
from principal_activity.export import FilterState, from_query_params, to_query_params
from principal_activity.filtering import filter_records
from principal_activity.models import ActivityRecord, ActivityStatus, ActivityType, PrincipalSummary
from principal_activity.pipeline import paginate, sort_records
from principal_activity.query import (
    QueryModel,
    SortField,
    SortOrder,
    SortSpec,
    TimelineFilter,
    ViewMode,
)

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)

# ============================================================================
# Strategies
# ============================================================================

activity_types = st.sampled_from(list(ActivityType))
tokens = st.text(alphabet="abcdefghij-_0123456789", min_size=1, max_size=8)


@st.composite
def records(draw, max_size=30):
    count = draw(st.integers(min_value=0, max_value=max_size))
    result = []
    for rank in range(count):
        follow_up = draw(st.booleans())
        result.append(
            ActivityRecord(
                principal_id=draw(st.sampled_from(["p-1", "p-2", "p-3"])),
                principal_name=draw(st.sampled_from(["Acme", "Borealis", "Cobalt"])),
                # few distinct days so sort ties are common
                activity_date=NOW - timedelta(days=draw(st.integers(0, 5))),
                activity_type=draw(activity_types),
                activity_subject=draw(st.text(max_size=12)),
                source_table=draw(st.sampled_from(["interactions", "opportunities"])),
                source_id=f"e-{rank}",
                follow_up_required=follow_up,
                follow_up_date=(
                    NOW + timedelta(days=draw(st.integers(-3, 3))) if follow_up else None
                ),
                timeline_rank=rank + 1,
            )
        )
    return result


timeline_filters = st.builds(
    TimelineFilter,
    activity_types=st.frozensets(activity_types, max_size=2),
    date_start=st.one_of(st.none(), st.dates(date(2024, 3, 8), date(2024, 3, 16))),
    search=st.one_of(st.just(""), st.text(alphabet="abc ", max_size=3)),
    principal_ids=st.frozensets(st.sampled_from(["p-1", "p-2", "p-3"]), max_size=2),
    follow_up_required=st.one_of(st.none(), st.booleans()),
    overdue_only=st.booleans(),
)

summaries = st.lists(
    st.builds(
        PrincipalSummary,
        principal_id=tokens,
        principal_name=tokens,
        engagement_score=st.floats(min_value=0, max_value=100),
        activity_status=st.sampled_from(list(ActivityStatus)),
    ),
    max_size=30,
)


# ============================================================================
# Filtering
# ============================================================================


@given(records(), timeline_filters)
def test_filter_idempotent(entries, criteria):
    """Filtering an already filtered list changes nothing."""
    once = filter_records(entries, criteria, now=NOW)
    assert filter_records(once, criteria, now=NOW) == once


@given(records(), timeline_filters)
def test_filter_is_ordered_subset(entries, criteria):
    """Results keep input order and only contain input entries."""
    result = filter_records(entries, criteria, now=NOW)
    ranks = [r.timeline_rank for r in result]
    assert ranks == sorted(ranks)
    assert set(ranks) <= {r.timeline_rank for r in entries}


# ============================================================================
# Pagination
# ============================================================================


@given(st.lists(st.integers(), max_size=60), st.integers(min_value=1, max_value=15))
def test_pages_cover_everything_once(items, page_size):
    """Concatenating every page reproduces the list exactly."""
    first = paginate(items, 1, page_size)
    collected = []
    for page in range(1, first.total_pages + 1):
        result = paginate(items, page, page_size)
        assert len(result.data) <= page_size
        assert result.has_next == (page < first.total_pages)
        collected.extend(result.data)
    assert collected == items


@given(st.lists(st.integers(), max_size=30), st.integers(min_value=1, max_value=10))
def test_page_past_end_is_empty(items, page_size):
    total_pages = paginate(items, 1, page_size).total_pages
    assert paginate(items, total_pages + 1, page_size).data == []


# ============================================================================
# Sorting
# ============================================================================


@given(
    records(),
    st.sampled_from(list(SortField)),
    st.sampled_from(list(SortOrder)),
)
def test_sort_is_deterministic_and_tie_stable(entries, field, order):
    """Input order never matters, and equal keys come out in ascending rank."""
    spec = SortSpec(field, order)
    forward = sort_records(entries, spec)
    backward = sort_records(list(reversed(entries)), spec)
    assert forward == backward
    assert sorted(forward, key=lambda r: r.timeline_rank) == sorted(
        entries, key=lambda r: r.timeline_rank
    )

    if field == SortField.ACTIVITY_DATE:
        for a, b in zip(forward, forward[1:]):
            if a.activity_date == b.activity_date:
                assert a.timeline_rank < b.timeline_rank


# ============================================================================
# Query model
# ============================================================================


@given(timeline_filters)
def test_reapplying_filters_is_noop(criteria):
    query = QueryModel(page_size=5)
    query.update_filters(
        activity_types=[t.value for t in criteria.activity_types],
        principal_ids=criteria.principal_ids,
        follow_up_required=criteria.follow_up_required,
        overdue_only=criteria.overdue_only,
    )
    query.total_pages = 3
    query.go_to_page(2)
    key = query.canonical_query()
    assert (
        query.update_filters(
            activity_types=[t.value for t in criteria.activity_types],
            principal_ids=criteria.principal_ids,
        )
        is False
    )
    assert query.page == 2
    assert query.canonical_query() == key


@settings(max_examples=50)
@given(
    timeline_filters,
    st.sampled_from(list(SortField)),
    st.sampled_from(list(SortOrder)),
    st.sampled_from(list(ViewMode)),
    st.integers(min_value=1, max_value=50),
    st.integers(min_value=1, max_value=500),
)
def test_query_params_round_trip(criteria, field, order, view, page, page_size):
    state = FilterState(
        filters=criteria,
        sort=SortSpec(field, order),
        view_mode=view,
        page=page,
        page_size=page_size,
    )
    assert from_query_params(to_query_params(state)) == state


# ============================================================================
# Distributions
# ============================================================================


@given(summaries)
def test_distributions_account_for_everyone(items):
    status = activity_status_distribution(items)
    bands = engagement_distribution(items)
    assert sum(b.count for b in status.values()) == len(items)
    assert sum(b.count for b in bands.values()) == len(items)
    if items:
        assert abs(sum(b.percentage for b in status.values()) - 100.0) < 1e-6
    else:
        assert all(b.percentage == 0.0 for b in status.values())
