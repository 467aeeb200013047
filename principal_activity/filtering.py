"""
Filter engine.

Pure predicate composition over timeline entries and principal summaries.
Every function preserves input order and never mutates its input. Empty
criteria impose no constraint; values inside one criterion are ORed and
criteria are ANDed together.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, date, datetime, time, timedelta

from principal_activity.models import ActivityRecord, PrincipalSummary
from principal_activity.query import SummaryFilter, TimelineFilter

logger = logging.getLogger(__name__)


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(UTC)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def end_of_day(day: date) -> datetime:
    """Inclusive upper bound for a calendar day (23:59:59.999999)."""
    return datetime.combine(day, time.max, tzinfo=UTC)


def _matches_search(record: ActivityRecord, needle: str) -> bool:
    return (
        needle in record.activity_subject.lower()
        or needle in record.activity_details.lower()
        or needle in record.principal_name.lower()
    )


def is_overdue(record: ActivityRecord, now: datetime | None = None) -> bool:
    """A follow-up is overdue when its date is strictly before now."""
    return (
        record.follow_up_required
        and record.follow_up_date is not None
        and record.follow_up_date < _now(now)
    )


def matches(record: ActivityRecord, criteria: TimelineFilter, now: datetime | None = None) -> bool:
    """Return True if a single record satisfies every active criterion."""
    if criteria.activity_types and record.activity_type not in criteria.activity_types:
        return False

    if criteria.date_start is not None and record.activity_date < start_of_day(criteria.date_start):
        return False
    if criteria.date_end is not None and record.activity_date > end_of_day(criteria.date_end):
        return False

    if criteria.search and not _matches_search(record, criteria.search.lower()):
        return False

    if criteria.principal_ids and record.principal_id not in criteria.principal_ids:
        return False
    if criteria.source_tables and record.source_table not in criteria.source_tables:
        return False
    if criteria.activity_statuses and record.activity_status not in criteria.activity_statuses:
        return False

    if (
        criteria.follow_up_required is not None
        and record.follow_up_required != criteria.follow_up_required
    ):
        return False
    if criteria.overdue_only and not is_overdue(record, now):
        return False

    return True


def filter_records(
    records: Iterable[ActivityRecord],
    criteria: TimelineFilter,
    now: datetime | None = None,
) -> list[ActivityRecord]:
    """
    Apply timeline criteria.

    Args:
        records: Raw entries in retrieval order
        criteria: Active filter set
        now: Reference time for the overdue check (defaults to current UTC time)

    Returns:
        Matching entries, in input order
    """
    if criteria.is_empty():
        return list(records)
    now = _now(now)
    return [r for r in records if matches(r, criteria, now)]


def follow_up_entries(records: Iterable[ActivityRecord]) -> list[ActivityRecord]:
    return [r for r in records if r.follow_up_required]


def overdue_entries(
    records: Iterable[ActivityRecord], now: datetime | None = None
) -> list[ActivityRecord]:
    now = _now(now)
    return [r for r in records if is_overdue(r, now)]


def recent_entries(
    records: Iterable[ActivityRecord],
    days: int = 7,
    limit: int = 10,
    now: datetime | None = None,
) -> list[ActivityRecord]:
    """Entries from the last ``days`` days, newest first, capped at ``limit``."""
    cutoff = _now(now) - timedelta(days=days)
    recent = [r for r in records if r.activity_date >= cutoff]
    recent.sort(key=lambda r: (r.activity_date, -r.timeline_rank), reverse=True)
    return recent[:limit]


def entries_for_date(records: Iterable[ActivityRecord], day: date) -> list[ActivityRecord]:
    return [r for r in records if r.activity_date.astimezone(UTC).date() == day]


# =====================================================================
# SUMMARIES
# =====================================================================


def _summary_matches(summary: PrincipalSummary, criteria: SummaryFilter) -> bool:
    if criteria.search:
        needle = criteria.search.lower()
        haystacks = (summary.principal_name, summary.industry_name or "")
        if not any(needle in h.lower() for h in haystacks):
            return False

    if criteria.activity_statuses and summary.activity_status not in criteria.activity_statuses:
        return False

    if criteria.has_opportunities is not None:
        if (summary.total_opportunities > 0) != criteria.has_opportunities:
            return False
    if criteria.has_products is not None:
        if (summary.product_count > 0) != criteria.has_products:
            return False

    if criteria.engagement_min is not None and summary.engagement_score < criteria.engagement_min:
        return False
    if criteria.engagement_max is not None and summary.engagement_score > criteria.engagement_max:
        return False

    if criteria.countries and summary.country_name not in criteria.countries:
        return False
    if (
        criteria.product_categories
        and summary.primary_product_category not in criteria.product_categories
    ):
        return False

    return True


def filter_summaries(
    summaries: Iterable[PrincipalSummary], criteria: SummaryFilter
) -> list[PrincipalSummary]:
    """Apply analytics-side criteria. Engagement bounds are inclusive."""
    return [s for s in summaries if _summary_matches(s, criteria)]
