"""
Analytics aggregator.

Computes distributions, rankings, breakdowns, monthly trend and KPI summaries
from a snapshot of PrincipalSummary records, optionally joined with the
timeline entries for the same principals.

Every function here is pure: missing optional fields count as zero and an
empty snapshot produces zero-valued results rather than an error.
"""

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import UTC, date, datetime, timedelta
from enum import StrEnum

from principal_activity import config
from principal_activity.filtering import follow_up_entries, overdue_entries
from principal_activity.models import (
    ACTIVITY_STATUS_STYLE,
    ACTIVITY_TYPE_STYLE,
    ActivityRecord,
    ActivityStatus,
    ActivityType,
    PrincipalSummary,
)

logger = logging.getLogger(__name__)

# Engagement score bands: low < 40 <= medium <= 70 < high
ENGAGEMENT_LOW = 40.0
ENGAGEMENT_HIGH = 70.0

# Relative change that counts as movement rather than noise
MONTHLY_TREND_BAND = 0.05
WEEKLY_TREND_BAND = 0.10

UNKNOWN_COUNTRY = "Unknown"
OTHER_CATEGORY = "Other"


class Trend(StrEnum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


def classify_trend(current: float, previous: float, band: float) -> str:
    """Compare current against previous with a symmetric relative band."""
    if current > previous * (1 + band):
        return Trend.INCREASING
    if current < previous * (1 - band):
        return Trend.DECREASING
    return Trend.STABLE


def _pct(count: int, total: int) -> float:
    return count / total * 100 if total > 0 else 0.0


# =====================================================================
# RESULT TYPES
# =====================================================================


@dataclass
class DistributionBucket:
    count: int = 0
    percentage: float = 0.0
    label: str = ""
    color: str = ""


@dataclass
class TopPerformer:
    rank: int
    principal_id: str
    principal_name: str
    engagement_score: float
    total_opportunities: int
    won_opportunities: int


@dataclass
class BreakdownRow:
    """One geographic or product-category group."""

    key: str
    principal_count: int = 0
    total_opportunities: int = 0
    won_opportunities: int = 0
    avg_engagement_score: float = 0.0
    conversion_rate: float = 0.0

    def add(self, summary: PrincipalSummary) -> None:
        self.principal_count += 1
        self.total_opportunities += summary.total_opportunities
        self.won_opportunities += summary.won_opportunities
        # Running mean over every principal added so far
        self.avg_engagement_score += (
            summary.engagement_score - self.avg_engagement_score
        ) / self.principal_count
        self.conversion_rate = _pct(self.won_opportunities, self.total_opportunities)


@dataclass
class MonthlyActivity:
    month: str
    new_principals: int = 0
    active_principals: int = 0
    opportunities_created: int = 0
    interactions_count: int = 0
    engagement_trend: str = Trend.STABLE

    @property
    def volume(self) -> int:
        return self.active_principals + self.opportunities_created


@dataclass
class KPISummary:
    conversion_rate: float = 0.0
    top_activity_status: ActivityStatus = ActivityStatus.NO_ACTIVITY
    active_opportunity_count: int = 0
    pending_follow_ups: int = 0
    overdue_follow_ups: int = 0
    engagement_trend: str = Trend.STABLE


@dataclass
class MetricsSummary:
    """Headline numbers for dashboard widgets."""

    total_principals: int = 0
    active_this_month: int = 0
    top_engagement_score: float = 0.0
    opportunities_created_this_month: int = 0
    interactions_this_week: float = 0.0
    pending_follow_ups: int = 0


@dataclass
class TimelineSummary:
    total_entries: int = 0
    unique_principals: int = 0
    date_start: datetime | None = None
    date_end: datetime | None = None
    most_active_day: date | None = None
    most_active_day_count: int = 0
    activity_trend: str = Trend.STABLE

    def to_dict(self) -> dict:
        return {
            "total_entries": self.total_entries,
            "unique_principals": self.unique_principals,
            "date_range": {
                "start": self.date_start.isoformat() if self.date_start else None,
                "end": self.date_end.isoformat() if self.date_end else None,
            },
            "most_active_day": {
                "date": self.most_active_day.isoformat() if self.most_active_day else None,
                "count": self.most_active_day_count,
            },
            "activity_trend": self.activity_trend,
        }


@dataclass
class FunnelStage:
    stage: str
    count: int
    conversion_rate: float
    drop_off_rate: float


@dataclass
class PrincipalAnalytics:
    """Everything the analytics view shows for one summary snapshot."""

    total_principals: int = 0
    active_principals: int = 0
    principals_with_products: int = 0
    principals_with_opportunities: int = 0
    average_products_per_principal: float = 0.0
    average_engagement_score: float = 0.0
    activity_status_distribution: dict[ActivityStatus, DistributionBucket] = field(
        default_factory=dict
    )
    engagement_distribution: dict[str, DistributionBucket] = field(default_factory=dict)
    top_performers: list[TopPerformer] = field(default_factory=list)
    geographic_breakdown: list[BreakdownRow] = field(default_factory=list)
    category_breakdown: list[BreakdownRow] = field(default_factory=list)
    monthly_trend: list[MonthlyActivity] = field(default_factory=list)
    kpis: KPISummary = field(default_factory=KPISummary)
    metrics: MetricsSummary = field(default_factory=MetricsSummary)
    timeline_summary: TimelineSummary | None = None
    calculated_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "total_principals": self.total_principals,
            "active_principals": self.active_principals,
            "principals_with_products": self.principals_with_products,
            "principals_with_opportunities": self.principals_with_opportunities,
            "average_products_per_principal": self.average_products_per_principal,
            "average_engagement_score": self.average_engagement_score,
            "activity_status_distribution": {
                status.value: asdict(bucket)
                for status, bucket in self.activity_status_distribution.items()
            },
            "engagement_distribution": {
                band: asdict(bucket) for band, bucket in self.engagement_distribution.items()
            },
            "top_performers": [asdict(p) for p in self.top_performers],
            "geographic_breakdown": [asdict(r) for r in self.geographic_breakdown],
            "category_breakdown": [asdict(r) for r in self.category_breakdown],
            "monthly_trend": [asdict(m) for m in self.monthly_trend],
            "kpis": {
                **asdict(self.kpis),
                "top_activity_status": self.kpis.top_activity_status.value,
            },
            "metrics_summary": asdict(self.metrics),
            "timeline_summary": self.timeline_summary.to_dict() if self.timeline_summary else None,
            "calculated_at": self.calculated_at.isoformat() if self.calculated_at else None,
        }


# =====================================================================
# DISTRIBUTIONS AND RANKINGS
# =====================================================================


def activity_status_distribution(
    summaries: list[PrincipalSummary],
) -> dict[ActivityStatus, DistributionBucket]:
    """Count and share of each status. Every status is present, zero or not."""
    counts = Counter(s.activity_status for s in summaries)
    total = len(summaries)
    return {
        status: DistributionBucket(
            count=counts[status],
            percentage=_pct(counts[status], total),
            label=ACTIVITY_STATUS_STYLE[status]["label"],
            color=ACTIVITY_STATUS_STYLE[status]["color"],
        )
        for status in ActivityStatus
    }


def engagement_band(score: float) -> str:
    if score < ENGAGEMENT_LOW:
        return "low"
    if score > ENGAGEMENT_HIGH:
        return "high"
    return "medium"


def engagement_distribution(summaries: list[PrincipalSummary]) -> dict[str, DistributionBucket]:
    counts = Counter(engagement_band(s.engagement_score) for s in summaries)
    total = len(summaries)
    return {
        band: DistributionBucket(count=counts[band], percentage=_pct(counts[band], total), label=band)
        for band in ("low", "medium", "high")
    }


def activity_type_distribution(
    records: Iterable[ActivityRecord],
) -> dict[ActivityType, DistributionBucket]:
    records = list(records)
    counts = Counter(r.activity_type for r in records)
    total = len(records)
    return {
        activity_type: DistributionBucket(
            count=counts[activity_type],
            percentage=_pct(counts[activity_type], total),
            label=activity_type.value,
            color=ACTIVITY_TYPE_STYLE[activity_type]["color"],
        )
        for activity_type in ActivityType
    }


def top_performers(summaries: list[PrincipalSummary], limit: int = 10) -> list[TopPerformer]:
    """Highest engagement first; equal scores ordered by principal_id."""
    ranked = sorted(summaries, key=lambda s: (-s.engagement_score, s.principal_id))
    return [
        TopPerformer(
            rank=i + 1,
            principal_id=s.principal_id,
            principal_name=s.principal_name,
            engagement_score=s.engagement_score,
            total_opportunities=s.total_opportunities,
            won_opportunities=s.won_opportunities,
        )
        for i, s in enumerate(ranked[: max(limit, 0)])
    ]


def _breakdown(summaries: list[PrincipalSummary], key_fn) -> list[BreakdownRow]:
    rows: dict[str, BreakdownRow] = {}
    for summary in summaries:
        key = key_fn(summary)
        row = rows.get(key)
        if row is None:
            row = rows[key] = BreakdownRow(key=key)
        row.add(summary)
    return sorted(rows.values(), key=lambda r: (-r.principal_count, r.key))


def geographic_breakdown(summaries: list[PrincipalSummary]) -> list[BreakdownRow]:
    """Group by country; principals without one fall under Unknown."""
    return _breakdown(summaries, lambda s: s.country_name or UNKNOWN_COUNTRY)


def category_breakdown(summaries: list[PrincipalSummary]) -> list[BreakdownRow]:
    """Group by primary product category; missing categories fall under Other."""
    return _breakdown(summaries, lambda s: s.primary_product_category or OTHER_CATEGORY)


# =====================================================================
# TRENDS
# =====================================================================


def _month_key(moment: datetime) -> str:
    return moment.astimezone(UTC).strftime("%Y-%m")


def _month_span(first: str, last: str) -> list[str]:
    """Every YYYY-MM key from first to last inclusive."""
    year, month = int(first[:4]), int(first[5:])
    keys = []
    while True:
        key = f"{year:04d}-{month:02d}"
        keys.append(key)
        if key >= last:
            return keys
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)


def monthly_trend(records: Iterable[ActivityRecord]) -> list[MonthlyActivity]:
    """
    Bucket timeline history by month, oldest first.

    Months between the first and last bucket that have no entries are
    included with zero counts. A principal is new in the month of its earliest entry. Each month after
    the first is classified against the previous one on active principals plus
    opportunities created, with a 5% band.
    """
    months: dict[str, MonthlyActivity] = {}
    active: dict[str, set[str]] = {}
    first_seen: dict[str, datetime] = {}

    for record in records:
        key = _month_key(record.activity_date)
        point = months.get(key)
        if point is None:
            point = months[key] = MonthlyActivity(month=key)
            active[key] = set()
        active[key].add(record.principal_id)
        if record.activity_type == ActivityType.OPPORTUNITY_CREATED:
            point.opportunities_created += 1
        elif record.activity_type == ActivityType.INTERACTION:
            point.interactions_count += 1
        seen = first_seen.get(record.principal_id)
        if seen is None or record.activity_date < seen:
            first_seen[record.principal_id] = record.activity_date

    for seen in first_seen.values():
        months[_month_key(seen)].new_principals += 1

    if not months:
        return []
    span = _month_span(min(months), max(months))
    trend = [months.get(key) or MonthlyActivity(month=key) for key in span]
    previous = None
    for point in trend:
        point.active_principals = len(active.get(point.month, ()))
        if previous is not None:
            point.engagement_trend = classify_trend(
                point.volume, previous.volume, MONTHLY_TREND_BAND
            )
        previous = point
    return trend


def timeline_summary(
    records: Iterable[ActivityRecord], now: datetime | None = None
) -> TimelineSummary:
    """
    Totals, date range, busiest day and week-over-week trend for entries.

    The trend compares the last 7 days against the 7 before with a 10% band.
    Ties for the busiest day go to the earliest day.
    """
    records = list(records)
    if not records:
        return TimelineSummary()
    now = now or datetime.now(UTC)

    per_day = Counter(r.activity_date.astimezone(UTC).date() for r in records)
    busiest_day, busiest_count = None, 0
    for day in sorted(per_day):
        if per_day[day] > busiest_count:
            busiest_day, busiest_count = day, per_day[day]

    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)
    recent = sum(1 for r in records if r.activity_date >= week_ago)
    previous = sum(1 for r in records if two_weeks_ago <= r.activity_date < week_ago)

    return TimelineSummary(
        total_entries=len(records),
        unique_principals=len({r.principal_id for r in records}),
        date_start=min(r.activity_date for r in records),
        date_end=max(r.activity_date for r in records),
        most_active_day=busiest_day,
        most_active_day_count=busiest_count,
        activity_trend=classify_trend(recent, previous, WEEKLY_TREND_BAND),
    )


# =====================================================================
# KPIS AND SUMMARIES
# =====================================================================


def top_activity_status(
    distribution: dict[ActivityStatus, DistributionBucket],
) -> ActivityStatus:
    """Status with the highest count; earlier statuses win ties."""
    best, best_count = ActivityStatus.NO_ACTIVITY, 0
    for status in ActivityStatus:
        bucket = distribution.get(status)
        if bucket is not None and bucket.count > best_count:
            best, best_count = status, bucket.count
    return best


def metrics_summary(summaries: list[PrincipalSummary]) -> MetricsSummary:
    return MetricsSummary(
        total_principals=len(summaries),
        active_this_month=sum(1 for s in summaries if s.activity_status == ActivityStatus.ACTIVE),
        top_engagement_score=max((s.engagement_score for s in summaries), default=0.0),
        opportunities_created_this_month=sum(s.opportunities_last_30_days for s in summaries),
        # 30-day count spread over four weeks
        interactions_this_week=sum(s.interactions_last_30_days for s in summaries) / 4,
        pending_follow_ups=sum(s.follow_ups_required for s in summaries),
    )


def conversion_funnel(summaries: list[PrincipalSummary]) -> list[FunnelStage]:
    """
    Nested funnel from real counts.

    Each stage keeps only principals that also passed every earlier stage, so
    counts never grow down the funnel.
    """
    stages = (
        ("All Principals", lambda s: True),
        ("Contacted", lambda s: s.contact_count > 0),
        ("Engaged", lambda s: s.total_interactions > 0),
        ("Opportunity Created", lambda s: s.total_opportunities > 0),
        ("Closed Won", lambda s: s.won_opportunities > 0),
    )
    remaining = list(summaries)
    previous_count = len(remaining)
    funnel = []
    for name, predicate in stages:
        remaining = [s for s in remaining if predicate(s)]
        count = len(remaining)
        conversion = _pct(count, previous_count)
        funnel.append(
            FunnelStage(
                stage=name,
                count=count,
                conversion_rate=conversion,
                drop_off_rate=100.0 - conversion if previous_count > 0 else 0.0,
            )
        )
        previous_count = count
    return funnel


def aggregate(
    summaries: Iterable[PrincipalSummary],
    timeline: Iterable[ActivityRecord] | None = None,
    top_n: int = config.TOP_PERFORMERS_LIMIT,
    now: datetime | None = None,
) -> PrincipalAnalytics:
    """
    Compute the full analytics snapshot.

    Args:
        summaries: Principal rollups, already filtered if needed
        timeline: Entries for the same principals; enables the monthly trend,
            timeline summary and follow-up KPIs
        top_n: Number of top performers to rank
        now: Reference time for overdue and weekly calculations

    Returns:
        PrincipalAnalytics
    """
    summaries = list(summaries)
    records = list(timeline) if timeline is not None else None
    now = now or datetime.now(UTC)
    total = len(summaries)

    with_opportunities = sum(1 for s in summaries if s.total_opportunities > 0)
    distribution = activity_status_distribution(summaries)
    trend = monthly_trend(records) if records is not None else []

    if records is not None:
        pending = len(follow_up_entries(records))
        overdue = len(overdue_entries(records, now))
    else:
        pending = sum(s.follow_ups_required for s in summaries)
        overdue = 0

    kpis = KPISummary(
        conversion_rate=_pct(with_opportunities, total),
        top_activity_status=top_activity_status(distribution),
        active_opportunity_count=with_opportunities,
        pending_follow_ups=pending,
        overdue_follow_ups=overdue,
        engagement_trend=trend[-1].engagement_trend if trend else Trend.STABLE,
    )

    analytics = PrincipalAnalytics(
        total_principals=total,
        active_principals=distribution[ActivityStatus.ACTIVE].count,
        principals_with_products=sum(1 for s in summaries if s.product_count > 0),
        principals_with_opportunities=with_opportunities,
        average_products_per_principal=(
            sum(s.product_count for s in summaries) / total if total else 0.0
        ),
        average_engagement_score=(
            sum(s.engagement_score for s in summaries) / total if total else 0.0
        ),
        activity_status_distribution=distribution,
        engagement_distribution=engagement_distribution(summaries),
        top_performers=top_performers(summaries, top_n),
        geographic_breakdown=geographic_breakdown(summaries),
        category_breakdown=category_breakdown(summaries),
        monthly_trend=trend,
        kpis=kpis,
        metrics=metrics_summary(summaries),
        timeline_summary=timeline_summary(records, now) if records is not None else None,
        calculated_at=now,
    )
    logger.debug(f"Aggregated analytics for {total} principals")
    return analytics
