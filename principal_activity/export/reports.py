"""
Plain-text reports: timeline summary/detailed reports and the executive summary.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime

from principal_activity.analytics import PrincipalAnalytics, TimelineSummary, timeline_summary
from principal_activity.filtering import follow_up_entries, overdue_entries
from principal_activity.formatting import format_activity_date
from principal_activity.models import ActivityRecord, ActivityStatus
from principal_activity.query import TimelineFilter

logger = logging.getLogger(__name__)

REPORT_FORMATS = ("summary", "detailed")


@dataclass
class Report:
    title: str
    content: str
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def _summary_content(
    summary: TimelineSummary, follow_ups: int, overdue: int
) -> str:
    start = format_activity_date(summary.date_start, "long") or "n/a"
    end = format_activity_date(summary.date_end, "long") or "n/a"
    busiest = summary.most_active_day.isoformat() if summary.most_active_day else "n/a"
    lines = [
        f"Total Entries: {summary.total_entries}",
        f"Unique Principals: {summary.unique_principals}",
        f"Date Range: {start} - {end}",
        f"Most Active Day: {busiest} ({summary.most_active_day_count} activities)",
        f"Activity Trend: {summary.activity_trend}",
        "",
        f"Follow-ups Required: {follow_ups}",
        f"Overdue Follow-ups: {overdue}",
    ]
    return "\n".join(lines)


def _entry_block(record: ActivityRecord) -> str:
    lines = [
        f"{format_activity_date(record.activity_date, 'long')} - {record.principal_name}",
        f"Type: {record.activity_type.value}",
        f"Subject: {record.activity_subject}",
        f"Details: {record.activity_details}",
        f"Follow-up: {'Required' if record.follow_up_required else 'Not required'}",
    ]
    if record.follow_up_date:
        lines.append(f"Due: {format_activity_date(record.follow_up_date, 'short')}")
    return "\n".join(lines)


def generate_report(
    records: list[ActivityRecord],
    summary: TimelineSummary | None = None,
    format: str = "summary",
    filters: TimelineFilter | None = None,
    now: datetime | None = None,
) -> Report:
    """
    Build a timeline report.

    Args:
        records: Entries the report covers (normally the filtered set)
        summary: Precomputed summary; computed from records when omitted
        format: "summary" for headline numbers, "detailed" for one block per entry
        filters: Active filters, recorded in detailed report metadata
        now: Reference time for overdue and trend calculations

    Raises:
        ValueError: If format is not one of REPORT_FORMATS
    """
    if format not in REPORT_FORMATS:
        raise ValueError(f"Unsupported report format: {format}")
    now = now or datetime.now(UTC)
    generated_at = now.isoformat()

    if format == "summary":
        summary = summary or timeline_summary(records, now)
        return Report(
            title="Principal Timeline Summary Report",
            content=_summary_content(
                summary, len(follow_up_entries(records)), len(overdue_entries(records, now))
            ),
            metadata={
                "generated_at": generated_at,
                "entry_count": summary.total_entries,
                "principal_count": summary.unique_principals,
            },
        )

    active_filters = filters.to_dict() if filters is not None and not filters.is_empty() else None
    return Report(
        title="Principal Timeline Detailed Report",
        content="\n---\n".join(_entry_block(r) for r in records),
        metadata={
            "generated_at": generated_at,
            "entry_count": len(records),
            "filters_applied": active_filters,
        },
    )


@dataclass
class ExecutiveSummary:
    overview: str
    key_metrics: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    action_items: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    def to_text(self) -> str:
        sections = [self.overview]
        for heading, items in (
            ("Key Metrics", self.key_metrics),
            ("Recommendations", self.recommendations),
            ("Action Items", self.action_items),
        ):
            if items:
                sections.append(heading + ":\n" + "\n".join(f"  - {i}" for i in items))
        return "\n\n".join(sections)


def executive_summary(analytics: PrincipalAnalytics) -> ExecutiveSummary:
    """Narrative overview with recommendations driven by the analytics."""
    if analytics.total_principals == 0:
        return ExecutiveSummary(overview="No data available for executive summary")

    score = analytics.average_engagement_score
    overview = (
        f"Currently tracking {analytics.total_principals} principals with an average "
        f"engagement score of {score:.1f}. {analytics.active_principals} principals are "
        f"actively engaged."
    )
    key_metrics = [
        f"{analytics.total_principals} total principals",
        f"{analytics.active_principals} active principals",
        f"{score:.1f} average engagement score",
        f"{analytics.principals_with_opportunities} principals have opportunities",
        f"{analytics.kpis.conversion_rate:.1f}% opportunity conversion rate",
    ]

    stale = analytics.activity_status_distribution.get(ActivityStatus.STALE)
    stale_count = stale.count if stale else 0
    recommendations = [
        "Focus on re-engaging stale principals"
        if stale_count > analytics.active_principals
        else "Maintain current engagement levels",
        "Implement engagement improvement strategies"
        if score < 50
        else "Continue current engagement strategies",
    ]

    action_items = []
    if stale_count:
        action_items.append(f"Review {stale_count} stale principals for re-engagement opportunities")
    if analytics.kpis.overdue_follow_ups:
        action_items.append(f"Clear {analytics.kpis.overdue_follow_ups} overdue follow-ups")
    if analytics.top_performers:
        leader = analytics.top_performers[0].principal_name
        action_items.append(f"Analyze top performers (led by {leader}) for best practice replication")
    action_items.append("Schedule quarterly engagement review meetings")

    return ExecutiveSummary(
        overview=overview,
        key_metrics=key_metrics,
        recommendations=recommendations,
        action_items=action_items,
    )
