"""
CSV and JSON export of timeline entries and analytics.

Exports are one-way and field-complete: every entry field is written, but
the output is not meant to be parsed back.
"""

import csv
import io
import json
import logging
from datetime import UTC, datetime

from principal_activity.analytics import (
    BenchmarkResult,
    PerformanceComparison,
    PrincipalAnalytics,
    TimelineSummary,
)
from principal_activity.models import ActivityRecord, ActivityStatus
from principal_activity.query import TimelineFilter

logger = logging.getLogger(__name__)

TIMELINE_COLUMNS = [
    "principal_id",
    "principal_name",
    "activity_date",
    "activity_type",
    "activity_subject",
    "activity_details",
    "source_table",
    "source_id",
    "opportunity_name",
    "contact_name",
    "product_name",
    "created_by",
    "activity_status",
    "follow_up_required",
    "follow_up_date",
    "timeline_rank",
]


def _filter_lines(filters: TimelineFilter) -> list[str]:
    lines = []
    for key, value in filters.to_dict().items():
        if value is None or value == "" or value == [] or (key == "overdue_only" and not value):
            continue
        if isinstance(value, list):
            value = ", ".join(value)
        lines.append(f"{key}: {value}")
    return lines


def timeline_to_csv(
    records: list[ActivityRecord], filters: TimelineFilter | None = None
) -> str:
    """
    Render entries as CSV with every cell quoted.

    When filters are given and any is active, a "Filters Applied:" block
    follows the rows after a blank line.
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer, fieldnames=TIMELINE_COLUMNS, quoting=csv.QUOTE_ALL, lineterminator="\n"
    )
    writer.writeheader()
    for record in records:
        row = record.to_dict()
        row["follow_up_required"] = "Yes" if record.follow_up_required else "No"
        writer.writerow({k: "" if row[k] is None else row[k] for k in TIMELINE_COLUMNS})

    output = buffer.getvalue()
    if filters is not None and not filters.is_empty():
        output += "\nFilters Applied:\n" + "\n".join(_filter_lines(filters)) + "\n"
    return output


def timeline_to_json(
    records: list[ActivityRecord],
    summary: TimelineSummary | None = None,
    filters: TimelineFilter | None = None,
    exported_at: datetime | None = None,
) -> str:
    data = {
        "timeline_entries": [r.to_dict() for r in records],
        "summary": summary.to_dict() if summary else None,
        "export_date": (exported_at or datetime.now(UTC)).isoformat(),
    }
    if filters is not None and not filters.is_empty():
        data["applied_filters"] = filters.to_dict()
    return json.dumps(data, indent=2, default=str)


def analytics_to_csv(
    analytics: PrincipalAnalytics, benchmark: BenchmarkResult | None = None
) -> str:
    """Two-column Metric,Value table of the headline analytics."""
    rows = [
        ("Total Principals", analytics.total_principals),
        ("Active Principals", analytics.active_principals),
        ("Average Engagement Score", round(analytics.average_engagement_score, 2)),
        ("Principals with Products", analytics.principals_with_products),
        ("Principals with Opportunities", analytics.principals_with_opportunities),
        ("Average Products per Principal", round(analytics.average_products_per_principal, 2)),
        ("Conversion Rate", round(analytics.kpis.conversion_rate, 2)),
        ("Top Activity Status", analytics.kpis.top_activity_status.value),
        ("Pending Follow-ups", analytics.kpis.pending_follow_ups),
        ("Overdue Follow-ups", analytics.kpis.overdue_follow_ups),
    ]
    for status in ActivityStatus:
        bucket = analytics.activity_status_distribution.get(status)
        rows.append((f"Status {status.value}", bucket.count if bucket else 0))
    if benchmark is not None:
        rows.append(("Benchmark Overall Score", round(benchmark.overall_score, 2)))

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Metric", "Value"])
    writer.writerows(rows)
    return buffer.getvalue()


def analytics_to_json(
    analytics: PrincipalAnalytics,
    benchmark: BenchmarkResult | None = None,
    comparison: PerformanceComparison | None = None,
) -> str:
    data = {
        "analytics": analytics.to_dict(),
        "benchmark": benchmark.to_dict() if benchmark else None,
        "comparison": comparison.to_dict() if comparison else None,
        "last_calculated": analytics.calculated_at.isoformat() if analytics.calculated_at else None,
    }
    return json.dumps(data, indent=2, default=str)
