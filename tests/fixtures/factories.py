"""
Builders for timeline entries and principal summaries.
"""

from datetime import UTC, datetime, timedelta

from principal_activity.models import ActivityRecord, ActivityStatus, ActivityType, PrincipalSummary

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_record(rank: int, **overrides) -> ActivityRecord:
    """Build an entry with sensible defaults; rank also sets source_id and age in days."""
    values = {
        "principal_id": "p-1",
        "principal_name": "Acme Foods",
        "activity_date": NOW - timedelta(days=rank),
        "activity_type": ActivityType.INTERACTION,
        "activity_subject": f"Subject {rank}",
        "activity_details": f"Details {rank}",
        "source_table": "interactions",
        "source_id": f"e-{rank}",
        "activity_status": "open",
        "timeline_rank": rank,
    }
    values.update(overrides)
    return ActivityRecord(**values)


def make_summary(principal_id: str, **overrides) -> PrincipalSummary:
    values = {
        "principal_id": principal_id,
        "principal_name": f"Principal {principal_id}",
        "engagement_score": 50.0,
        "activity_status": ActivityStatus.MODERATE,
    }
    values.update(overrides)
    return PrincipalSummary(**values)
