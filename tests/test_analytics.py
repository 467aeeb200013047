"""
Tests for the analytics aggregator.
"""

from datetime import UTC, date, datetime, timedelta

import pytest

from principal_activity.analytics import (
    OTHER_CATEGORY,
    UNKNOWN_COUNTRY,
    Trend,
    activity_status_distribution,
    activity_type_distribution,
    aggregate,
    category_breakdown,
    classify_trend,
    conversion_funnel,
    engagement_band,
    engagement_distribution,
    geographic_breakdown,
    metrics_summary,
    monthly_trend,
    timeline_summary,
    top_activity_status,
    top_performers,
)
from principal_activity.models import ActivityStatus, ActivityType
from tests.fixtures import NOW, make_record, make_summary


class TestDistributions:
    def test_status_distribution_has_every_status(self, summaries):
        dist = activity_status_distribution(summaries)
        assert set(dist) == set(ActivityStatus)
        assert dist[ActivityStatus.NO_ACTIVITY].count == 0
        assert dist[ActivityStatus.ACTIVE].label == "Active"
        assert sum(b.percentage for b in dist.values()) == pytest.approx(100.0)

    def test_status_distribution_empty(self):
        dist = activity_status_distribution([])
        assert all(b.count == 0 and b.percentage == 0.0 for b in dist.values())

    @pytest.mark.parametrize(
        "score,band", [(0, "low"), (39.9, "low"), (40, "medium"), (70, "medium"), (70.1, "high")]
    )
    def test_engagement_band_edges(self, score, band):
        assert engagement_band(score) == band

    def test_engagement_distribution(self, summaries):
        dist = engagement_distribution(summaries)
        assert [dist[b].count for b in ("low", "medium", "high")] == [1, 1, 1]

    def test_activity_type_distribution(self, mixed_records):
        dist = activity_type_distribution(mixed_records)
        assert dist[ActivityType.INTERACTION].count == 6
        assert dist[ActivityType.OPPORTUNITY_CREATED].percentage == pytest.approx(40.0)
        assert dist[ActivityType.CONTACT_UPDATE].count == 0


class TestRankings:
    def test_top_performers_order(self, summaries):
        result = top_performers(summaries, limit=2)
        assert [(p.rank, p.principal_id) for p in result] == [(1, "p-1"), (2, "p-2")]

    def test_ties_ordered_by_id(self):
        tied = [make_summary("b", engagement_score=60), make_summary("a", engagement_score=60)]
        assert [p.principal_id for p in top_performers(tied)] == ["a", "b"]

    def test_zero_limit(self, summaries):
        assert top_performers(summaries, limit=0) == []

    def test_top_activity_status_tie_goes_to_earlier_status(self, summaries):
        assert top_activity_status(activity_status_distribution(summaries)) == ActivityStatus.STALE

    def test_top_activity_status_empty(self):
        assert top_activity_status(activity_status_distribution([])) == ActivityStatus.NO_ACTIVITY


class TestBreakdowns:
    def test_geographic_uses_metadata_and_unknown(self, summaries):
        rows = geographic_breakdown(summaries)
        assert [r.key for r in rows] == ["Canada", "Norway", UNKNOWN_COUNTRY]

    def test_category_other(self, summaries):
        rows = category_breakdown(summaries)
        assert [r.key for r in rows] == [OTHER_CATEGORY, "Protein", "Sauce"]

    def test_running_mean_and_conversion(self):
        rows = geographic_breakdown(
            [
                make_summary("a", country="Chile", engagement_score=40,
                             total_opportunities=4, won_opportunities=1),
                make_summary("b", country="Chile", engagement_score=60,
                             total_opportunities=4, won_opportunities=3),
                make_summary("c", country="Peru", engagement_score=90),
            ]
        )
        chile = rows[0]
        assert chile.key == "Chile"
        assert chile.principal_count == 2
        assert chile.avg_engagement_score == pytest.approx(50.0)
        assert chile.conversion_rate == pytest.approx(50.0)
        assert rows[1].conversion_rate == 0.0


class TestTrends:
    def test_classify_trend(self):
        assert classify_trend(106, 100, 0.05) == Trend.INCREASING
        assert classify_trend(105, 100, 0.05) == Trend.STABLE
        assert classify_trend(94, 100, 0.05) == Trend.DECREASING
        assert classify_trend(0, 0, 0.05) == Trend.STABLE
        assert classify_trend(1, 0, 0.10) == Trend.INCREASING

    def test_monthly_trend_buckets(self):
        records = [
            make_record(1, principal_id="a", activity_date=datetime(2024, 1, 5, tzinfo=UTC)),
            make_record(2, principal_id="a", activity_date=datetime(2024, 2, 5, tzinfo=UTC)),
            make_record(3, principal_id="b", activity_date=datetime(2024, 2, 9, tzinfo=UTC),
                        activity_type=ActivityType.OPPORTUNITY_CREATED),
        ]
        trend = monthly_trend(records)
        assert [m.month for m in trend] == ["2024-01", "2024-02"]
        jan, feb = trend
        assert (jan.new_principals, jan.active_principals, jan.interactions_count) == (1, 1, 1)
        assert (feb.new_principals, feb.active_principals, feb.opportunities_created) == (1, 2, 1)
        assert jan.engagement_trend == Trend.STABLE
        assert feb.engagement_trend == Trend.INCREASING

    def test_monthly_trend_fills_gap_months(self):
        records = [
            make_record(1, principal_id="a", activity_date=datetime(2024, 1, 5, tzinfo=UTC)),
            make_record(2, principal_id="a", activity_date=datetime(2024, 3, 5, tzinfo=UTC)),
        ]
        trend = monthly_trend(records)
        assert [m.month for m in trend] == ["2024-01", "2024-02", "2024-03"]
        feb = trend[1]
        assert (feb.active_principals, feb.interactions_count, feb.new_principals) == (0, 0, 0)
        assert feb.engagement_trend == Trend.DECREASING
        assert trend[2].engagement_trend == Trend.INCREASING

    def test_monthly_trend_crosses_year(self):
        records = [
            make_record(1, activity_date=datetime(2023, 11, 20, tzinfo=UTC)),
            make_record(2, activity_date=datetime(2024, 1, 3, tzinfo=UTC)),
        ]
        assert [m.month for m in monthly_trend(records)] == ["2023-11", "2023-12", "2024-01"]

    def test_monthly_trend_empty(self):
        assert monthly_trend([]) == []

    def test_timeline_summary(self, mixed_records):
        summary = timeline_summary(mixed_records, now=NOW)
        assert summary.total_entries == 10
        assert summary.unique_principals == 2
        assert summary.date_start == NOW - timedelta(days=10)
        assert summary.date_end == NOW - timedelta(days=1)
        # one entry per day; the earliest day wins the tie
        assert summary.most_active_day == (NOW - timedelta(days=10)).date()
        assert summary.most_active_day_count == 1
        assert summary.activity_trend == Trend.INCREASING

    def test_timeline_summary_busiest_day(self):
        day = datetime(2024, 3, 1, 9, tzinfo=UTC)
        records = [
            make_record(1, activity_date=day),
            make_record(2, activity_date=day + timedelta(hours=2)),
            make_record(3, activity_date=day + timedelta(days=1)),
        ]
        summary = timeline_summary(records, now=NOW)
        assert summary.most_active_day == date(2024, 3, 1)
        assert summary.most_active_day_count == 2
        assert summary.to_dict()["most_active_day"] == {"date": "2024-03-01", "count": 2}

    def test_timeline_summary_empty(self):
        assert timeline_summary([], now=NOW).total_entries == 0


class TestFunnelAndMetrics:
    def test_funnel_is_nested(self, summaries):
        funnel = conversion_funnel(summaries)
        assert [s.stage for s in funnel] == [
            "All Principals",
            "Contacted",
            "Engaged",
            "Opportunity Created",
            "Closed Won",
        ]
        assert [s.count for s in funnel] == [3, 2, 2, 2, 1]
        assert funnel[1].conversion_rate == pytest.approx(200 / 3)
        assert funnel[4].drop_off_rate == pytest.approx(50.0)

    def test_funnel_empty(self):
        assert all(s.count == 0 and s.drop_off_rate == 0.0 for s in conversion_funnel([]))

    def test_metrics_summary(self, summaries):
        metrics = metrics_summary(summaries)
        assert metrics.total_principals == 3
        assert metrics.active_this_month == 1
        assert metrics.top_engagement_score == 82.0
        assert metrics.opportunities_created_this_month == 2
        assert metrics.interactions_this_week == 3.0
        assert metrics.pending_follow_ups == 1


class TestAggregate:
    def test_without_timeline(self, summaries):
        analytics = aggregate(summaries, now=NOW)
        assert analytics.total_principals == 3
        assert analytics.active_principals == 1
        assert analytics.principals_with_opportunities == 2
        assert analytics.average_engagement_score == pytest.approx(157 / 3)
        assert analytics.average_products_per_principal == pytest.approx(5 / 3)
        assert analytics.kpis.conversion_rate == pytest.approx(200 / 3)
        assert analytics.kpis.pending_follow_ups == 1
        assert analytics.kpis.overdue_follow_ups == 0
        assert analytics.monthly_trend == []
        assert analytics.timeline_summary is None

    def test_with_timeline(self, summaries, mixed_records):
        records = mixed_records + [
            make_record(11, follow_up_required=True, follow_up_date=NOW - timedelta(days=1)),
            make_record(12, follow_up_required=True, follow_up_date=NOW + timedelta(days=1)),
        ]
        analytics = aggregate(summaries, records, top_n=1, now=NOW)
        assert analytics.kpis.pending_follow_ups == 2
        assert analytics.kpis.overdue_follow_ups == 1
        assert len(analytics.top_performers) == 1
        assert analytics.monthly_trend[0].month == "2024-03"
        assert analytics.timeline_summary.total_entries == 12

    def test_empty_snapshot(self):
        analytics = aggregate([], [], now=NOW)
        assert analytics.total_principals == 0
        assert analytics.average_engagement_score == 0.0
        assert analytics.kpis.conversion_rate == 0.0
        assert analytics.top_performers == []

    def test_to_dict_is_plain(self, summaries):
        data = aggregate(summaries, now=NOW).to_dict()
        assert data["kpis"]["top_activity_status"] == "STALE"
        assert data["activity_status_distribution"]["ACTIVE"]["count"] == 1
        assert data["calculated_at"] == NOW.isoformat()
