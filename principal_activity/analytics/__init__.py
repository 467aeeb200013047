"""
Analytics over principal summaries and timeline history.

Provides:
- aggregate(): full PrincipalAnalytics snapshot
- distributions, top performers, breakdowns, monthly trend, timeline summary
- growth_rate / compare_performance / benchmark / metric_color
"""

from .aggregator import (
    OTHER_CATEGORY,
    UNKNOWN_COUNTRY,
    BreakdownRow,
    DistributionBucket,
    FunnelStage,
    KPISummary,
    MetricsSummary,
    MonthlyActivity,
    PrincipalAnalytics,
    TimelineSummary,
    TopPerformer,
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
from .comparison import (
    DEFAULT_THRESHOLDS,
    BenchmarkLevel,
    BenchmarkResult,
    PerformanceComparison,
    benchmark,
    classify,
    compare_performance,
    growth_rate,
    load_thresholds,
    metric_color,
)

__all__ = [
    "OTHER_CATEGORY",
    "UNKNOWN_COUNTRY",
    "BenchmarkLevel",
    "BenchmarkResult",
    "BreakdownRow",
    "DEFAULT_THRESHOLDS",
    "DistributionBucket",
    "FunnelStage",
    "KPISummary",
    "MetricsSummary",
    "MonthlyActivity",
    "PerformanceComparison",
    "PrincipalAnalytics",
    "TimelineSummary",
    "TopPerformer",
    "Trend",
    "activity_status_distribution",
    "activity_type_distribution",
    "aggregate",
    "benchmark",
    "category_breakdown",
    "classify",
    "classify_trend",
    "compare_performance",
    "conversion_funnel",
    "engagement_band",
    "engagement_distribution",
    "geographic_breakdown",
    "growth_rate",
    "load_thresholds",
    "metric_color",
    "metrics_summary",
    "monthly_trend",
    "timeline_summary",
    "top_activity_status",
    "top_performers",
]
