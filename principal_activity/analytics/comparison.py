"""
Period-over-period comparison and benchmark classification.
"""

import logging
from dataclasses import asdict, dataclass
from enum import StrEnum
from pathlib import Path

import yaml

from principal_activity.analytics.aggregator import PrincipalAnalytics
from principal_activity.models import ActivityStatus, PrincipalSummary

logger = logging.getLogger(__name__)

BENCHMARKS_PATH = Path(__file__).parent / "benchmarks.yaml"

DEFAULT_THRESHOLDS: dict[str, dict[str, float]] = {
    "engagement_score": {"low": 40.0, "high": 70.0},
    "opportunity_rate": {"low": 0.2, "high": 0.5},
    "activity_rate": {"low": 0.3, "high": 0.6},
}


class BenchmarkLevel(StrEnum):
    ABOVE = "above"
    AT = "at"
    BELOW = "below"


_LEVEL_POINTS = {BenchmarkLevel.ABOVE: 2, BenchmarkLevel.AT: 1, BenchmarkLevel.BELOW: 0}


def growth_rate(current: float, previous: float) -> float:
    """
    Percentage change from previous to current.

    A zero baseline gives 100 for any positive current value and 0 otherwise.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


@dataclass
class PerformanceComparison:
    engagement_change: float = 0.0
    opportunity_change: float = 0.0
    principal_growth: float = 0.0
    activity_change: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def compare_performance(
    current: list[PrincipalSummary], previous: list[PrincipalSummary]
) -> PerformanceComparison:
    """Growth rates between two summary snapshots. Empty snapshots count as zero."""
    return PerformanceComparison(
        engagement_change=growth_rate(
            _mean([s.engagement_score for s in current]),
            _mean([s.engagement_score for s in previous]),
        ),
        opportunity_change=growth_rate(
            sum(s.total_opportunities for s in current),
            sum(s.total_opportunities for s in previous),
        ),
        principal_growth=growth_rate(len(current), len(previous)),
        activity_change=growth_rate(
            sum(s.interactions_last_30_days for s in current),
            sum(s.interactions_last_30_days for s in previous),
        ),
    )


# =====================================================================
# BENCHMARKS
# =====================================================================


def load_thresholds(path: Path = BENCHMARKS_PATH) -> dict[str, dict[str, float]]:
    """
    Load benchmark thresholds from YAML, merged over the built-in defaults.

    A missing or malformed file falls back to the defaults with a warning.
    """
    thresholds = {axis: dict(bounds) for axis, bounds in DEFAULT_THRESHOLDS.items()}
    if not path.exists():
        logger.warning(f"Benchmark config not found at {path}, using defaults")
        return thresholds
    try:
        with open(path) as f:
            loaded = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        logger.warning(f"Failed to load benchmark config: {e}")
        return thresholds
    if not isinstance(loaded, dict):
        logger.warning(f"Benchmark config at {path} is not a mapping, using defaults")
        return thresholds

    for axis, bounds in loaded.items():
        if axis not in thresholds or not isinstance(bounds, dict):
            logger.warning(f"Ignoring unknown benchmark axis: {axis}")
            continue
        for bound in ("low", "high"):
            if bound in bounds:
                try:
                    thresholds[axis][bound] = float(bounds[bound])
                except (TypeError, ValueError):
                    logger.warning(f"Ignoring non-numeric threshold {axis}.{bound}")
    return thresholds


def classify(value: float, low: float, high: float) -> BenchmarkLevel:
    if value > high:
        return BenchmarkLevel.ABOVE
    if value < low:
        return BenchmarkLevel.BELOW
    return BenchmarkLevel.AT


@dataclass
class BenchmarkResult:
    engagement_benchmark: BenchmarkLevel
    opportunity_benchmark: BenchmarkLevel
    activity_benchmark: BenchmarkLevel
    engagement_score: float
    opportunity_rate: float
    activity_rate: float
    overall_score: float

    def to_dict(self) -> dict:
        return {
            "engagement_benchmark": self.engagement_benchmark.value,
            "opportunity_benchmark": self.opportunity_benchmark.value,
            "activity_benchmark": self.activity_benchmark.value,
            "engagement_score": self.engagement_score,
            "opportunity_rate": self.opportunity_rate,
            "activity_rate": self.activity_rate,
            "overall_score": self.overall_score,
        }


def benchmark(
    analytics: PrincipalAnalytics,
    thresholds: dict[str, dict[str, float]] | None = None,
) -> BenchmarkResult:
    """
    Classify engagement, opportunity rate and activity rate.

    Overall score maps above/at/below to 2/1/0, averages the three axes and
    scales to 0-100. With no principals both rates are 0.
    """
    if thresholds is None:
        thresholds = load_thresholds()

    total = analytics.total_principals
    opportunity_rate = analytics.principals_with_opportunities / total if total else 0.0
    active = analytics.activity_status_distribution.get(ActivityStatus.ACTIVE)
    active_count = active.count if active is not None else analytics.active_principals
    activity_rate = active_count / total if total else 0.0

    levels = (
        classify(analytics.average_engagement_score, **thresholds["engagement_score"]),
        classify(opportunity_rate, **thresholds["opportunity_rate"]),
        classify(activity_rate, **thresholds["activity_rate"]),
    )
    overall = sum(_LEVEL_POINTS[level] for level in levels) / len(levels) * 50

    return BenchmarkResult(
        engagement_benchmark=levels[0],
        opportunity_benchmark=levels[1],
        activity_benchmark=levels[2],
        engagement_score=analytics.average_engagement_score,
        opportunity_rate=opportunity_rate,
        activity_rate=activity_rate,
        overall_score=overall,
    )


def metric_color(value: float, low: float, high: float) -> str:
    """green at or above high, red at or below low, yellow in between."""
    if value >= high:
        return "green"
    if value <= low:
        return "red"
    return "yellow"
