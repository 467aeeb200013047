"""
Test configuration: repo root on sys.path plus shared fixtures.

Every fixture uses a fixed reference time so overdue and trend calculations
are deterministic.
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import principal_activity without installation
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from principal_activity.config import EngineConfig  # noqa: E402
from principal_activity.models import (  # noqa: E402
    ActivityRecord,
    ActivityStatus,
    ActivityType,
    GeographicMetadata,
    PrincipalSummary,
)
from principal_activity.providers import InMemoryProvider  # noqa: E402
from tests.fixtures import NOW, FakeClock, make_record, make_summary  # noqa: E402


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mixed_records() -> list[ActivityRecord]:
    """Ten entries: ranks 1-10, six interactions and four opportunities, two principals."""
    records = []
    for rank in range(1, 11):
        is_opportunity = rank % 5 in (2, 4)
        records.append(
            make_record(
                rank,
                principal_id="p-1" if rank <= 5 else "p-2",
                principal_name="Acme Foods" if rank <= 5 else "Borealis Trading",
                activity_type=(
                    ActivityType.OPPORTUNITY_CREATED if is_opportunity else ActivityType.INTERACTION
                ),
                source_table="opportunities" if is_opportunity else "interactions",
            )
        )
    return records


@pytest.fixture
def summaries() -> list[PrincipalSummary]:
    return [
        make_summary(
            "p-1",
            principal_name="Acme Foods",
            engagement_score=82.0,
            activity_status=ActivityStatus.ACTIVE,
            product_count=4,
            total_opportunities=6,
            won_opportunities=3,
            contact_count=5,
            total_interactions=20,
            interactions_last_30_days=8,
            opportunities_last_30_days=2,
            follow_ups_required=1,
            country="Canada",
            primary_product_category="Protein",
            industry="Food Service",
        ),
        make_summary(
            "p-2",
            principal_name="Borealis Trading",
            engagement_score=55.0,
            activity_status=ActivityStatus.MODERATE,
            product_count=1,
            total_opportunities=2,
            won_opportunities=0,
            contact_count=2,
            total_interactions=4,
            interactions_last_30_days=4,
            metadata=(GeographicMetadata(country="Norway", region="Oslo"),),
            primary_product_category="Sauce",
        ),
        make_summary(
            "p-3",
            principal_name="Cobalt Produce",
            engagement_score=20.0,
            activity_status=ActivityStatus.STALE,
        ),
    ]


@pytest.fixture
def provider(mixed_records, summaries) -> InMemoryProvider:
    return InMemoryProvider(mixed_records, summaries)


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(
        cache_ttl_seconds=300.0,
        cache_enabled=True,
        default_page_size=20,
        view_mode="grouped",
        search_debounce_seconds=0.01,
        refresh_interval_seconds=60.0,
        auto_refresh=False,
        top_performers=10,
        max_selections=0,
    )
