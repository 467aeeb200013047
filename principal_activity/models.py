"""
Data model for principal activity tracking.

ActivityRecord and PrincipalSummary are snapshots of records owned by the
external data platform. The engine only ever holds transient copies, so the
record types are frozen and updated with dataclasses.replace().
"""

import logging
from dataclasses import asdict, dataclass, field, replace
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any, Union

logger = logging.getLogger(__name__)


# =====================================================================
# ENUMS
# =====================================================================


class ActivityType(StrEnum):
    """Timeline activity categories."""

    CONTACT_UPDATE = "CONTACT_UPDATE"
    INTERACTION = "INTERACTION"
    OPPORTUNITY_CREATED = "OPPORTUNITY_CREATED"
    PRODUCT_ASSOCIATION = "PRODUCT_ASSOCIATION"


class ActivityStatus(StrEnum):
    """Coarse engagement bucket. Computed upstream; authoritative here."""

    NO_ACTIVITY = "NO_ACTIVITY"
    STALE = "STALE"
    MODERATE = "MODERATE"
    ACTIVE = "ACTIVE"


ACTIVITY_TYPE_STYLE: dict[ActivityType, dict[str, str]] = {
    ActivityType.CONTACT_UPDATE: {"color": "blue", "icon": "user-edit"},
    ActivityType.INTERACTION: {"color": "green", "icon": "chat"},
    ActivityType.OPPORTUNITY_CREATED: {"color": "purple", "icon": "trending-up"},
    ActivityType.PRODUCT_ASSOCIATION: {"color": "orange", "icon": "package"},
}

ACTIVITY_STATUS_STYLE: dict[ActivityStatus, dict[str, str]] = {
    ActivityStatus.NO_ACTIVITY: {"color": "gray", "label": "No Activity"},
    ActivityStatus.STALE: {"color": "red", "label": "Stale"},
    ActivityStatus.MODERATE: {"color": "yellow", "label": "Moderate"},
    ActivityStatus.ACTIVE: {"color": "green", "label": "Active"},
}


# =====================================================================
# PARSING HELPERS
# =====================================================================


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO timestamp or date into an aware datetime.

    Naive values are taken as UTC. Unparseable input yields None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            logger.debug(f"Unparseable timestamp: {value!r}")
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_tristate(value: Any) -> bool | None:
    """Parse a boolean given as bool, number or text. Blank input is None.

    Raises:
        ValueError: For text that is not a recognised boolean
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes"):
        return True
    if text in ("false", "0", "no"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _flag(value: Any) -> bool:
    try:
        return bool(parse_tristate(value))
    except ValueError:
        logger.debug(f"Unparseable flag: {value!r}")
        return False


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _float(value: Any) -> float:
    try:
        return float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0


def _str_or_none(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _enum_or(enum_cls, value: Any, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


# =====================================================================
# METADATA VARIANT
# =====================================================================


@dataclass(frozen=True)
class GeographicMetadata:
    """Where a principal operates."""

    country: str | None = None
    region: str | None = None
    kind: str = field(default="geographic", init=False)


@dataclass(frozen=True)
class ClassificationMetadata:
    """How a principal is classified."""

    industry: str | None = None
    organization_type: str | None = None
    kind: str = field(default="classification", init=False)


@dataclass(frozen=True)
class ExtensionMetadata:
    """Any metadata shape this version does not know. Kept verbatim."""

    kind: str
    data: dict[str, Any] = field(default_factory=dict)


PrincipalMetadata = Union[GeographicMetadata, ClassificationMetadata, ExtensionMetadata]


def metadata_from_dict(raw: dict[str, Any]) -> PrincipalMetadata:
    """Decode a metadata payload by its ``kind`` tag."""
    kind = str(raw.get("kind") or "unknown")
    if kind == "geographic":
        return GeographicMetadata(country=raw.get("country"), region=raw.get("region"))
    if kind == "classification":
        return ClassificationMetadata(
            industry=raw.get("industry"), organization_type=raw.get("organization_type")
        )
    data = {k: v for k, v in raw.items() if k != "kind"}
    if "data" in data and isinstance(data["data"], dict) and len(data) == 1:
        data = data["data"]
    return ExtensionMetadata(kind=kind, data=data)


def metadata_to_dict(meta: PrincipalMetadata) -> dict[str, Any]:
    if isinstance(meta, ExtensionMetadata):
        return {"kind": meta.kind, "data": dict(meta.data)}
    return asdict(meta)


# =====================================================================
# RECORDS
# =====================================================================


@dataclass(frozen=True)
class ActivityRecord:
    """One dated activity on a principal's timeline."""

    principal_id: str
    principal_name: str
    activity_date: datetime
    activity_type: ActivityType
    activity_subject: str = ""
    activity_details: str = ""
    source_table: str = ""
    source_id: str = ""
    opportunity_name: str | None = None
    contact_name: str | None = None
    product_name: str | None = None
    created_by: str | None = None
    activity_status: str = ""
    follow_up_required: bool = False
    follow_up_date: datetime | None = None
    timeline_rank: int = 0

    @property
    def entry_id(self) -> str:
        return self.source_id

    def normalized(self) -> "ActivityRecord":
        """Drop a follow-up date that has no follow-up attached to it."""
        if not self.follow_up_required and self.follow_up_date is not None:
            return replace(self, follow_up_date=None)
        return self

    def to_dict(self) -> dict:
        return {
            "principal_id": self.principal_id,
            "principal_name": self.principal_name,
            "activity_date": _iso(self.activity_date),
            "activity_type": self.activity_type.value,
            "activity_subject": self.activity_subject,
            "activity_details": self.activity_details,
            "source_table": self.source_table,
            "source_id": self.source_id,
            "opportunity_name": self.opportunity_name,
            "contact_name": self.contact_name,
            "product_name": self.product_name,
            "created_by": self.created_by,
            "activity_status": self.activity_status,
            "follow_up_required": self.follow_up_required,
            "follow_up_date": _iso(self.follow_up_date),
            "timeline_rank": self.timeline_rank,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ActivityRecord":
        activity_date = parse_datetime(raw.get("activity_date")) or datetime.fromtimestamp(
            0, UTC
        )
        return cls(
            principal_id=str(raw.get("principal_id") or ""),
            principal_name=str(raw.get("principal_name") or ""),
            activity_date=activity_date,
            activity_type=_enum_or(
                ActivityType, raw.get("activity_type"), ActivityType.INTERACTION
            ),
            activity_subject=str(raw.get("activity_subject") or ""),
            activity_details=str(raw.get("activity_details") or ""),
            source_table=str(raw.get("source_table") or ""),
            source_id=str(raw.get("source_id") or ""),
            opportunity_name=_str_or_none(raw.get("opportunity_name")),
            contact_name=_str_or_none(raw.get("contact_name")),
            product_name=_str_or_none(raw.get("product_name")),
            created_by=_str_or_none(raw.get("created_by")),
            activity_status=str(raw.get("activity_status") or ""),
            follow_up_required=_flag(raw.get("follow_up_required")),
            follow_up_date=parse_datetime(raw.get("follow_up_date")),
            timeline_rank=_int(raw.get("timeline_rank")),
        )


@dataclass(frozen=True)
class PrincipalSummary:
    """Per-principal rollup produced by the data platform."""

    principal_id: str
    principal_name: str
    product_count: int = 0
    total_opportunities: int = 0
    won_opportunities: int = 0
    contact_count: int = 0
    total_interactions: int = 0
    engagement_score: float = 0.0
    activity_status: ActivityStatus = ActivityStatus.NO_ACTIVITY
    last_activity_date: datetime | None = None
    interactions_last_30_days: int = 0
    opportunities_last_30_days: int = 0
    follow_ups_required: int = 0
    country: str | None = None
    primary_product_category: str | None = None
    industry: str | None = None
    metadata: tuple[PrincipalMetadata, ...] = ()

    def __post_init__(self):
        clamped = min(100.0, max(0.0, float(self.engagement_score)))
        if clamped != self.engagement_score:
            object.__setattr__(self, "engagement_score", clamped)

    @property
    def country_name(self) -> str | None:
        if self.country:
            return self.country
        for meta in self.metadata:
            if isinstance(meta, GeographicMetadata) and meta.country:
                return meta.country
        return None

    @property
    def industry_name(self) -> str | None:
        if self.industry:
            return self.industry
        for meta in self.metadata:
            if isinstance(meta, ClassificationMetadata) and meta.industry:
                return meta.industry
        return None

    def to_dict(self) -> dict:
        return {
            "principal_id": self.principal_id,
            "principal_name": self.principal_name,
            "product_count": self.product_count,
            "total_opportunities": self.total_opportunities,
            "won_opportunities": self.won_opportunities,
            "contact_count": self.contact_count,
            "total_interactions": self.total_interactions,
            "engagement_score": self.engagement_score,
            "activity_status": self.activity_status.value,
            "last_activity_date": _iso(self.last_activity_date),
            "interactions_last_30_days": self.interactions_last_30_days,
            "opportunities_last_30_days": self.opportunities_last_30_days,
            "follow_ups_required": self.follow_ups_required,
            "country": self.country,
            "primary_product_category": self.primary_product_category,
            "industry": self.industry,
            "metadata": [metadata_to_dict(m) for m in self.metadata],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "PrincipalSummary":
        score = _float(raw.get("engagement_score"))
        metadata = tuple(
            metadata_from_dict(m) for m in (raw.get("metadata") or []) if isinstance(m, dict)
        )
        return cls(
            principal_id=str(raw.get("principal_id") or ""),
            principal_name=str(raw.get("principal_name") or ""),
            product_count=_int(raw.get("product_count")),
            total_opportunities=_int(raw.get("total_opportunities")),
            won_opportunities=_int(raw.get("won_opportunities")),
            contact_count=_int(raw.get("contact_count")),
            total_interactions=_int(raw.get("total_interactions")),
            engagement_score=score,
            activity_status=_enum_or(
                ActivityStatus, raw.get("activity_status"), ActivityStatus.NO_ACTIVITY
            ),
            last_activity_date=parse_datetime(raw.get("last_activity_date")),
            interactions_last_30_days=_int(raw.get("interactions_last_30_days")),
            opportunities_last_30_days=_int(raw.get("opportunities_last_30_days")),
            follow_ups_required=_int(raw.get("follow_ups_required")),
            country=_str_or_none(raw.get("country")),
            primary_product_category=_str_or_none(raw.get("primary_product_category")),
            industry=_str_or_none(raw.get("industry")),
            metadata=metadata,
        )


# =====================================================================
# DERIVED VIEWS
# =====================================================================


@dataclass
class GroupSummary:
    """Per-category counts for one timeline bucket."""

    interactions: int = 0
    opportunities: int = 0
    contacts: int = 0
    products: int = 0

    def count(self, activity_type: ActivityType) -> None:
        if activity_type == ActivityType.INTERACTION:
            self.interactions += 1
        elif activity_type == ActivityType.OPPORTUNITY_CREATED:
            self.opportunities += 1
        elif activity_type == ActivityType.CONTACT_UPDATE:
            self.contacts += 1
        elif activity_type == ActivityType.PRODUCT_ASSOCIATION:
            self.products += 1


@dataclass
class TimelineGroup:
    """Entries sharing one calendar day. Rebuilt on every pipeline run."""

    group_id: str
    label: str
    date: date
    entries: list[ActivityRecord] = field(default_factory=list)
    summary: GroupSummary = field(default_factory=GroupSummary)

    @property
    def count(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict:
        return {
            "group_id": self.group_id,
            "label": self.label,
            "date": self.date.isoformat(),
            "count": self.count,
            "summary": asdict(self.summary),
            "entries": [e.to_dict() for e in self.entries],
        }
