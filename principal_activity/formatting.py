"""
Display formatting for dates and numbers.

Dates are rendered in UTC with fixed English month and weekday names so output
does not depend on the process locale.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from principal_activity.models import parse_datetime

_DAY = 24 * 60 * 60


@dataclass
class TimeDifference:
    value: int
    unit: str
    label: str


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}{'s' if value != 1 else ''} ago"


def format_activity_date(value, style: str = "short", now: datetime | None = None) -> str:
    """
    Render an activity timestamp.

    Styles:
        short: 2024-01-15
        long: Monday, January 15, 2024
        relative: Today, Yesterday, 3 days ago, 2 weeks ago, 4 months ago, 1 years ago
    """
    moment = parse_datetime(value)
    if moment is None:
        return ""
    moment = moment.astimezone(UTC)

    if style == "long":
        return f"{moment:%A}, {moment:%B} {moment.day}, {moment.year}"

    if style == "relative":
        now = (now or datetime.now(UTC)).astimezone(UTC)
        days = int((now - moment).total_seconds() // _DAY)
        if days <= 0:
            return "Today"
        if days == 1:
            return "Yesterday"
        if days < 7:
            return f"{days} days ago"
        if days < 30:
            return f"{days // 7} weeks ago"
        if days < 365:
            return f"{days // 30} months ago"
        return f"{days // 365} years ago"

    return moment.date().isoformat()


def time_difference(value, now: datetime | None = None) -> TimeDifference | None:
    """Largest whole unit between value and now, in either direction."""
    moment = parse_datetime(value)
    if moment is None:
        return None
    now = now or datetime.now(UTC)
    seconds = abs((now - moment).total_seconds())

    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // _DAY)
    months = int(seconds // (_DAY * 30))

    if months > 0:
        return TimeDifference(months, "months", _plural(months, "month"))
    if days > 0:
        return TimeDifference(days, "days", _plural(days, "day"))
    if hours > 0:
        return TimeDifference(hours, "hours", _plural(hours, "hour"))
    return TimeDifference(minutes, "minutes", _plural(minutes, "minute"))


def format_number(value: float) -> str:
    """Compact number: 950, 1.2K, 3.4M."""
    if abs(value) >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if abs(value) >= 1_000:
        return f"{value / 1_000:.1f}K"
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}"


def format_percentage(value: float, decimals: int = 1) -> str:
    return f"{value:.{decimals}f}%"
