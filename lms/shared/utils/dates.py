"""Timezone helpers for local-day bucketing and date-range query params."""

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from lms.exceptions import ValidationError


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def to_local(value: datetime, tz: ZoneInfo) -> datetime:
    """Convert a stored timestamp to the configured local timezone."""
    return ensure_aware(value).astimezone(tz)


def local_date(value: datetime, tz: ZoneInfo) -> date:
    """Calendar day of ``value`` in ``tz``."""
    return to_local(value, tz).date()


def local_today(tz: ZoneInfo) -> date:
    return datetime.now(tz).date()


def local_day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC start (inclusive) and end (exclusive) of a local calendar day."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def _parse_param(name: str, raw: str, tz: ZoneInfo, *, end_of_day: bool) -> datetime:
    try:
        if "T" not in raw and " " not in raw:
            day = date.fromisoformat(raw)
            start, end = local_day_bounds(day, tz)
            # Queries compare inclusively, so stop just short of the next midnight
            return end - timedelta(microseconds=1) if end_of_day else start
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as e:
        msg = f"Invalid {name}: {raw!r} is not an ISO date or datetime"
        raise ValidationError(msg) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(UTC)


def parse_date_range(
    start_date: str | None,
    end_date: str | None,
    tz: ZoneInfo,
    default_days: int,
) -> tuple[datetime, datetime]:
    """Resolve ``startDate``/``endDate`` query params to a UTC range.

    A bare date as ``end_date`` covers that whole local day. Missing bounds
    default to the last ``default_days`` days ending now.

    Raises
    ------
    ValidationError
        If a value is not ISO formatted.
    """
    end = _parse_param("endDate", end_date, tz, end_of_day=True) if end_date else datetime.now(UTC)
    if start_date:
        start = _parse_param("startDate", start_date, tz, end_of_day=False)
    else:
        start = end - timedelta(days=default_days)
    return start, end
