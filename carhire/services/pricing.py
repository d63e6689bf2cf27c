"""Date normalization, rental length, pricing and booking references."""

from datetime import date, datetime, time, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from carhire.services.errors import InvalidInput

CENTS = Decimal("0.01")


def resolve_timezone(name: str) -> Optional[tzinfo]:
    """Resolve a configured IANA zone name. Empty means system local time."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


def parse_calendar_date(value: str, field: str) -> date:
    """Parse a YYYY-MM-DD string. A full ISO datetime is cut to its date."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{field} is required", f"Please choose a {field.replace('_', ' ')}.")

    text = value.strip()
    try:
        if len(text) > 10:
            return datetime.fromisoformat(text).date()
        return date.fromisoformat(text)
    except ValueError as e:
        raise InvalidInput(
            f"{field} is not a valid date: {value!r}",
            f"Invalid {field.replace('_', ' ')}. Use the format YYYY-MM-DD.",
        ) from e


def local_midnight(day: date, tz: Optional[tzinfo] = None) -> datetime:
    """Absolute instant of midnight at the start of a calendar day."""
    if tz is None:
        return datetime.combine(day, time.min).astimezone()
    return datetime.combine(day, time.min, tzinfo=tz)


def rental_days(start: date, end: date) -> int:
    """Calendar days between start and end, at least 1.

    Counted on dates rather than instants so a DST change inside the range
    never adds or drops a day.
    """
    return max(1, (end - start).days)


def total_price(price_per_day: Decimal, days: int) -> Decimal:
    """Price for the rental, rounded to cents."""
    return (Decimal(price_per_day) * days).quantize(CENTS, rounding=ROUND_HALF_UP)


def reference_day_prefix(prefix: str, now: datetime) -> str:
    """Reference prefix for a UTC day, e.g. GZT-20240301-."""
    return f"{prefix}-{now.strftime('%Y%m%d')}-"


def format_reference(day_prefix: str, sequence: int) -> str:
    """Append the zero-padded daily sequence number."""
    return f"{day_prefix}{sequence:04d}"
