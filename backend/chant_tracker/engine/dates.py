"""
Calendar-day helpers. All dates are canonicalized to UTC.
"""
from datetime import date, datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utc_now().date()


def to_utc_date(value: date | datetime | str) -> date:
    """
    Reduce a date, datetime or ISO-8601 string to a UTC calendar day.
    Naive datetimes are taken to be UTC. Raises ValueError on anything else.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(timezone.utc).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        return to_utc_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
    raise ValueError(f"not a date: {value!r}")


def parse_timestamp(ts: str | datetime | None) -> datetime | None:
    if ts is None or isinstance(ts, datetime):
        return ts
    parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
