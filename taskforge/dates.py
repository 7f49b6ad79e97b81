from datetime import date, datetime, time, timedelta, timezone


def to_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime_input(raw: str) -> datetime:
    """
    Parse `yyyy-mm-dd` (midnight UTC) or a full ISO-8601 datetime.

    Raises ValueError when the input is neither.
    """
    text = raw.strip()
    if not text:
        raise ValueError("empty date")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_utc(datetime.fromisoformat(text))
    except ValueError:
        return start_of_day(date.fromisoformat(text))


def start_of_day(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        value = to_utc(value).date()
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def add_days(value: datetime, days: int) -> datetime:
    return value + timedelta(days=days)
