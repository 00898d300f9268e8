import math
from datetime import datetime, timezone

_UNITS = (
    ("d", 24 * 60 * 60 * 1000),
    ("h", 60 * 60 * 1000),
    ("m", 60 * 1000),
    ("s", 1000),
)


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _to_datetime(value) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def format_date(value) -> str:
    """Jan 15, 2023"""
    dt = _to_datetime(value)
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}"


def format_date_time(value) -> str:
    """Jan 15, 2023, 10:30 AM"""
    dt = _to_datetime(value)
    hour = dt.hour % 12 or 12
    meridiem = "AM" if dt.hour < 12 else "PM"
    return f"{format_date(dt)}, {hour}:{dt.minute:02d} {meridiem}"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def relative_time(value, now: datetime = None) -> str:
    """
    Human relative time such as "2 days ago" or "in 3 hours".
    Anything more than 30 days in the past is shown as a date.
    """
    dt = _to_datetime(value)
    now = now or utcnow()
    diff_secs = _round_half_up((dt - now).total_seconds())
    diff_mins = _round_half_up(diff_secs / 60)
    diff_hours = _round_half_up(diff_mins / 60)
    diff_days = _round_half_up(diff_hours / 24)

    if diff_days < -30:
        return format_date(dt)
    if diff_days <= -1:
        return f"{_plural(abs(diff_days), 'day')} ago"
    if diff_hours <= -1:
        return f"{_plural(abs(diff_hours), 'hour')} ago"
    if diff_mins <= -1:
        return f"{_plural(abs(diff_mins), 'minute')} ago"
    if diff_secs < 0:
        return f"{_plural(abs(diff_secs), 'second')} ago"
    if diff_days >= 1:
        return f"in {_plural(diff_days, 'day')}"
    if diff_hours >= 1:
        return f"in {_plural(diff_hours, 'hour')}"
    if diff_mins >= 1:
        return f"in {_plural(diff_mins, 'minute')}"
    return f"in {_plural(diff_secs, 'second')}"


def format_duration(duration_ms: int) -> str:
    """
    Format a duration in milliseconds as e.g. "1h 0m 30s".

    Units run from the largest non-zero one down to the smallest non-zero one;
    zero units in between are kept, trailing zero units are dropped.
    """
    if duration_ms <= 0:
        return "0s"
    remaining = int(duration_ms)
    values = []
    for suffix, size in _UNITS:
        values.append((suffix, remaining // size))
        remaining %= size
    nonzero = [i for i, (_, amount) in enumerate(values) if amount > 0]
    if not nonzero:
        return "0s"
    return " ".join(f"{amount}{suffix}" for suffix, amount in values[nonzero[0]:nonzero[-1] + 1])
