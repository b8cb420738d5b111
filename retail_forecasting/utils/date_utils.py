# retail_forecasting/utils/date_utils.py
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Tuple, Union

SECONDS_PER_DAY = 24 * 60 * 60

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December'
]

def today_utc() -> date:
    """Get the current calendar day in UTC."""
    return datetime.now(timezone.utc).date()

def to_utc_date(value: Union[date, datetime, str]) -> date:
    """Normalize a timestamp to its UTC calendar day.

    Aware datetimes are converted to UTC first; naive datetimes are
    taken to be UTC already.

    Args:
        value: Date, datetime or ISO-8601 string

    Returns:
        Calendar day
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value)

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()

    if isinstance(value, date):
        return value

    raise ValueError(f"Cannot convert {value!r} to a date")

def sunday_weekday(value: date) -> int:
    """Weekday number with 0=Sunday through 6=Saturday."""
    return (value.weekday() + 1) % 7

def days_between(start: Union[date, datetime], end: Union[date, datetime]) -> float:
    """Number of days from start to end.

    Whole days for dates, fractional days when both values carry a time.
    """
    if isinstance(start, datetime) and isinstance(end, datetime):
        return (end - start).total_seconds() / SECONDS_PER_DAY
    return float((to_utc_date(end) - to_utc_date(start)).days)

def forecast_dates(start: date, days_ahead: int) -> List[date]:
    """Dates of the forecast horizon, starting the day after start."""
    return [start + timedelta(days=i) for i in range(1, days_ahead + 1)]

def lookback_window(lookback_days: int, today: date = None) -> Tuple[datetime, datetime]:
    """Get the [start, end) datetime window covering the lookback period.

    The window runs from midnight of (today - lookback_days) up to the end
    of today, as naive UTC datetimes.

    Args:
        lookback_days: Number of days of history
        today: Reference day (defaults to today in UTC)

    Returns:
        Tuple with window start and exclusive window end
    """
    today = today or today_utc()
    start = datetime.combine(today - timedelta(days=lookback_days), time.min)
    end = datetime.combine(today + timedelta(days=1), time.min)
    return start, end

def month_name(month: int) -> str:
    """English name of a calendar month (1-12)."""
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    return MONTH_NAMES[month - 1]
