"""Date helpers pinned to Pakistan Standard Time (UTC+5).

Servers usually run in UTC, so "today" is always computed in PKT to keep
month boundaries aligned with what users see.
"""

from datetime import date, datetime, timedelta, timezone
from typing import List, Tuple

PKT = timezone(timedelta(hours=5))


def now_pkt() -> datetime:
    return datetime.now(PKT)


def today_pkt() -> str:
    return now_pkt().date().isoformat()


def first_of_month_pkt() -> str:
    return now_pkt().date().replace(day=1).isoformat()


def days_ago_pkt(days: int) -> str:
    return (now_pkt().date() - timedelta(days=days)).isoformat()


def months_back_pkt(months: int) -> str:
    """First day of the month ``months`` before the current PKT month."""
    today = now_pkt().date()
    year, month = today.year, today.month - months
    while month <= 0:
        month += 12
        year -= 1
    return date(year, month, 1).isoformat()


def month_keys(months: int) -> List[Tuple[str, str]]:
    """(YYYY-MM, 'Mon YYYY') pairs for the last ``months`` months, oldest first."""
    keys = []
    for offset in range(months - 1, -1, -1):
        first = date.fromisoformat(months_back_pkt(offset))
        keys.append((first.strftime("%Y-%m"), first.strftime("%b %Y")))
    return keys


def to_iso_date(value) -> str:
    """Render a DATE/TIMESTAMP column value (or string) as YYYY-MM-DD."""
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()[:10]
    return str(value)[:10]
