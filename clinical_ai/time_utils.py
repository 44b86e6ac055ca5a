"""Date helpers shared by the prompt builders and audit logger."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union

DateLike = Union[date, datetime, str]


def parse_date(value: Optional[DateLike]) -> Optional[date]:
    """Coerce ``value`` (date, datetime or ISO string) to a ``date``."""

    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def calculate_age(date_of_birth: DateLike, today: Optional[date] = None) -> int:
    """Return the age in whole years on ``today``.

    The year difference is reduced by one while the birthday (month/day)
    has not yet been reached in the current year.
    """

    born = parse_date(date_of_birth)
    if born is None:
        raise ValueError(f"Invalid date of birth: {date_of_birth!r}")
    current = today or date.today()
    age = current.year - born.year
    month_diff = current.month - born.month
    if month_diff < 0 or (month_diff == 0 and current.day < born.day):
        age -= 1
    return age


__all__ = ["parse_date", "calculate_age"]
