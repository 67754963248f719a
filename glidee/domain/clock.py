"""Single source of "now" for lifecycle stamps and "today" filters."""

import re
from datetime import date, datetime, timezone

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today() -> str:
    """Today's calendar date (UTC) as ``YYYY-MM-DD``."""
    return utcnow().date().isoformat()


def is_iso_date(value: str) -> bool:
    """True for a real calendar date written exactly as ``YYYY-MM-DD``."""
    if not re.match(DATE_PATTERN, value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True
