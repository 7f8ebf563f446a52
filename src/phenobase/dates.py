"""
Date parameter parsing.

Search parameters accept either a plain date (``2017-06-15``) or an ISO
date-time with offset (``2017-06-15T00:00:00+0200``). Stored instants are
naive UTC, so aware values are converted to UTC before the offset is
dropped.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional
import re

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
# "+0200" -> "+02:00" so that fromisoformat accepts it on every interpreter
_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


def is_date_only(value: str) -> bool:
    return bool(_DATE_ONLY.match(value.strip()))


def parse_datetime(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a search date parameter into a naive UTC datetime.

    Args:
        value: Date or date-time text, or None
        end_of_day: For date-only values, return the last instant of the day
            instead of midnight (used for range upper bounds)

    Raises:
        ValueError: If the text is neither a date nor a date-time
    """
    if value is None:
        return None
    text = value.strip()
    if is_date_only(text):
        day = date.fromisoformat(text)
        return datetime.combine(day, time.max if end_of_day else time.min)

    text = _COMPACT_OFFSET.sub(r"\1:\2", text.replace("Z", "+00:00"))
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` parameter; date-times are truncated to their date."""
    if value is None:
        return None
    text = value.strip()
    if is_date_only(text):
        return date.fromisoformat(text)
    return parse_datetime(text).date()
