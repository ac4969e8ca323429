"""Timestamp normalization into the reference timezone.

All zone math lives here. Callers hand in whatever they have (an offset-less
local string from a form, an ISO instant from the API, a naive datetime read
back from SQLite, an aware one from PostgreSQL) and always get back an aware
datetime in the reference zone.
"""

from __future__ import annotations

import re
from datetime import datetime, tzinfo

_LOCAL_INPUT_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}$")


def normalize_timestamp(value: str | datetime | None, tz: tzinfo) -> datetime | None:
    """Return *value* as an offset-bearing instant in *tz*, or None when absent.

    - None or a blank string -> None
    - naive datetime, or a string without offset -> wall-clock time in *tz*
    - aware datetime, or a string with ``Z`` / ``+HH:MM`` -> converted to *tz*

    Raises ValueError for strings that are not ISO-8601 timestamps.
    """
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text[-1] in "zZ":
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}") from None
    elif not isinstance(value, datetime):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def parse_or_none(value: str | datetime | None, tz: tzinfo) -> datetime | None:
    """Like normalize_timestamp, but an unparseable value counts as absent."""
    try:
        return normalize_timestamp(value, tz)
    except ValueError:
        return None


def now(tz: tzinfo) -> datetime:
    """Current instant in *tz*."""
    return datetime.now(tz)


def to_local_input(value: str | datetime | None, tz: tzinfo) -> str:
    """Render for a datetime-local form field (``YYYY-MM-DDTHH:MM``); '' when absent."""
    dt = parse_or_none(value, tz)
    if dt is None:
        return ""
    return dt.strftime("%Y-%m-%dT%H:%M")


def from_local_input(text: str | None, tz: tzinfo) -> datetime | None:
    """Parse a datetime-local field value as wall-clock time in *tz*.

    Anything that is not in the field's ``YYYY-MM-DDTHH:MM`` shape is passed
    through normalize_timestamp unchanged, so full ISO strings still work.
    """
    if text is None or not text.strip():
        return None
    text = text.strip()
    if _LOCAL_INPUT_RE.match(text):
        return datetime.strptime(text, "%Y-%m-%dT%H:%M").replace(tzinfo=tz)
    return normalize_timestamp(text, tz)


def format_display(
    value: str | datetime | None,
    tz: tzinfo,
    fallback: str = "N/A",
    with_time: bool = True,
) -> str:
    """Human-readable date for tables and cards, e.g. '30 Nov 2025, 3:00 pm'."""
    dt = parse_or_none(value, tz)
    if dt is None:
        return fallback
    day = f"{dt.day} {dt.strftime('%b %Y')}"
    if not with_time:
        return day
    hour = dt.hour % 12 or 12
    suffix = "am" if dt.hour < 12 else "pm"
    return f"{day}, {hour}:{dt.minute:02d} {suffix}"
