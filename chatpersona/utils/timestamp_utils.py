"""
Timestamp utilities for consistent time handling across the system.
"""

from datetime import datetime, timezone
from typing import Optional

CHAT_TIMESTAMP_FORMATS = ('%d/%m/%Y, %H:%M:%S', '%d/%m/%Y, %H:%M', '%d/%m/%y, %H:%M')


def to_iso_str(moment: Optional[datetime] = None) -> str:
    """Convert a datetime to the ISO string stored in the knowledge table.

    Args:
        moment: datetime to convert (optional, uses current UTC time if None)

    Returns:
        ISO-8601 timestamp with microsecond precision
    """
    if moment is None:
        moment = datetime.now(timezone.utc)
    return moment.isoformat(sep=' ', timespec='microseconds')


def from_iso_str(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp, returning None for missing or malformed values."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def normalize_chat_timestamp(date_part: str, time_part: str) -> str:
    """Join an export's date and time into the canonical 'DATE, HH:MM[:SS]' form.

    Some locales write the time with a dot separator (10.30); it is rewritten
    with a colon.

    Args:
        date_part: Date as written in the export, e.g. 01/01/24
        time_part: Time as written in the export, e.g. 10.30 or 10:30:15

    Returns:
        Normalized timestamp string
    """
    return f"{date_part}, {time_part.replace('.', ':')}"


def parse_chat_timestamp(timestamp: str) -> Optional[datetime]:
    """Parse a normalized chat timestamp into a datetime, or None if unrecognized."""
    for fmt in CHAT_TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(timestamp, fmt)
        except ValueError:
            continue
    return None
