"""
Timestamp helpers.

Timestamps are stored as canonical UTC text (``2024-01-01T12:00:00Z``) so
that lexical ordering in SQLite equals chronological ordering. On read we
are lenient and accept the forms older stores and hand-written backups use.
"""
import logging
import re
from datetime import datetime, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

CANONICAL_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S %Z"

# Fractional seconds of any length; fromisoformat before 3.11 wants 3 or 6 digits
_FRACTION = re.compile(r"\.(\d+)")

# Accepted on read, besides RFC 3339 / ISO 8601 with a 'T' separator
_LEGACY_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)


def _six_digits(match) -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def now() -> datetime:
    """Current UTC time at second precision."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def to_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse a timestamp in any accepted textual form.

    Args:
        value: RFC 3339 string, ``YYYY-MM-DD HH:MM:SS``, ``YYYY-MM-DD``,
            a datetime, or None/empty

    Returns:
        Timezone-aware UTC datetime, or None for empty input

    Raises:
        ValueError: If the string matches none of the accepted forms
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)

    text = value.strip()
    if not text:
        return None

    if "T" in text:
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        text = _FRACTION.sub(_six_digits, text, count=1)
        try:
            return to_utc(datetime.fromisoformat(text))
        except ValueError:
            raise ValueError(f"unrecognized timestamp: {value!r}") from None

    for fmt in _LEGACY_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ValueError(f"unrecognized timestamp: {value!r}")


def parse_timestamp_lenient(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Like parse_timestamp, but unparseable values read as None."""
    try:
        return parse_timestamp(value)
    except ValueError:
        logger.warning(f"Ignoring unparseable timestamp {value!r}")
        return None


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Render a datetime in canonical storage form (None stays None)."""
    if dt is None:
        return None
    return to_utc(dt).strftime(CANONICAL_FORMAT)


def get_timezone(name: str) -> tzinfo:
    """Resolve an IANA zone name, falling back to UTC if it is unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r}, using UTC")
        return timezone.utc


def format_display(dt: Optional[datetime], tz: Union[str, tzinfo]) -> str:
    """
    Render a timestamp for humans in the given timezone.

    Args:
        dt: Timestamp to render; None renders as "-"
        tz: Zone name (e.g. "America/New_York") or tzinfo instance

    Returns:
        String like ``2024-01-01 07:00:00 EST``
    """
    if dt is None:
        return "-"
    if isinstance(tz, str):
        tz = get_timezone(tz)
    return to_utc(dt).astimezone(tz).strftime(DISPLAY_FORMAT)
