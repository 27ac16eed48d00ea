"""Reminder time helpers — pure functions, no I/O.

Reminder times are compared as zero-padded 24-hour "HH:MM" strings in the
chat's own timezone, so a chat fires on exactly one minute per day.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def is_valid_reminder_time(value: str) -> bool:
    """True iff value is a zero-padded HH:MM with 00<=HH<=23, 00<=MM<=59."""
    return bool(_HHMM_RE.match(value or ""))


def normalize_reminder_time(text: str) -> str:
    """Parse user input like '9:05' or '09:05' into canonical 'HH:MM'.

    Raises ValueError on malformed or out-of-range input.
    """
    parts = text.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Not an HH:MM time: {text!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if len(parts[1]) != 2 or not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Hour/minute out of range: {text!r}")
    return f"{hour:02d}:{minute:02d}"


def resolve_timezone(name: str) -> ZoneInfo | None:
    """Return the ZoneInfo for an IANA name, or None if it can't be resolved."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def is_valid_timezone(name: str) -> bool:
    return resolve_timezone(name) is not None


def format_hhmm(now: datetime, zone: ZoneInfo) -> str:
    """Format an aware datetime as HH:MM in the given zone."""
    return now.astimezone(zone).strftime("%H:%M")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_reminder_due(
    reminder_time: str,
    timezone_name: str,
    default_zone: ZoneInfo,
    now: datetime,
) -> bool:
    """Check whether `now`, seen in the chat's timezone, is its reminder minute.

    An unresolvable timezone falls back to the default zone instead of
    failing; there is no catch-up for minutes the process did not observe.
    """
    zone = resolve_timezone(timezone_name)
    if zone is None:
        logger.warning(
            "Invalid timezone %r, using default %s", timezone_name, default_zone.key,
        )
        zone = default_zone
    return format_hhmm(now, zone) == reminder_time
