"""
Helper Functions for DisTrack
Duration parsing, id formatting and other small utilities
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from distrack.config import MAX_TIMEOUT

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

_DURATION_UNITS = {
    's': SECOND_MS,
    'm': MINUTE_MS,
    'h': HOUR_MS,
    'd': DAY_MS,
}

_EXTENDED_UNITS = {
    **_DURATION_UNITS,
    'M': 30 * DAY_MS,
    'y': 365 * DAY_MS,
}

_DURATION_RE = re.compile(r'^(\d+)([smhd])$')
_EXTENDED_DURATION_RE = re.compile(r'^(\d+)([smhdMy])$')
_SNOWFLAKE_RE = re.compile(r'^\d{17,19}$')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_duration(duration_str: str) -> Optional[int]:
    """Parse ``10m`` / ``1h`` / ``2d`` style strings into milliseconds.

    Returns None when the string does not match the grammar.
    """
    match = _DURATION_RE.match(duration_str.strip())
    if not match:
        return None
    return int(match.group(1)) * _DURATION_UNITS[match.group(2)]


def parse_extended_duration(duration_str: str) -> Optional[int]:
    """Like parse_duration, but also accepts ``M`` (30-day months) and ``y`` (365-day years)."""
    match = _EXTENDED_DURATION_RE.match(duration_str.strip())
    if not match:
        return None
    return int(match.group(1)) * _EXTENDED_UNITS[match.group(2)]


def is_valid_timeout_duration(ms: int) -> bool:
    return 0 < ms <= int(MAX_TIMEOUT.total_seconds() * 1000)


def format_duration(ms: float) -> str:
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h {minutes % 60}m"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def format_uptime(delta: timedelta) -> str:
    return format_duration(delta.total_seconds() * 1000)


def format_timestamp(dt: datetime, style: str = 'f') -> str:
    return f"<t:{int(dt.timestamp())}:{style}>"


def generate_ticket_id(counter: int) -> str:
    return f"ticket-{counter:04d}"


def generate_warning_id(counter: int) -> str:
    return f"warn-{counter:04d}"


def is_snowflake(value: str) -> bool:
    return bool(_SNOWFLAKE_RE.match(value))


def truncate_string(text: str, max_length: int = 100, suffix: str = "...") -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
