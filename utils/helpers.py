"""
Helper Functions Module
Time and formatting helpers for the GeoTime service
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from errors import InvalidTimezoneError


def utcnow_iso():
    """
    Get current UTC time in ISO format

    Returns:
        String: ISO-formatted UTC timestamp

    Example:
        >>> utcnow_iso()
        '2026-02-10T12:30:45.123456+00:00'
    """
    return datetime.now(timezone.utc).isoformat()


def get_zone(timezone_name):
    """
    Resolve an IANA timezone identifier

    Raises:
        InvalidTimezoneError: If the identifier is not known
    """
    if not timezone_name or not isinstance(timezone_name, str):
        raise InvalidTimezoneError(timezone_name)
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise InvalidTimezoneError(timezone_name) from e


def format_timezone(timezone_name, now=None):
    """
    Format the current instant in the given timezone

    The clock is sampled once, so every field comes from the same instant.

    Args:
        timezone_name: IANA timezone identifier (e.g. 'America/Los_Angeles')
        now: Aware datetime to render instead of the wall clock

    Returns:
        Formatted date string

    Raises:
        InvalidTimezoneError: If the timezone is not recognised

    Example:
        >>> format_timezone('America/Los_Angeles')
        'Wednesday, February 10, 2026 at 04:30:00'
    """
    zone = get_zone(timezone_name)
    instant = now if now is not None else datetime.now(timezone.utc)
    local = instant.astimezone(zone)
    return f"{local:%A, %B} {local.day}, {local:%Y} at {local:%H:%M:%S}"


def format_duration_ms(seconds):
    """
    Format a duration in seconds as whole milliseconds

    Example:
        >>> format_duration_ms(0.2534)
        '253ms'
    """
    try:
        return f"{int(round(float(seconds) * 1000))}ms"
    except (ValueError, TypeError):
        return None
