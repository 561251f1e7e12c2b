"""
Timezone utility functions for the weekly predictor

Lockout instants are stored in UTC. Admin input without an explicit offset
is read in the competition's local timezone.
"""

from datetime import datetime, timezone

import pytz
from flask import current_app, has_app_context


def get_app_timezone():
    """Get the application's configured timezone"""
    timezone_name = "UTC"
    if has_app_context():
        timezone_name = current_app.config.get("TIMEZONE", "UTC")
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        # Fallback to UTC if timezone is invalid
        return pytz.UTC


def get_utc_time():
    """Get current time in UTC"""
    return datetime.now(timezone.utc)


def ensure_utc(dt):
    """Return ``dt`` as an aware UTC datetime; naive values are taken as UTC"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def convert_to_utc(dt):
    """Convert a datetime to UTC; naive values are read in the app timezone"""
    if dt is None:
        return None

    if dt.tzinfo is None:
        app_tz = get_app_timezone()
        dt = app_tz.localize(dt)

    return dt.astimezone(timezone.utc)


def parse_lockout(value):
    """Parse an ISO-8601 lockout string (a trailing 'Z' is accepted)"""
    if isinstance(value, datetime):
        return convert_to_utc(value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError("lockout time is required")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return convert_to_utc(datetime.fromisoformat(text))


def format_lockout(dt, format_str="%a %d %b %H:%M %Z"):
    """Format a lockout instant in the application's timezone"""
    if dt is None:
        return "TBD"

    return ensure_utc(dt).astimezone(get_app_timezone()).strftime(format_str)
