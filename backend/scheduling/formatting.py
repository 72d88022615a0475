"""
Display helpers for minutes and sequence end times.
"""

from datetime import datetime, timedelta


def format_minutes(minutes: float) -> str:
    """
    Render a duration, e.g. '45.0 min', '120.0 min (2 hours)', '90.0 min (1h 30.0m)'.
    """
    rounded = round(float(minutes or 0), 1)
    if rounded >= 60:
        hours = int(rounded // 60)
        remaining = round(rounded % 60, 1)
        if remaining == 0:
            return f"{rounded:.1f} min ({hours} hour{'s' if hours > 1 else ''})"
        return f"{rounded:.1f} min ({hours}h {remaining:.1f}m)"
    return f"{rounded:.1f} min"


def format_clock(value: datetime) -> str:
    """12-hour wall clock, e.g. '9:05 AM'."""
    hour = value.hour % 12 or 12
    suffix = 'PM' if value.hour >= 12 else 'AM'
    return f"{hour}:{value.minute:02d} {suffix}"


def describe_end_time(start: datetime, minutes: float) -> str:
    """
    End time of a run that starts at `start` and lasts `minutes`.

    Same-day ends show the clock only; the following day adds '(next day)';
    anything later adds the date, e.g. '3:00 PM (Mar 07)'.
    """
    end = start + timedelta(minutes=minutes or 0)
    if end.date() == start.date():
        return format_clock(end)
    if (end.date() - start.date()).days == 1:
        return f"{format_clock(end)} (next day)"
    return f"{format_clock(end)} ({end.strftime('%b %d')})"
