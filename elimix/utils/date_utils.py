import re
from datetime import datetime, timezone
from elimix.utils.constants import SECONDS_PER_DAY

PROG = re.compile(r'^(\d+(?:\.\d+)?)([WwDdHhMmSs])$')
SECONDS_PER_UNIT = {
    'W': 7 * SECONDS_PER_DAY,  # weeks to seconds
    'D': SECONDS_PER_DAY,      # days to seconds
    'H': 60 * 60,              # hours to seconds
    'M': 60,                   # minutes to seconds
    'S': 1                     # seconds
}

def get_duration(duration_str):
    """
    Parse duration strings like '7D', '1W', '12H' etc. into a number of seconds

    Parameters:
    -----------
    duration_str : str
        String in format numberLetter where Letter is one of:
        W/w - weeks
        D/d - days
        H/h - hours
        M/m - minutes
        S/s - seconds

    Returns:
    --------
    duration : float
    """
    match = PROG.match(duration_str)
    if not match:
        raise ValueError(f"Invalid duration format: {duration_str}")
    number = float(match.group(1))
    unit = match.group(2).upper()
    return number * SECONDS_PER_UNIT[unit]


def as_days(duration):
    """durations are given either as a number of days or as a duration string"""
    if isinstance(duration, str):
        return get_duration(duration) / SECONDS_PER_DAY
    return float(duration)


def to_utc(played_at: datetime) -> datetime:
    """naive timestamps are taken to be UTC so they can be compared with aware ones"""
    if played_at.tzinfo is None:
        return played_at.replace(tzinfo=timezone.utc)
    return played_at.astimezone(timezone.utc)


def days_between(earlier: datetime, later: datetime) -> float:
    return (to_utc(later) - to_utc(earlier)).total_seconds() / SECONDS_PER_DAY
