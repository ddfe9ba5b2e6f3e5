"""Date and time rendering for customer-facing messages"""

from datetime import datetime


def _parse_date(date_str: str) -> datetime:
    return datetime.strptime(date_str[:10], "%Y-%m-%d")


def format_long_date(date_str: str) -> str:
    """2024-01-01 -> Monday, January 1, 2024"""
    try:
        d = _parse_date(date_str)
    except (TypeError, ValueError):
        return date_str or ""
    return f"{d.strftime('%A, %B')} {d.day}, {d.year}"


def format_short_date(date_str: str) -> str:
    """2024-01-01 -> Monday, Jan 1"""
    try:
        d = _parse_date(date_str)
    except (TypeError, ValueError):
        return date_str or ""
    return f"{d.strftime('%A, %b')} {d.day}"


def format_time_12h(time_str: str) -> str:
    """14:30 -> 2:30 PM"""
    try:
        hour, minute = time_str.split(":")[:2]
        hour_num = int(hour)
    except (AttributeError, ValueError):
        return time_str or ""
    ampm = "PM" if hour_num >= 12 else "AM"
    return f"{hour_num % 12 or 12}:{minute} {ampm}"
