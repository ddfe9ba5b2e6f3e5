"""Shared validation utilities"""

import re
from datetime import datetime
from typing import Optional

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

SERVICE_LOCATION_ALIASES = {
    "instore": "inStore",
    "clientlocation": "clientLocation",
}


def format_phone_number(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to E.164 for the SMS provider.

    Numbers written with a leading "+" keep their country code, 10-digit
    numbers are treated as US/Canada, 11+ digits get a "+" prefix.

    Returns:
        The E.164 number, or None when the format can't be determined
    """
    if not phone:
        return None

    digits = re.sub(r"\D", "", phone)
    if not digits:
        return None

    if phone.strip().startswith("+"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) >= 11:
        return f"+{digits}"
    return None


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """Pydantic-friendly wrapper around format_phone_number that raises on bad input"""
    if not phone:
        return phone
    formatted = format_phone_number(phone)
    if not formatted:
        raise ValueError("Invalid phone number format")
    return formatted


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_time(value: Optional[str]) -> Optional[str]:
    """Validate a 24-hour HH:MM time string"""
    if value is None:
        return value
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM format")
    return value


def validate_date(value: Optional[str]) -> Optional[str]:
    """Validate a YYYY-MM-DD date string"""
    if value is None:
        return value
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError as e:
        raise ValueError("Date must be in YYYY-MM-DD format") from e
    return value


def normalize_service_locations(locations: list) -> list:
    """Map lower-cased location keys to their canonical camelCase form"""
    normalized = []
    for location in locations:
        if isinstance(location, str):
            normalized.append(SERVICE_LOCATION_ALIASES.get(location.lower(), location))
        else:
            normalized.append(location)
    return normalized


def format_other_choice(choice: str, other_value: Optional[str]) -> str:
    """Onboarding answers store free text as "other: <text>" when "other" is picked"""
    if choice == "other" and other_value:
        return f"other: {other_value}"
    return choice
