"""Shared validation utilities"""

import re
from typing import Optional

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
HEX_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")
REPORT_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase, stripped email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")
    return email


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to E.164-ish form (+ and digits).
    Accepts international numbers between 7 and 15 digits.
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)
    if len(digits) < 7 or len(digits) > 15:
        raise ValueError("Phone number must have between 7 and 15 digits")
    # Bare 10 digit numbers are assumed to be US
    if len(digits) == 10 and not phone.strip().startswith("+"):
        digits = "1" + digits
    return f"+{digits}"


def validate_choice(value: Optional[str], choices: tuple, field: str) -> Optional[str]:
    """Enum membership check that reports the allowed values"""
    if value is None:
        return value
    if value not in choices:
        raise ValueError(f"Invalid {field}. Must be one of: {', '.join(choices)}")
    return value


def validate_slug(slug: str) -> str:
    slug = slug.strip().lower()
    if not SLUG_PATTERN.match(slug):
        raise ValueError("Slug may only contain lowercase letters, numbers and single hyphens")
    return slug


def slugify(text: str) -> str:
    """Turn a title into a URL slug"""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "item"


def validate_hhmm(value: Optional[str]) -> Optional[str]:
    """Validate a 24h HH:MM time string"""
    if value is None or value == "":
        return None
    if not HHMM_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM format")
    return value


def validate_hex_color(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not HEX_COLOR_PATTERN.match(value):
        raise ValueError("Color must be a hex value like #1a2b3c")
    return value.lower()


def validate_report_month(value: str) -> str:
    if not REPORT_MONTH_PATTERN.match(value):
        raise ValueError("Report month must be in YYYY-MM format")
    return value


def validate_percentage(value: Optional[int]) -> Optional[int]:
    if value is None:
        return value
    if value < 0 or value > 100:
        raise ValueError("Percentage must be between 0 and 100")
    return value


def validate_coordinates(value: Optional[dict]) -> Optional[dict]:
    """Validate a {"lat", "lng"} location"""
    if value is None:
        return value
    try:
        lat = float(value["lat"])
        lng = float(value["lng"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError("Location must contain numeric lat and lng") from e
    if not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise ValueError("Location coordinates out of range")
    return {"lat": lat, "lng": lng}
