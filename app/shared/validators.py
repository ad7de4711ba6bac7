"""Shared validation utilities"""

import re
from typing import Optional


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a phone number.

    Accepts national numbers (7 to 10 digits) and international numbers
    with a leading +. Spaces, dashes, dots and parentheses are removed.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    phone = phone.strip()
    has_plus = phone.startswith("+")
    digits = re.sub(r"\D", "", phone)

    if has_plus:
        if not 8 <= len(digits) <= 15:
            raise ValueError("International phone numbers must have 8 to 15 digits")
        return f"+{digits}"

    if not 7 <= len(digits) <= 10:
        raise ValueError("Phone number must have 7 to 10 digits")
    return digits


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

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


def validate_percentage(value: Optional[float], field: str = "percentage") -> Optional[float]:
    """Percentages are stored as 0..100"""
    if value is None:
        return value
    if value < 0 or value > 100:
        raise ValueError(f"{field} must be between 0 and 100")
    return value
