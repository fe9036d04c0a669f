"""Shared validation utilities"""

import re
from typing import Optional


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a phone number to E.164-style digits.

    Accepts national or international formats; separators are dropped.

    Raises:
        ValueError: If the number has fewer than 7 or more than 15 digits
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)

    if not 7 <= len(digits) <= 15:
        raise ValueError("Phone number must have between 7 and 15 digits")

    return f"+{digits}" if phone.strip().startswith("+") else digits


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

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email
