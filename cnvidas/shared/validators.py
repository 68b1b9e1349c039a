"""Shared validation utilities"""

import re
from datetime import datetime, timezone
from typing import Optional


def validate_cpf(cpf: Optional[str]) -> Optional[str]:
    """
    Validate a Brazilian CPF and normalize it to 11 digits.

    Args:
        cpf: CPF in any punctuation format (e.g. 123.456.789-09)

    Returns:
        The 11 CPF digits

    Raises:
        ValueError: If the CPF is malformed or its check digits are wrong
    """
    if not cpf:
        return cpf

    digits = re.sub(r"\D", "", cpf)
    if len(digits) != 11 or digits == digits[0] * 11:
        raise ValueError("Invalid CPF")

    for position in (9, 10):
        total = sum(int(digits[i]) * (position + 1 - i) for i in range(position))
        check = (total * 10) % 11 % 10
        if check != int(digits[position]):
            raise ValueError("Invalid CPF")

    return digits


def validate_br_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a Brazilian phone number to E.164 format.

    Accepts 10 (landline) or 11 (mobile) digits with area code, with or
    without the +55 country code.
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)
    if digits.startswith("55") and len(digits) in (12, 13):
        digits = digits[2:]

    if len(digits) not in (10, 11):
        raise ValueError("Phone number must include area code (10 or 11 digits)")

    return f"+55{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """Validate email format and return it lowercased"""
    if not email:
        return email

    email = email.strip().lower()
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_hhmm(value: str) -> str:
    """Validate a 24h HH:MM time string"""
    if not re.match(r"^([01]\d|2[0-3]):[0-5]\d$", value or ""):
        raise ValueError("Time must be in HH:MM format")
    return value


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored datetimes are naive UTC; convert aware values before comparing"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
