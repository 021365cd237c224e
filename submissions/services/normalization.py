"""
Normalization service for intake contact data.
"""
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

NON_DIGITS = re.compile(r'\D')


def normalize_value(value: Any) -> Any:
    """
    Normalize a single value.

    - Strings: trim whitespace
    - Everything else passes through unchanged
    """
    if isinstance(value, str):
        return value.strip()
    return value


def normalize_dict(data: dict) -> dict:
    """
    Recursively trim all string values in a dictionary.
    """
    result = {}
    for key, value in data.items():
        if isinstance(value, dict):
            result[key] = normalize_dict(value)
        elif isinstance(value, list):
            result[key] = [normalize_value(item) if not isinstance(item, dict)
                           else normalize_dict(item) for item in value]
        else:
            result[key] = normalize_value(value)
    return result


def normalize_email(email: Optional[str]) -> str:
    """Trim and lower-case an email address. Missing values become ''."""
    if not email:
        return ''
    return email.strip().lower()


def normalize_phone(phone: Optional[str]) -> str:
    """Reduce a phone number to its digits. Missing values become ''."""
    if not phone:
        return ''
    return NON_DIGITS.sub('', phone)


def normalize_contact(contact: dict) -> dict:
    """
    Normalizes contact fields before they are stored.

    Operations:
    - Trim whitespace from names and phone
    - Lowercase and trim the email address
    - Empty phone becomes None

    The phone keeps its original formatting; only the idempotency key uses
    the digits-only form.

    Args:
        contact: Dictionary with first_name, last_name, email, phone

    Returns:
        Normalized copy of the contact fields
    """
    phone = normalize_value(contact.get('phone'))
    normalized = {
        'first_name': normalize_value(contact.get('first_name') or ''),
        'last_name': normalize_value(contact.get('last_name') or ''),
        'email': normalize_email(contact.get('email')),
        'phone': phone or None,
    }
    logger.debug(f"Normalized contact for {normalized['email']}")
    return normalized
