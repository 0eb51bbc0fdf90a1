# oss_booking/api/schemas/validators.py

import re

from oss_booking.domain.passes import is_valid_pass_id

INDIAN_PHONE_PATTERN = re.compile(r"\+91\d{10}")
NON_DIGITS = re.compile(r"\D")
UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)


def normalize_phone(value: str) -> str:
    """
    Normalize Indian mobile numbers to +91XXXXXXXXXX.
    Accepts bare 10-digit numbers and 12-digit numbers carrying the 91 prefix.
    """
    digits = NON_DIGITS.sub("", value or "")
    if len(digits) == 12 and digits.startswith("91"):
        normalized = f"+{digits}"
    elif len(digits) == 10:
        normalized = f"+91{digits}"
    else:
        normalized = value

    if not INDIAN_PHONE_PATTERN.fullmatch(normalized or ""):
        raise ValueError("Invalid phone number")
    return normalized


def ensure_uuid(value: str, field_name: str) -> str:
    # Hyphenated form only; braced, urn and bare-hex spellings are rejected.
    if not isinstance(value, str) or not UUID_PATTERN.fullmatch(value):
        raise ValueError(f"Invalid {field_name} format")
    return value.lower()


def ensure_pass_id(value: str) -> str:
    if not is_valid_pass_id(value):
        raise ValueError("Invalid pass ID format")
    return value
