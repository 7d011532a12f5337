"""MSISDN normalization. All stored and looked-up phone numbers go through here."""

import re
from typing import Optional

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: Optional[str], country_code: str = "254") -> Optional[str]:
    """
    Return the international digits-only form of a local MSISDN, or None when the
    number cannot be interpreted.

    Accepted: 2547XXXXXXXX, +254 7XX XXX XXX, 07XXXXXXXX, 7XXXXXXXX.
    """
    if not raw:
        return None
    digits = _NON_DIGITS.sub("", raw)
    if digits.startswith(country_code) and len(digits) == len(country_code) + 9:
        return digits
    if len(digits) == 10 and digits.startswith("0"):
        return f"{country_code}{digits[1:]}"
    if len(digits) == 9:
        return f"{country_code}{digits}"
    return None


def normalize_phone_for_storage(raw: Optional[str], country_code: str = "254") -> Optional[str]:
    """Normalized form when possible, otherwise the trimmed input (kept for staff to correct)."""
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return normalize_phone(raw, country_code) or raw
