from __future__ import annotations

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat


def normalize_phone_number(raw: str, default_region: str | None = None) -> str:
    """Return ``raw`` as E.164 when it parses as a phone number, else trimmed."""

    candidate = raw.strip()
    if not candidate:
        return candidate

    try:
        parsed = phonenumbers.parse(candidate, default_region)
    except NumberParseException:
        return candidate
    if not phonenumbers.is_possible_number(parsed):
        return candidate
    return phonenumbers.format_number(parsed, PhoneNumberFormat.E164)
