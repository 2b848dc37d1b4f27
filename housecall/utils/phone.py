# housecall/utils/phone.py
"""
Phone prefill for returning clients.

Numbers on file are stored in E.164 (+12075551234); the request form wants
the local form without the country code.
"""
import logging
from typing import Optional

import phonenumbers

logger = logging.getLogger(__name__)

DEFAULT_REGION = "US"


def prefill_phone(raw: Optional[str], region: str = DEFAULT_REGION) -> Optional[str]:
    if not raw or not raw.strip():
        return None
    raw = raw.strip()

    try:
        parsed = phonenumbers.parse(raw, region)
    except phonenumbers.NumberParseException as e:
        logger.debug("[phone] could not parse on-file number %r: %s", raw, e)
        return raw[2:].strip() if raw.startswith("+1") else raw

    if parsed.country_code == 1 and phonenumbers.is_possible_number(parsed):
        digits = str(parsed.national_number)
        if len(digits) == 10:
            return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"

    if phonenumbers.is_possible_number(parsed):
        return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.INTERNATIONAL)
    return raw
