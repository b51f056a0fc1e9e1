"""Carrier gateway directory.

Maps a carrier identifier to the email domain that carrier forwards to a
handset as a text message.
"""

import re
from typing import List, Optional

CARRIER_GATEWAYS = {
    'att': 'txt.att.net',
    'verizon': 'vtext.com',
    'tmobile': 'tmomail.net',
    'sprint': 'messaging.sprintpcs.com',
    'uscellular': 'email.uscc.net',
    'cricket': 'sms.cricketwireless.net',
    'boost': 'sms.myboostmobile.com',
    'metropcs': 'mymetropcs.com',
}

PHONE_DIGITS = 10

_NON_DIGIT = re.compile(r'\D')


def normalize_phone(phone: str) -> str:
    """Strip everything except digits: "555-123-4567" -> "5551234567"."""
    return _NON_DIGIT.sub('', phone or '')


def is_valid_phone(phone: str) -> bool:
    return len(normalize_phone(phone)) == PHONE_DIGITS


def gateway_for(carrier: str) -> Optional[str]:
    """Return the gateway domain for a carrier (case-insensitive), or None."""
    if not carrier:
        return None
    return CARRIER_GATEWAYS.get(carrier.strip().lower())


def supported_carriers() -> List[str]:
    return list(CARRIER_GATEWAYS)


def compose_address(phone: str, carrier: str) -> str:
    """Build the gateway email address for a phone/carrier pair.

    Raises:
        ValueError: phone is not 10 digits or carrier is unknown
    """
    digits = normalize_phone(phone)
    if len(digits) != PHONE_DIGITS:
        raise ValueError(f"Invalid phone number {phone!r}. Must be {PHONE_DIGITS} digits.")
    gateway = gateway_for(carrier)
    if gateway is None:
        raise ValueError(f"Unknown carrier {carrier!r}")
    return f"{digits}@{gateway}"
