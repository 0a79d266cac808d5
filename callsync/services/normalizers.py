"""
Telephony Field Normalizers

Pure helpers that turn raw telephony webhook strings into canonical
values: E.164 phone numbers, integer durations, resolved-or-absent
optional fields, agent display names and call direction.

None of these raise on malformed input; telephony metadata is one-way
and non-critical, so bad values pass through or collapse to a default.
"""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

TEMPLATE_VAR_PATTERN = re.compile(r'#[a-z_]+#')
DIGITS_PATTERN = re.compile(r'\d+', re.ASCII)

TRUNK_PREFIX = '0'
NATIONAL_NUMBER_LENGTH = 9

# DNIS patterns for the company's own lines; a call *to* one is inbound
COMPANY_DNIS_PATTERNS = (
    re.compile(r'^1300'),
    re.compile(r'^1800'),
    re.compile(r'^13\d{4}$'),
    re.compile(r'^\(03\)'),
    re.compile(r'^03'),
)

INBOUND = 'INBOUND'
OUTBOUND = 'OUTBOUND'


def is_unresolved_template_var(value: Optional[str]) -> bool:
    """
    Check whether a value is an unsubstituted provider placeholder.

    The telephony provider leaves ``#variable_name#`` in place when it
    has nothing to substitute.

    Args:
        value: Raw field value

    Returns:
        bool: True for ``#lowercase_identifier#``, False otherwise
    """
    if not value:
        return False
    return TEMPLATE_VAR_PATTERN.fullmatch(value) is not None


def resolve_field(value: Optional[str]) -> Optional[str]:
    """Return the value, or None when it is empty or a placeholder."""
    if not value:
        return None
    if is_unresolved_template_var(value):
        logger.warning("Unresolved template variable %r treated as empty", value)
        return None
    return value


def format_phone_number(raw: Optional[str], country_code: str = '61') -> str:
    """
    Format a phone number as E.164.

    Examples (country code 61):
        "0412 345 678"  -> "+61412345678"
        "61412345678"   -> "+61412345678"
        "412345678"     -> "+61412345678"
        "+61412345678"  -> "+61412345678"

    Args:
        raw: Raw phone number string
        country_code: Country code used for domestic numbers

    Returns:
        str: E.164 number, or the cleaned input when no rule applies
    """
    if not raw:
        return ''

    cleaned = re.sub(r'[^\d+]', '', raw)

    if cleaned.startswith(TRUNK_PREFIX) and len(cleaned) == NATIONAL_NUMBER_LENGTH + 1:
        return f'+{country_code}{cleaned[1:]}'
    if (cleaned.startswith(country_code)
            and len(cleaned) == len(country_code) + NATIONAL_NUMBER_LENGTH):
        return f'+{cleaned}'
    if not cleaned.startswith('+') and len(cleaned) == NATIONAL_NUMBER_LENGTH:
        return f'+{country_code}{cleaned}'

    return cleaned


def parse_call_duration(raw: Optional[str]) -> int:
    """
    Parse a call duration into whole seconds.

    Accepts bare seconds ("90"), "MM:SS" and "HH:MM:SS". Anything else,
    including placeholders, yields 0.
    """
    if not raw:
        return 0

    if is_unresolved_template_var(raw):
        logger.warning("call_duration is unresolved template variable %r, using 0", raw)
        return 0

    value = raw.strip()
    if DIGITS_PATTERN.fullmatch(value):
        return int(value)

    parts = value.split(':')
    if len(parts) not in (2, 3) or not all(DIGITS_PATTERN.fullmatch(part.strip()) for part in parts):
        return 0

    numbers = [int(part) for part in parts]
    if len(numbers) == 3:
        hours, minutes, seconds = numbers
        return hours * 3600 + minutes * 60 + seconds
    minutes, seconds = numbers
    return minutes * 60 + seconds


def format_duration(seconds: int) -> str:
    """Render seconds as "5m 30s" or "45s"."""
    minutes, secs = divmod(max(seconds, 0), 60)
    if minutes > 0:
        return f'{minutes}m {secs}s'
    return f'{secs}s'


def agent_display_name(
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    username: Optional[str] = None,
) -> str:
    """
    Derive a human-readable agent name.

    First/last name wins. Otherwise the username is used; an email
    username such as ``josh.w+12345@example.com`` becomes ``Josh W``.

    Args:
        first_name: Agent first name from the webhook
        last_name: Agent last name from the webhook
        username: Agent username, often an email address

    Returns:
        str: Display name
    """
    first_name = resolve_field(first_name)
    last_name = resolve_field(last_name)
    if first_name or last_name:
        return f"{first_name or ''} {last_name or ''}".strip()

    name = resolve_field(username) or 'Unknown Agent'
    if '@' not in name:
        return name

    local_part = name.split('@')[0].split('+')[0]
    return ' '.join(
        part[:1].upper() + part[1:]
        for part in re.split(r'[._]', local_part)
        if part
    )


def determine_call_direction(
    call_direction: Optional[str], dnis: Optional[str]
) -> str:
    """
    Determine the call direction.

    An explicit direction wins. Otherwise a dialed number matching one
    of the company's own lines means the customer called in. Dialer
    campaigns are the common case, so the default is outbound.
    """
    explicit = resolve_field(call_direction)
    if explicit:
        direction = explicit.strip().upper()
        if direction in ('OUTBOUND', 'OUT'):
            return OUTBOUND
        if direction in ('INBOUND', 'IN'):
            return INBOUND

    dialed = re.sub(r'\s', '', dnis or '')
    for pattern in COMPANY_DNIS_PATTERNS:
        if pattern.search(dialed):
            return INBOUND

    return OUTBOUND
