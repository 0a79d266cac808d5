"""
Call Start Timestamp Resolver

The telephony provider sends ``call_start`` as a naive wall-clock
datetime ("2026-01-29 13:39:00") in its *platform* timezone, not the
agent's or the customer's. Log analysis shows the offset between
``call_start`` and our own UTC receipt time is a constant five hours in
winter, i.e. US Eastern. The source timezone is therefore a named,
overridable setting (``ringcx_platform_timezone``) and is never inferred
from where the value will be displayed.

Resolution order:
1. 10/13-digit epoch (seconds/milliseconds) passes through
2. naive ``YYYY-MM-DD[T ]HH:MM:SS[.fff]`` in the source timezone
3. ``datetime.fromisoformat`` (naive results are taken as UTC)
4. the current instant, with a warning
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_TIMEZONE = 'America/New_York'
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

EPOCH_PATTERN = re.compile(r'^\d{10}$|^\d{13}$')
# A trailing zone name is ignored; numeric offsets are left to fromisoformat
NAIVE_DATETIME_PATTERN = re.compile(
    r'^(\d{4})-(\d{2})-(\d{2})[T ](\d{2}):(\d{2}):(\d{2})(?:\.(\d{1,6}))?(?:\s+(?![+-]\d|Z$)\S.*)?$'
)


def _source_zone(name: str):
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.error("Unknown source timezone %r, interpreting call_start as UTC", name)
        return timezone.utc


def _parse_epoch(value: str) -> datetime:
    number = int(value)
    if len(value) == 13:
        return EPOCH + timedelta(milliseconds=number)
    return EPOCH + timedelta(seconds=number)


def _parse_naive(match: re.Match, source_tz: str) -> datetime:
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    fraction = match.group(7) or ''
    microsecond = int(fraction.ljust(6, '0')) if fraction else 0

    local = datetime(
        year, month, day, hour, minute, second, microsecond,
        tzinfo=_source_zone(source_tz),
    )
    return local.astimezone(timezone.utc)


def resolve_call_start(
    raw: Optional[str],
    source_tz: str = DEFAULT_SOURCE_TIMEZONE,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Resolve a provider call start value to an aware UTC datetime.

    Args:
        raw: Raw ``call_start`` value from the webhook
        source_tz: IANA timezone the provider's naive datetimes are in
        now: Current instant, used as the last-resort value

    Returns:
        datetime: Aware datetime in UTC; never raises
    """
    fallback = now or datetime.now(timezone.utc)
    if not raw:
        return fallback

    value = raw.strip()

    if EPOCH_PATTERN.match(value):
        resolved = _parse_epoch(value)
        logger.debug("Parsed call_start %r as epoch -> %s", raw, resolved.isoformat())
        return resolved

    match = NAIVE_DATETIME_PATTERN.match(value)
    if match:
        try:
            resolved = _parse_naive(match, source_tz)
            logger.debug(
                "Parsed call_start %r in %s -> %s", raw, source_tz, resolved.isoformat()
            )
            return resolved
        except ValueError:
            logger.warning("call_start %r has out-of-range fields", raw)

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Could not parse call_start %r, using current time", raw)
        return fallback

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_epoch_millis(moment: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return (moment - EPOCH) // timedelta(milliseconds=1)
