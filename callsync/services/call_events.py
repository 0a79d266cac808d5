"""
Canonical Call Event

The normalized form of a disposition-bearing telephony webhook. All
placeholder filtering, phone/duration/timestamp normalization and
disposition mapping happens here, once, before any CRM write.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from callsync.common.config import Settings
from callsync.common.schemas import RingCXWebhookPayload
from callsync.services.dispositions import CallDisposition, map_disposition
from callsync.services.normalizers import (
    OUTBOUND,
    agent_display_name,
    determine_call_direction,
    format_phone_number,
    parse_call_duration,
    resolve_field,
)
from callsync.services.timestamps import resolve_call_start


@dataclass(frozen=True)
class CallEvent:
    call_id: str
    external_contact_id: str
    direction: str
    duration_seconds: int
    start_instant: datetime
    disposition: CallDisposition
    disposition_label: str
    agent_id: Optional[str]
    agent_display_name: str
    ani: str
    dnis: str
    notes: Optional[str] = None
    summary: Optional[str] = None
    recording_url: Optional[str] = None

    @property
    def customer_phone(self) -> str:
        # ANI is the customer's number in both directions
        return self.ani

    @property
    def from_number(self) -> str:
        return self.dnis if self.direction == OUTBOUND else self.ani

    @property
    def to_number(self) -> str:
        return self.ani if self.direction == OUTBOUND else self.dnis


def strip_contact_prefix(extern_id: str, prefix: str) -> str:
    """Remove the provider's contact id prefix ("hs-123" -> "123")."""
    if prefix and extern_id.startswith(prefix):
        return extern_id[len(prefix):]
    return extern_id


def build_call_event(
    payload: RingCXWebhookPayload,
    contact_id: str,
    settings: Settings,
    now: Optional[datetime] = None,
) -> CallEvent:
    """
    Build the canonical event from a disposition-bearing webhook.

    Args:
        payload: Parsed webhook payload carrying ``agent_disposition``
        contact_id: CRM contact id with any prefix already stripped
        settings: Settings providing timezone and country code
        now: Current instant, used when ``call_start`` is unusable

    Raises:
        UnmappedDispositionError: If the disposition label is unknown
    """
    label = payload.agent_disposition.strip()
    country_code = settings.default_country_code

    return CallEvent(
        call_id=resolve_field(payload.call_id) or '',
        external_contact_id=contact_id,
        direction=determine_call_direction(payload.call_direction, payload.dnis),
        duration_seconds=parse_call_duration(payload.call_duration),
        start_instant=resolve_call_start(
            resolve_field(payload.call_start), settings.ringcx_platform_timezone, now=now
        ),
        disposition=map_disposition(label),
        disposition_label=label,
        agent_id=resolve_field(payload.agent_id),
        agent_display_name=agent_display_name(
            payload.agent_first_name, payload.agent_last_name, payload.agent_username
        ),
        ani=format_phone_number(resolve_field(payload.ani), country_code),
        dnis=format_phone_number(resolve_field(payload.dnis), country_code),
        notes=resolve_field(payload.notes),
        summary=resolve_field(payload.summary),
        recording_url=resolve_field(payload.recording_url),
    )
