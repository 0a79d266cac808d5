"""
Call and Note Engagement Writer

Writes the CRM activities for a processed call: the structured call log
(authoritative, failure is fatal) and the free-text note plus contact
flag (best effort).

Best-effort steps never raise. They return a ``StepResult`` that the
caller logs and reports, so a swallowed failure stays visible.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from callsync.common.errors import CallLogWriteError, CallSyncError
from callsync.services.call_events import CallEvent
from callsync.services.normalizers import OUTBOUND, format_duration
from callsync.services.steps import StepResult, best_effort
from callsync.services.timestamps import to_epoch_millis

logger = logging.getLogger(__name__)

CALL_ACTIVITY_TYPE = 'Verification & Test Appointment Booking'
CALL_NOTES_FLAG_PROPERTY = 'n0_ringcx_call_notes'


def title_label(label: str) -> str:
    """Title-case a label: left_voicemail -> Left Voicemail."""
    return re.sub(r'\b\w', lambda m: m.group(0).upper(), label.replace('_', ' '))


def contact_display_name(contact: Optional[dict]) -> str:
    props = (contact or {}).get('properties') or {}
    first, last = props.get('firstname'), props.get('lastname')
    if first and last:
        return f'{first} {last}'
    return first or last or 'Unknown Contact'


def build_call_properties(
    event: CallEvent, contact: Optional[dict], now: Optional[datetime] = None
) -> dict:
    """
    Build the CRM call-log properties for an event.

    The activity timestamp is the processing time: the webhook fires when
    the agent completes the disposition, which is what agents see in the
    dialer.
    """
    now = now or datetime.now(timezone.utc)
    disposition_label = title_label(event.disposition_label)
    direction_label = 'Outbound' if event.direction == OUTBOUND else 'Inbound'
    contact_name = contact_display_name(contact)

    if event.direction == OUTBOUND:
        header = (
            f'Call from {event.agent_display_name} ({event.dnis}) '
            f'to {contact_name} ({event.ani})'
        )
    else:
        header = (
            f'Call from {contact_name} ({event.ani}) '
            f'to {event.agent_display_name} ({event.dnis})'
        )

    body = [
        header,
        f'<b>Duration:</b> {format_duration(event.duration_seconds)} | '
        f'<b>Disposition:</b> {disposition_label}',
    ]
    if event.summary:
        body += ['', '<b>Call Summary</b>', event.summary]
    if event.notes:
        body += ['', '<b>Agent Notes</b>', event.notes]

    properties = {
        'hs_timestamp': to_epoch_millis(now),
        'hs_activity_type': CALL_ACTIVITY_TYPE,
        'hs_call_title': f'{direction_label} Call - {disposition_label}',
        'hs_call_body': '<br>'.join(body),
        'hs_call_direction': event.direction,
        'hs_call_disposition': event.disposition.crm_id,
        'hs_call_duration': event.duration_seconds * 1000,
        'hs_call_from_number': event.from_number,
        'hs_call_to_number': event.to_number,
        'hs_call_status': 'COMPLETED',
    }
    if event.recording_url:
        properties['hs_call_recording_url'] = event.recording_url
    return properties


def build_call_note(event: CallEvent) -> str:
    """Note summarizing the disposition, agent and notes for one call."""
    parts = [
        f'Disposition: {event.disposition.label}',
        f'Agent: {event.agent_display_name}',
    ]
    if event.summary:
        parts.append(f'Summary: {event.summary}')
    if event.notes:
        parts.append(f'\nAgent Notes: {event.notes}')
    return ' | '.join(parts)


async def write_call_log(
    crm, event: CallEvent, contact: Optional[dict], now: Optional[datetime] = None
) -> str:
    """
    Create the call-log activity for an event.

    Returns:
        str: CRM call id

    Raises:
        CallLogWriteError: If the CRM rejects the call or is unreachable
    """
    properties = build_call_properties(event, contact, now)
    try:
        crm_call_id = await crm.create_call(properties, event.external_contact_id)
    except CallSyncError as ex:
        raise CallLogWriteError(f'Failed to create call engagement: {ex.message}') from ex
    logger.info("CRM call %s created for call %s", crm_call_id, event.call_id)
    return crm_call_id


async def write_note(crm, contact_id: str, body: str, timestamp: datetime) -> StepResult:
    """Create a note on the contact. Best effort."""
    return await best_effort(
        'note', crm.create_note(body, to_epoch_millis(timestamp), contact_id)
    )


async def flag_contact_call_notes(crm, contact_id: str) -> StepResult:
    """Mark the contact as having telephony call notes. Best effort."""
    return await best_effort(
        'contact_flag',
        crm.update_contact(contact_id, {CALL_NOTES_FLAG_PROPERTY: 'Yes'}),
    )
