"""
Webhook Reconciliation Controller

Turns a telephony disposition webhook into CRM writes and audit rows.

The provider fires twice per call: an auto-fire webhook at call end
(no ``agent_disposition``) and a second one once the agent has picked a
disposition. Only the second is processed; the first is acknowledged
and skipped without any writes.

Order of work for a disposition-bearing webhook:
1. Validate ``extern_id`` and strip the contact prefix
2. Map the disposition and build the canonical call event
3. Append the webhook log row (best effort)
4. Verify the CRM contact exists
5. Write the call log (fatal on failure)
6. Flag the contact and write the note (best effort)
7. Upsert the recording backup row (best effort)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from prometheus_client import Counter
from pydantic import ValidationError

from callsync.common.config import Settings
from callsync.common.errors import (
    CallSyncError,
    ContactNotFoundError,
    CrmNotConfiguredError,
    WebhookValidationError,
)
from callsync.common.schemas import RingCXWebhookPayload
from callsync.services import recording_store
from callsync.services.call_events import CallEvent, build_call_event, strip_contact_prefix
from callsync.services.engagements import (
    build_call_note,
    flag_contact_call_notes,
    write_call_log,
    write_note,
)
from callsync.services.normalizers import resolve_field
from callsync.services.steps import StepResult, best_effort_sync

logger = logging.getLogger(__name__)

# Prometheus metrics for monitoring
WEBHOOK_OUTCOMES = Counter(
    'callsync_webhook_total',
    'Telephony webhooks by outcome',
    ['outcome'],
)
BEST_EFFORT_FAILURES = Counter(
    'callsync_webhook_step_failures_total',
    'Best-effort webhook steps that failed',
    ['step'],
)

SKIPPED = 'skipped'
PROCESSED = 'processed'


@dataclass
class WebhookOutcome:
    status: str
    call_id: Optional[str] = None
    contact_id: Optional[str] = None
    crm_call_id: Optional[str] = None
    disposition: Optional[str] = None
    steps: list[StepResult] = field(default_factory=list)

    def as_response(self) -> dict:
        if self.status == SKIPPED:
            return {
                'success': True,
                'skipped': True,
                'message': 'No agent disposition; auto-fire webhook ignored',
                'call_id': self.call_id,
            }
        return {
            'success': True,
            'callId': self.call_id,
            'contactId': self.contact_id,
            'crmCallId': self.crm_call_id,
            'disposition': self.disposition,
            'steps': [step.as_dict() for step in self.steps],
        }


def parse_payload(payload: dict) -> RingCXWebhookPayload:
    try:
        return RingCXWebhookPayload.model_validate(payload)
    except ValidationError as ex:
        raise WebhookValidationError(f'Invalid webhook payload: {ex.error_count()} error(s)') from ex


def backup_row_values(event: CallEvent, crm_call_id: str) -> dict:
    """Column values for the recording backup row of a processed call."""
    return {
        'call_id': event.call_id,
        'source_url': event.recording_url,
        'call_direction': event.direction,
        'call_duration_seconds': event.duration_seconds,
        'call_start': event.start_instant,
        'disposition': event.disposition_label,
        'phone_number': event.customer_phone,
        'agent_id': event.agent_id,
        'agent_name': event.agent_display_name,
        'crm_contact_id': event.external_contact_id,
        'crm_call_id': crm_call_id,
        'backup_status': 'pending' if event.recording_url else 'no_recording',
    }


async def reconcile_webhook(
    payload: dict,
    crm,
    session_factory,
    settings: Settings,
    now: Optional[datetime] = None,
) -> WebhookOutcome:
    """
    Process one telephony webhook.

    Args:
        payload: Raw JSON body as received
        crm: CRM client, or None when the CRM is not configured
        session_factory: Callable returning a database session
        settings: Application settings
        now: Processing instant (defaults to the current time)

    Returns:
        WebhookOutcome: Skip marker, or the ids written and best-effort results

    Raises:
        WebhookValidationError: If ``extern_id`` is missing
        CrmNotConfiguredError: If ``crm`` is None
        ContactNotFoundError: If the CRM has no such contact
        UnmappedDispositionError: If the disposition label is unknown
        CallLogWriteError: If the call log cannot be written
    """
    try:
        outcome = await _reconcile(payload, crm, session_factory, settings, now)
    except CallSyncError as ex:
        WEBHOOK_OUTCOMES.labels(outcome=type(ex).__name__).inc()
        raise
    WEBHOOK_OUTCOMES.labels(outcome=outcome.status).inc()
    return outcome


async def _reconcile(payload, crm, session_factory, settings, now) -> WebhookOutcome:
    now = now or datetime.now(timezone.utc)
    webhook = parse_payload(payload)

    if not resolve_field(webhook.agent_disposition):
        logger.info("Skipping auto-fire webhook for call %s", webhook.call_id)
        return WebhookOutcome(status=SKIPPED, call_id=webhook.call_id)

    extern_id = resolve_field(webhook.extern_id)
    if not extern_id:
        raise WebhookValidationError('Missing extern_id (CRM contact id)')
    contact_id = strip_contact_prefix(extern_id, settings.contact_id_prefix)

    steps: list[StepResult] = []
    with session_factory() as session:
        steps.append(best_effort_sync(
            'webhook_log',
            recording_store.append_webhook_log,
            session, resolve_field(webhook.call_id), contact_id, payload, now,
        ))

    if crm is None:
        raise CrmNotConfiguredError()

    contact = await crm.get_contact(contact_id)
    if contact is None:
        raise ContactNotFoundError(f'Contact {contact_id} not found in CRM')

    event = build_call_event(webhook, contact_id, settings, now=now)
    logger.info(
        "Processing call %s for contact %s: %s -> %s",
        event.call_id, contact_id, event.disposition_label, event.disposition.value,
    )

    crm_call_id = await write_call_log(crm, event, contact, now)

    steps.append(await flag_contact_call_notes(crm, contact_id))
    steps.append(await write_note(crm, contact_id, build_call_note(event), now))

    if event.call_id:
        with session_factory() as session:
            steps.append(best_effort_sync(
                'recording_backup_row',
                recording_store.upsert_call_recording,
                session, backup_row_values(event, crm_call_id),
            ))
    else:
        logger.warning("Call has no call_id; recording backup row not written")

    for step in steps:
        if not step.ok:
            BEST_EFFORT_FAILURES.labels(step=step.step).inc()

    return WebhookOutcome(
        status=PROCESSED,
        call_id=event.call_id,
        contact_id=contact_id,
        crm_call_id=crm_call_id,
        disposition=event.disposition.value,
        steps=steps,
    )
