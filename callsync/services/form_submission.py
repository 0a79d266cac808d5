"""
Disposition Form Submission

Synchronizes one agent disposition form into the CRM:
1. Validate the submission against its category model
2. Append the audit row (best effort)
3. Resolve the contact and write the category's properties to it
4. Write the disposition note (best effort)
5. Create the internal sales deal when requested (best effort)

The contact write is the primary outcome; a failure there fails the
request. Everything after it is logged and reported, never raised.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from callsync.common.config import Settings
from callsync.common.errors import CrmNotConfiguredError, FormValidationError
from callsync.common.schemas import OtherDepartmentForm, form_submission_adapter
from callsync.services import recording_store
from callsync.services.contact_resolver import resolve_contact
from callsync.services.crm_fields import (
    ContactOwners,
    build_contact_properties,
    build_note_content,
    wants_internal_sales_deal,
)
from callsync.services.steps import StepResult, best_effort, best_effort_sync
from callsync.services.timestamps import to_epoch_millis

logger = logging.getLogger(__name__)

FORM_DISPOSITIONS = (
    'book_water_test', 'call_back', 'not_interested', 'other_department',
    'unable_to_service', 'no_answer', 'wrong_number',
)


def parse_form(payload) -> object:
    """
    Validate a raw form body into its per-category model.

    Raises:
        FormValidationError: If the disposition is missing or unknown, or
            a field has the wrong shape
    """
    if not isinstance(payload, dict) or not payload.get('disposition'):
        raise FormValidationError('Disposition is required')
    disposition = payload['disposition']
    if disposition not in FORM_DISPOSITIONS:
        raise FormValidationError(f'Invalid disposition: {disposition}')
    try:
        return form_submission_adapter.validate_python(payload)
    except ValidationError as ex:
        first = ex.errors()[0]
        location = '.'.join(str(part) for part in first['loc'][1:]) or 'form'
        raise FormValidationError(f"Invalid field {location}: {first['msg']}") from ex


def owners_from_settings(settings: Settings) -> ContactOwners:
    return ContactOwners(
        enquiries=settings.hubspot_owner_enquiries,
        call_back=settings.hubspot_owner_call_back,
        unable_to_service=settings.hubspot_owner_unable_to_service,
    )


def submitted_at(value: str, now: datetime) -> datetime:
    """The form's ISO timestamp as an aware datetime, else ``now``."""
    if value:
        try:
            moment = datetime.fromisoformat(value)
        except ValueError:
            logger.warning("Unparseable form timestamp %r, using current time", value)
        else:
            return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)
    return now


def format_note_timestamp(moment: datetime, display_timezone: str) -> str:
    """Agent-facing timestamp, e.g. ``29/01/2026, 01:39 pm``."""
    local = moment.astimezone(ZoneInfo(display_timezone))
    return local.strftime('%d/%m/%Y, %I:%M ') + local.strftime('%p').lower()


def build_note_body(form, agent: Optional[str], moment: datetime, display_timezone: str) -> str:
    prefix = f'[Agent: {agent}] ' if agent else ''
    stamp = format_note_timestamp(moment, display_timezone)
    return f'{prefix}[{stamp}] {build_note_content(form)}'


def build_deal_properties(form: OtherDepartmentForm, moment: datetime, settings: Settings) -> dict:
    local_date = moment.astimezone(ZoneInfo(settings.display_timezone))
    properties = {
        'dealname': f'Internal Sales Lead - {local_date:%d/%m/%Y}',
        'pipeline': settings.hubspot_deal_pipeline,
        'dealstage': settings.hubspot_deal_stage,
    }
    if form.notes_for_internal_sales:
        properties['description'] = form.notes_for_internal_sales
    return properties


def _audit_values(payload: dict, form) -> dict:
    contact_info = form.contact_info
    return {
        'form_data': payload,
        'disposition': form.disposition,
        'submitted_by': contact_info.model_dump() if contact_info else None,
        'contact': {
            'email': form.email_address,
            'phone': form.phone_number,
            'name': f'{form.first_name} {form.last_name}'.strip(),
        },
        'metadata': {
            'submittedAt': form.timestamp,
            'disposition': form.disposition,
        },
    }


async def submit_disposition(
    payload: dict,
    crm,
    session_factory,
    settings: Settings,
    now: Optional[datetime] = None,
) -> dict:
    """
    Process one disposition form submission.

    Args:
        payload: Raw JSON body from the form
        crm: CRM client, or None when the CRM is not configured
        session_factory: Callable returning a database session
        settings: Application settings
        now: Current instant, used when the form carries no timestamp

    Returns:
        dict: ``{success, submissionId, contactId, dealId}``

    Raises:
        FormValidationError: If the submission is malformed
        CrmNotConfiguredError: If ``crm`` is None
        CrmRequestError: If the contact cannot be found, created or updated
    """
    now = now or datetime.now(timezone.utc)
    form = parse_form(payload)
    logger.info("Disposition form received: %s", form.disposition)

    agent_id = form.contact_info.agent_id if form.contact_info else None
    steps: list[StepResult] = []

    with session_factory() as session:
        agent_name = best_effort_sync(
            'agent_lookup', recording_store.lookup_agent_name, session, agent_id
        ).value
        audit = best_effort_sync(
            'audit_row',
            recording_store.insert_form_submission,
            session, agent_name=agent_name, **_audit_values(payload, form),
        )
    steps.append(audit)

    if crm is None:
        raise CrmNotConfiguredError()

    resolution = await resolve_contact(
        crm,
        build_contact_properties(form, owners_from_settings(settings)),
        explicit_id=form.contact_info.contact_id if form.contact_info else None,
        email=form.email_address or None,
        phone=form.phone_number or None,
    )

    moment = submitted_at(form.timestamp, now)
    note_body = build_note_body(form, agent_name or agent_id, moment, settings.display_timezone)
    steps.append(await best_effort(
        'note', crm.create_note(note_body, to_epoch_millis(moment), resolution.contact_id)
    ))

    deal_id = None
    if wants_internal_sales_deal(form):
        deal = await best_effort('deal', crm.create_deal(
            build_deal_properties(form, moment, settings), resolution.contact_id
        ))
        steps.append(deal)
        deal_id = deal.value
        if deal.ok:
            logger.info("Internal sales deal %s created for contact %s", deal_id, resolution.contact_id)

    for step in steps:
        if not step.ok:
            logger.warning("Form submission step %s failed: %s", step.step, step.error)

    return {
        'success': True,
        'submissionId': audit.value,
        'contactId': resolution.contact_id,
        'dealId': deal_id,
        'message': 'Form submitted successfully to CRM',
    }
