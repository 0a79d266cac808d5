"""
Audit and Backup Row Persistence

Database access for the webhook log, the form submission log, the call
recording backup queue and the CRM user directory. Each function runs
and commits one unit of work on the session it is given.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from callsync.common.models import CallRecording, CrmUser, FormSubmission, WebhookLog

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


def append_webhook_log(
    session: Session,
    call_id: Optional[str],
    contact_id: Optional[str],
    payload: dict,
    processed_at: Optional[datetime] = None,
) -> int:
    """Append the raw webhook payload to the audit log."""
    row = WebhookLog(
        call_id=call_id,
        contact_id=contact_id,
        payload=payload,
        processed_at=processed_at or datetime.now(timezone.utc),
    )
    try:
        session.add(row)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return row.id


def upsert_call_recording(session: Session, values: dict) -> None:
    """
    Insert or update the backup row for ``values['call_id']``.

    A second webhook for the same call overwrites the supplied columns
    of the existing row rather than adding another.
    """
    dialect = session.get_bind().dialect.name
    try:
        insert = _UPSERT_DIALECTS[dialect]
    except KeyError:
        raise RuntimeError(f"Upsert not supported for dialect {dialect!r}") from None

    update_columns = {key: value for key, value in values.items() if key != 'call_id'}
    statement = insert(CallRecording).values(**values).on_conflict_do_update(
        index_elements=[CallRecording.call_id],
        set_=update_columns,
    )
    try:
        session.execute(statement)
        session.commit()
    except Exception:
        session.rollback()
        raise


def get_call_recording(session: Session, call_id: str) -> Optional[CallRecording]:
    return session.scalars(
        select(CallRecording).where(CallRecording.call_id == call_id)
    ).one_or_none()


def find_by_storage_file_id(session: Session, file_id: str) -> Optional[CallRecording]:
    return session.scalars(
        select(CallRecording).where(CallRecording.storage_file_id == file_id)
    ).first()


def select_pending_recordings(
    session: Session, max_attempts: int, limit: int
) -> list[CallRecording]:
    """Pending rows with attempts left, oldest call first."""
    statement = (
        select(CallRecording)
        .where(CallRecording.backup_status == 'pending')
        .where(CallRecording.backup_attempts < max_attempts)
        .order_by(CallRecording.call_start.asc(), CallRecording.id.asc())
        .limit(limit)
    )
    return list(session.scalars(statement))


def update_call_recording(session: Session, recording_id: int, **fields) -> None:
    """Apply one state transition to a backup row and commit it."""
    recording = session.get(CallRecording, recording_id)
    if recording is None:
        raise LookupError(f"call recording {recording_id} not found")
    for key, value in fields.items():
        setattr(recording, key, value)
    try:
        session.commit()
    except Exception:
        session.rollback()
        raise


def lookup_agent_name(session: Session, user_id: Optional[str]) -> Optional[str]:
    """Resolve a CRM user id to "First Last", or None when unknown."""
    if not user_id:
        return None
    user = session.get(CrmUser, user_id)
    if user is None:
        return None
    name = f"{user.first_name or ''} {user.last_name or ''}".strip()
    return name or None


def insert_form_submission(
    session: Session,
    form_data: dict,
    disposition: Optional[str],
    submitted_by: Optional[dict],
    contact: dict,
    metadata: dict,
    agent_name: Optional[str],
    source: str = 'web',
) -> int:
    """Append a disposition form submission to the audit log."""
    row = FormSubmission(
        source=source,
        submitted_by=submitted_by,
        contact=contact,
        form_data=form_data,
        submission_metadata=metadata,
        disposition=disposition,
        agent_name=agent_name,
    )
    try:
        session.add(row)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return row.id
