"""
SQLAlchemy Database Models

This module defines the database schema for the callsync service: the
append-only webhook and form-submission audit logs, the call recording
backup queue, and the CRM user directory used to resolve agent names.
"""

from sqlalchemy import (
    JSON, BigInteger, Column, DateTime, Index, Integer, String, Text
)
from sqlalchemy.sql import func

from callsync.common.db import Base

# SQLite only autoincrements INTEGER primary keys
_PK = BigInteger().with_variant(Integer(), "sqlite")


class WebhookLog(Base):
    """
    Raw telephony webhook payload, kept for forensic replay.

    Rows are appended once per disposition-bearing webhook and never
    updated.
    """
    __tablename__ = 'ringcx_webhook_logs'

    id = Column(_PK, primary_key=True, autoincrement=True)
    call_id = Column(String(64), index=True)
    contact_id = Column(String(64), index=True)
    payload = Column(JSON, nullable=False)
    processed_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CallRecording(Base):
    """
    Tracks one call recording through the backup pipeline.

    Created by the webhook controller after the CRM call log is written,
    mutated only by the backup worker, never deleted.
    """
    __tablename__ = 'call_recordings'
    __table_args__ = (
        Index('idx_call_recordings_pending', 'backup_status', 'backup_attempts', 'call_start'),
    )

    # Primary fields
    id = Column(_PK, primary_key=True, autoincrement=True)
    call_id = Column(String(64), unique=True, nullable=False)
    source_url = Column(Text, comment='Provider recording URL (may expire)')

    # Call metadata (denormalized from the webhook)
    call_direction = Column(String(16))
    call_duration_seconds = Column(Integer)
    call_start = Column(DateTime(timezone=True))
    disposition = Column(String(128), index=True)
    phone_number = Column(String(32), comment='Customer phone (E.164)')
    agent_id = Column(String(64))
    agent_name = Column(String(255), index=True)

    # CRM references
    crm_contact_id = Column(String(64))
    crm_call_id = Column(String(64))

    # Backup state
    backup_status = Column(
        String(16),
        nullable=False,
        default='pending',
        index=True,
        comment='no_recording, pending, downloading, uploaded, failed'
    )
    backup_error = Column(Text)
    backup_attempts = Column(Integer, nullable=False, default=0)

    # Object storage
    storage_file_id = Column(Text)
    storage_url = Column(Text)
    storage_file_name = Column(Text)

    # Audit fields
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    backed_up_at = Column(DateTime(timezone=True))


class FormSubmission(Base):
    """
    Append-only log of every disposition form payload.

    Used for reporting only; nothing reads it back for control flow.
    """
    __tablename__ = 'form_submissions'

    id = Column(_PK, primary_key=True, autoincrement=True)
    source = Column(String(32), nullable=False, default='web')
    submitted_by = Column(JSON)
    contact = Column(JSON)
    form_data = Column(JSON, nullable=False)
    submission_metadata = Column('metadata', JSON)
    disposition = Column(String(64), index=True)
    agent_name = Column(String(255))

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CrmUser(Base):
    """CRM user/owner directory for resolving agent ids to display names."""
    __tablename__ = 'crm_users'

    user_id = Column(String(64), primary_key=True)
    first_name = Column(Text)
    last_name = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
