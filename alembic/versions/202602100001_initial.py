"""initial

Revision ID: 202602100001
Revises: 
Create Date: 2026-02-10 00:01:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '202602100001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table('ringcx_webhook_logs',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('call_id', sa.String(64)),
        sa.Column('contact_id', sa.String(64)),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )

    op.create_table('call_recordings',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('call_id', sa.String(64), nullable=False, unique=True),
        sa.Column('source_url', sa.Text(), comment='Provider recording URL (may expire)'),
        sa.Column('call_direction', sa.String(16)),
        sa.Column('call_duration_seconds', sa.Integer()),
        sa.Column('call_start', sa.DateTime(timezone=True)),
        sa.Column('disposition', sa.String(128)),
        sa.Column('phone_number', sa.String(32), comment='Customer phone (E.164)'),
        sa.Column('agent_id', sa.String(64)),
        sa.Column('agent_name', sa.String(255)),
        sa.Column('crm_contact_id', sa.String(64)),
        sa.Column('crm_call_id', sa.String(64)),
        sa.Column('backup_status', sa.String(16), nullable=False, server_default='pending',
                  comment='no_recording, pending, downloading, uploaded, failed'),
        sa.Column('backup_error', sa.Text()),
        sa.Column('backup_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('storage_file_id', sa.Text()),
        sa.Column('storage_url', sa.Text()),
        sa.Column('storage_file_name', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('backed_up_at', sa.DateTime(timezone=True)),
    )

    op.create_table('form_submissions',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('source', sa.String(32), nullable=False, server_default='web'),
        sa.Column('submitted_by', sa.JSON()),
        sa.Column('contact', sa.JSON()),
        sa.Column('form_data', sa.JSON(), nullable=False),
        sa.Column('metadata', sa.JSON()),
        sa.Column('disposition', sa.String(64)),
        sa.Column('agent_name', sa.String(255)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )

    op.create_table('crm_users',
        sa.Column('user_id', sa.String(64), primary_key=True),
        sa.Column('first_name', sa.Text()),
        sa.Column('last_name', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )

    op.create_index('ix_ringcx_webhook_logs_call_id', 'ringcx_webhook_logs', ['call_id'])
    op.create_index('ix_ringcx_webhook_logs_contact_id', 'ringcx_webhook_logs', ['contact_id'])
    op.create_index('ix_call_recordings_disposition', 'call_recordings', ['disposition'])
    op.create_index('ix_call_recordings_agent_name', 'call_recordings', ['agent_name'])
    op.create_index('ix_call_recordings_backup_status', 'call_recordings', ['backup_status'])
    op.create_index('idx_call_recordings_pending', 'call_recordings', ['backup_status', 'backup_attempts', 'call_start'])
    op.create_index('ix_form_submissions_disposition', 'form_submissions', ['disposition'])

def downgrade() -> None:
    op.drop_index('ix_form_submissions_disposition', table_name='form_submissions')
    op.drop_index('idx_call_recordings_pending', table_name='call_recordings')
    op.drop_index('ix_call_recordings_backup_status', table_name='call_recordings')
    op.drop_index('ix_call_recordings_agent_name', table_name='call_recordings')
    op.drop_index('ix_call_recordings_disposition', table_name='call_recordings')
    op.drop_index('ix_ringcx_webhook_logs_contact_id', table_name='ringcx_webhook_logs')
    op.drop_index('ix_ringcx_webhook_logs_call_id', table_name='ringcx_webhook_logs')
    op.drop_table('crm_users')
    op.drop_table('form_submissions')
    op.drop_table('call_recordings')
    op.drop_table('ringcx_webhook_logs')
