from datetime import datetime, timezone

from sqlalchemy import func, select

from callsync.common.models import CallRecording, CrmUser
from callsync.services import recording_store


def seed(session_factory, call_id, **values):
    row = {
        'call_id': call_id,
        'source_url': f'https://ringcx.test/rec/{call_id}.wav',
        'call_start': datetime(2026, 1, 29, 18, 39, tzinfo=timezone.utc),
        'disposition': 'Left Voicemail',
        'backup_status': 'pending',
    }
    row.update(values)
    with session_factory() as session:
        recording_store.upsert_call_recording(session, row)


def test_upsert_overwrites_instead_of_duplicating(session_factory):
    seed(session_factory, 'C-1', disposition='No Answer')
    seed(session_factory, 'C-1', disposition='Booked Test')

    with session_factory() as session:
        assert session.scalar(select(func.count()).select_from(CallRecording)) == 1
        row = recording_store.get_call_recording(session, 'C-1')
    assert row.disposition == 'Booked Test'
    assert row.backup_attempts == 0


def test_upsert_keeps_attempt_count(session_factory):
    seed(session_factory, 'C-1')
    with session_factory() as session:
        row = recording_store.get_call_recording(session, 'C-1')
        recording_store.update_call_recording(session, row.id, backup_attempts=2)

    seed(session_factory, 'C-1', disposition='Busy')

    with session_factory() as session:
        assert recording_store.get_call_recording(session, 'C-1').backup_attempts == 2


def test_select_pending_filters_and_orders(session_factory):
    seed(session_factory, 'late', call_start=datetime(2026, 1, 30, tzinfo=timezone.utc))
    seed(session_factory, 'early', call_start=datetime(2026, 1, 28, tzinfo=timezone.utc))
    seed(session_factory, 'done', backup_status='uploaded')
    seed(session_factory, 'exhausted')
    with session_factory() as session:
        row = recording_store.get_call_recording(session, 'exhausted')
        recording_store.update_call_recording(session, row.id, backup_attempts=3)

    with session_factory() as session:
        pending = recording_store.select_pending_recordings(session, max_attempts=3, limit=10)
        assert [row.call_id for row in pending] == ['early', 'late']

        limited = recording_store.select_pending_recordings(session, max_attempts=3, limit=1)
        assert [row.call_id for row in limited] == ['early']


def test_lookup_agent_name(session_factory):
    with session_factory() as session:
        session.add(CrmUser(user_id='u1', first_name='Sam', last_name='Agent'))
        session.add(CrmUser(user_id='u2', first_name='Solo'))
        session.commit()

        assert recording_store.lookup_agent_name(session, 'u1') == 'Sam Agent'
        assert recording_store.lookup_agent_name(session, 'u2') == 'Solo'
        assert recording_store.lookup_agent_name(session, 'nobody') is None
        assert recording_store.lookup_agent_name(session, None) is None


def test_webhook_log_is_append_only(session_factory):
    with session_factory() as session:
        first = recording_store.append_webhook_log(session, 'C-1', '42', {'call_id': 'C-1'})
        second = recording_store.append_webhook_log(session, 'C-1', '42', {'call_id': 'C-1'})
    assert second != first
