from datetime import datetime

import pytest
from sqlalchemy import func, select

from callsync.api import crm_dependency
from callsync.common.models import CallRecording, WebhookLog
from callsync.services.dispositions import CallDisposition


def webhook(**overrides):
    payload = {
        'call_id': 'C-100',
        'call_duration': '00:05:30',
        'call_start': '2026-01-29 13:39:00',
        'agent_id': '555',
        'agent_username': 'josh.w+12345@example.com',
        'extern_id': 'hs-42',
        'ani': '0412345678',
        'dnis': '0891234567',
        'agent_disposition': 'Left Voicemail',
        'notes': '#notes#',
        'summary': 'Customer asked for a call back',
        'recording_url': 'https://ringcx.test/rec/C-100.wav',
    }
    payload.update(overrides)
    return {key: value for key, value in payload.items() if value is not None}


def count(session_factory, model):
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(model))


def recording(session_factory, call_id='C-100'):
    with session_factory() as session:
        return session.scalars(select(CallRecording).where(CallRecording.call_id == call_id)).one()


@pytest.fixture(autouse=True)
def known_contact(crm):
    crm.add_contact('42', firstname='Ann', lastname='Lee', phone='+61412345678')


def test_auto_fire_webhook_is_skipped_without_writes(client, crm, session_factory):
    response = client.post('/webhooks/ringcx-disposition', json=webhook(agent_disposition=None))

    assert response.status_code == 200
    assert response.json()['skipped'] is True
    assert response.json()['call_id'] == 'C-100'
    assert crm.calls == []
    assert crm.notes == []
    assert count(session_factory, WebhookLog) == 0
    assert count(session_factory, CallRecording) == 0


def test_placeholder_disposition_counts_as_auto_fire(client, crm):
    response = client.post('/webhooks/ringcx-disposition', json=webhook(agent_disposition='#agent_disposition#'))

    assert response.json()['skipped'] is True
    assert crm.calls == []


def test_disposition_webhook_writes_call_log_and_audit_rows(client, crm, session_factory):
    response = client.post('/webhooks/ringcx-disposition', json=webhook())

    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert body['contactId'] == '42'
    assert body['disposition'] == 'left_voicemail'
    assert all(step['ok'] for step in body['steps'])

    assert len(crm.calls) == 1
    call = crm.calls[0]
    props = call['properties']
    assert call['contact_id'] == '42'
    assert props['hs_call_disposition'] == CallDisposition.LEFT_VOICEMAIL.crm_id
    assert props['hs_call_title'] == 'Outbound Call - Left Voicemail'
    assert props['hs_call_direction'] == 'OUTBOUND'
    assert props['hs_call_duration'] == 330000
    assert props['hs_call_from_number'] == '+61891234567'
    assert props['hs_call_to_number'] == '+61412345678'
    assert props['hs_call_status'] == 'COMPLETED'
    assert props['hs_call_recording_url'] == 'https://ringcx.test/rec/C-100.wav'
    assert 'Call from Josh W (+61891234567) to Ann Lee (+61412345678)' in props['hs_call_body']
    assert '#notes#' not in props['hs_call_body']

    assert crm.contact_updates == [('42', {'n0_ringcx_call_notes': 'Yes'})]
    assert len(crm.notes) == 1
    assert crm.notes[0]['body'].startswith('Disposition: Left Voicemail | Agent: Josh W')

    assert count(session_factory, WebhookLog) == 1
    row = recording(session_factory)
    assert row.backup_status == 'pending'
    assert row.crm_call_id == call['id']
    assert row.crm_contact_id == '42'
    assert row.phone_number == '+61412345678'
    assert row.call_duration_seconds == 330
    assert row.call_start.replace(tzinfo=None) == datetime(2026, 1, 29, 18, 39)


def test_missing_recording_url_marks_no_recording(client, session_factory):
    response = client.post('/webhooks/ringcx-disposition', json=webhook(recording_url='#recording_url#'))

    assert response.status_code == 200
    assert recording(session_factory).backup_status == 'no_recording'


def test_missing_extern_id_is_rejected_without_side_effects(client, crm, session_factory):
    response = client.post('/webhooks/ringcx-disposition', json=webhook(extern_id=None))

    assert response.status_code == 400
    assert response.json() == {'success': False, 'error': 'Missing extern_id (CRM contact id)'}
    assert crm.calls == []
    assert count(session_factory, WebhookLog) == 0


def test_unmapped_disposition_is_rejected_by_name(client, crm, session_factory):
    response = client.post('/webhooks/ringcx-disposition', json=webhook(agent_disposition='Abducted'))

    assert response.status_code == 400
    assert '"Abducted"' in response.json()['error']
    assert crm.calls == []
    # the raw payload is kept so the call can be replayed once the label is mapped
    assert count(session_factory, WebhookLog) == 1


def test_unknown_contact_is_404(client, crm, session_factory):
    response = client.post('/webhooks/ringcx-disposition', json=webhook(extern_id='hs-999'))

    assert response.status_code == 404
    assert response.json()['success'] is False
    assert crm.calls == []
    # the audit log is written before the CRM is consulted
    assert count(session_factory, WebhookLog) == 1


def test_crm_not_configured_is_500(app, client, crm):
    app.dependency_overrides[crm_dependency] = lambda: None

    response = client.post('/webhooks/ringcx-disposition', json=webhook())

    assert response.status_code == 500
    assert response.json() == {'success': False, 'error': 'CRM integration not configured'}


def test_call_log_failure_is_fatal(client, crm, session_factory):
    crm.fail.add('create_call')

    response = client.post('/webhooks/ringcx-disposition', json=webhook())

    assert response.status_code == 500
    assert response.json()['error'].startswith('Failed to create call engagement')
    assert crm.notes == []
    assert count(session_factory, CallRecording) == 0


def test_note_failure_is_reported_not_raised(client, crm, session_factory):
    crm.fail.add('create_note')

    response = client.post('/webhooks/ringcx-disposition', json=webhook())

    assert response.status_code == 200
    steps = {step['step']: step for step in response.json()['steps']}
    assert steps['note']['ok'] is False
    assert 'create_note' in steps['note']['error']
    assert recording(session_factory).backup_status == 'pending'


def test_redelivery_overwrites_backup_row(client, session_factory):
    client.post('/webhooks/ringcx-disposition', json=webhook())
    client.post('/webhooks/ringcx-disposition', json=webhook(agent_disposition='Booked Test'))

    assert count(session_factory, CallRecording) == 1
    assert recording(session_factory).disposition == 'Booked Test'


def test_non_json_body_is_400(client):
    response = client.post(
        '/webhooks/ringcx-disposition', content=b'not json', headers={'Content-Type': 'application/json'}
    )

    assert response.status_code == 400
    assert response.json()['success'] is False


def test_placeholder_call_id_writes_no_backup_row(client, crm, session_factory):
    first = client.post('/webhooks/ringcx-disposition', json=webhook(call_id='#uii#'))
    second = client.post(
        '/webhooks/ringcx-disposition',
        json=webhook(call_id='#uii#', recording_url='https://ringcx.test/rec/other.wav'),
    )

    assert first.status_code == 200
    assert second.status_code == 200
    assert len(crm.calls) == 2
    assert count(session_factory, CallRecording) == 0
    with session_factory() as session:
        logged_ids = session.scalars(select(WebhookLog.call_id)).all()
    assert logged_ids == [None, None]
