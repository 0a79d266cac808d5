from datetime import datetime, timezone

from callsync.services import recording_store


def test_health(client):
    assert client.get('/health').json() == {'status': 'healthy'}


def test_recording_stream_redirects_to_presigned_url(client, session_factory):
    file_id = 'recordings/2026/01/2026-01-29_1839_Josh-W_Left-Voicemail_+61412345678.wav'
    with session_factory() as session:
        recording_store.upsert_call_recording(session, {
            'call_id': 'C-100',
            'call_start': datetime(2026, 1, 29, 18, 39, tzinfo=timezone.utc),
            'backup_status': 'uploaded',
            'storage_file_id': file_id,
        })

    response = client.get('/recording-stream', params={'id': file_id}, follow_redirects=False)

    assert response.status_code == 307
    assert response.headers['location'] == f'https://s3.test/bucket/{file_id}?X-Amz-Signature=test'


def test_recording_stream_unknown_id_is_404(client):
    response = client.get('/recording-stream', params={'id': 'recordings/nope.wav'}, follow_redirects=False)

    assert response.status_code == 404
    assert response.json() == {'success': False, 'error': 'Recording not found'}
