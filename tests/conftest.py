"""
Pytest configuration and fixtures: in-memory SQLite, settings without
an .env file, and hand-written fakes for the CRM, recording fetcher
and object storage.
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from callsync.api import (
    create_app,
    crm_dependency,
    fetcher_dependency,
    storage_dependency,
)
from callsync.common.config import Settings
from callsync.common.db import create_db_engine, create_session_factory
from callsync.common.errors import CrmRequestError, RecordingFetchError
from callsync.common.init_db import create_tables

NOW = datetime(2026, 1, 29, 18, 45, tzinfo=timezone.utc)


class FakeCrm:
    """In-memory CRM recording every write."""

    def __init__(self):
        self.contacts: dict[str, dict] = {}
        self.calls: list[dict] = []
        self.call_updates: list[tuple[str, dict]] = []
        self.notes: list[dict] = []
        self.deals: list[dict] = []
        self.contact_updates: list[tuple[str, dict]] = []
        self.created_contacts: list[dict] = []
        self.searches: list[tuple[str, str]] = []
        self.fail: set[str] = set()
        self._next_id = 1000

    def _id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    def _maybe_fail(self, operation: str):
        if operation in self.fail:
            raise CrmRequestError(f'CRM {operation} failed', status=500)

    def add_contact(self, contact_id: str, **properties) -> None:
        self.contacts[contact_id] = {'id': contact_id, 'properties': properties}

    async def get_contact(self, contact_id, properties=None):
        self._maybe_fail('get_contact')
        return self.contacts.get(contact_id)

    async def search_contact(self, property_name, value):
        self.searches.append((property_name, value))
        for contact_id, contact in self.contacts.items():
            if contact['properties'].get(property_name) == value:
                return contact_id
        return None

    async def create_contact(self, properties):
        self._maybe_fail('create_contact')
        contact_id = self._id()
        self.created_contacts.append(properties)
        self.contacts[contact_id] = {'id': contact_id, 'properties': dict(properties)}
        return contact_id

    async def update_contact(self, contact_id, properties):
        self._maybe_fail('update_contact')
        self.contact_updates.append((contact_id, properties))

    async def create_call(self, properties, contact_id):
        self._maybe_fail('create_call')
        call_id = self._id()
        self.calls.append({'id': call_id, 'contact_id': contact_id, 'properties': properties})
        return call_id

    async def update_call(self, call_id, properties):
        self._maybe_fail('update_call')
        self.call_updates.append((call_id, properties))

    async def create_note(self, body, timestamp_ms, contact_id):
        self._maybe_fail('create_note')
        note_id = self._id()
        self.notes.append({'id': note_id, 'body': body, 'timestamp': timestamp_ms, 'contact_id': contact_id})
        return note_id

    async def create_deal(self, properties, contact_id):
        self._maybe_fail('create_deal')
        deal_id = self._id()
        self.deals.append({'id': deal_id, 'properties': properties, 'contact_id': contact_id})
        return deal_id


class FakeFetcher:
    """Returns canned audio, or raises for URLs listed in ``failures``."""

    def __init__(self, audio: bytes = b'RIFF....WAVEfmt '):
        self.audio = audio
        self.requested: list[str] = []
        self.failures: dict[str, str] = {}

    async def fetch(self, url):
        self.requested.append(url)
        if url in self.failures:
            raise RecordingFetchError(self.failures[url])
        return self.audio, 'audio/wav'


class FakeStorage:
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.public: set[str] = set()
        self.acl_fails = False

    def upload(self, file_name, data, when, content_type='audio/wav'):
        key = f"recordings/{when:%Y/%m}/{file_name}"
        self.objects[key] = data
        return key, f"https://s3.test/bucket/{key}"

    def make_public(self, file_id):
        if self.acl_fails:
            return False
        self.public.add(file_id)
        return True

    def presigned_url(self, file_id):
        return f"https://s3.test/bucket/{file_id}?X-Amz-Signature=test"

    def owns(self, file_id):
        return file_id.startswith('recordings/')


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        hubspot_access_token='test-token',
        ringcx_access_token='ringcx-token',
        database_url='sqlite:///:memory:',
        public_base_url='https://callsync.test',
        backup_max_attempts=3,
        backup_batch_size=10,
    )


@pytest.fixture
def session_factory():
    engine = create_db_engine('sqlite:///:memory:')
    create_tables(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def crm():
    return FakeCrm()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def app(settings, session_factory, crm, fetcher, storage):
    app = create_app(settings, session_factory)
    app.dependency_overrides[crm_dependency] = lambda: crm
    app.dependency_overrides[fetcher_dependency] = lambda: fetcher
    app.dependency_overrides[storage_dependency] = lambda: storage
    return app


@pytest.fixture
def client(app):
    return TestClient(app)
