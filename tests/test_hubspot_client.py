import json

import httpx
import pytest

from callsync.common.errors import CrmNotConfiguredError, CrmRequestError
from callsync.services.hubspot_client import HubSpotClient, build_hubspot_client


def make_client(handler):
    return HubSpotClient('secret', base_url='https://crm.test', transport=httpx.MockTransport(handler))


async def test_create_call_sends_association_and_auth():
    seen = {}

    def handler(request):
        seen['auth'] = request.headers['Authorization']
        seen['path'] = request.url.path
        seen['body'] = json.loads(request.content)
        return httpx.Response(201, json={'id': '901'})

    async with make_client(handler) as client:
        call_id = await client.create_call({'hs_call_status': 'COMPLETED'}, '42')

    assert call_id == '901'
    assert seen['auth'] == 'Bearer secret'
    assert seen['path'] == '/crm/v3/objects/calls'
    association = seen['body']['associations'][0]
    assert association['to'] == {'id': '42'}
    assert association['types'][0]['associationTypeId'] == 194


async def test_note_uses_note_association():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={'id': '5'})

    async with make_client(handler) as client:
        await client.create_note('hello', 1769711940000, '42')

    assert bodies[0]['properties'] == {'hs_note_body': 'hello', 'hs_timestamp': 1769711940000}
    assert bodies[0]['associations'][0]['types'][0]['associationTypeId'] == 202


async def test_get_contact_returns_none_on_404():
    async with make_client(lambda request: httpx.Response(404, json={})) as client:
        assert await client.get_contact('missing') is None


async def test_search_contact_returns_first_id():
    def handler(request):
        body = json.loads(request.content)
        assert body['filterGroups'][0]['filters'][0] == {
            'propertyName': 'email', 'operator': 'EQ', 'value': 'ann@example.com',
        }
        return httpx.Response(200, json={'total': 1, 'results': [{'id': 77}]})

    async with make_client(handler) as client:
        assert await client.search_contact('email', 'ann@example.com') == '77'


async def test_error_status_raises_with_body():
    async with make_client(lambda request: httpx.Response(400, text='bad property')) as client:
        with pytest.raises(CrmRequestError) as exc_info:
            await client.update_contact('42', {'nope': 1})

    assert exc_info.value.status == 400
    assert exc_info.value.body == 'bad property'
    assert exc_info.value.status_code == 500


async def test_transport_error_raises_request_error():
    def handler(request):
        raise httpx.ConnectError('refused', request=request)

    async with make_client(handler) as client:
        with pytest.raises(CrmRequestError):
            await client.create_contact({'firstname': 'Ann'})


def test_build_client_requires_token(settings):
    with pytest.raises(CrmNotConfiguredError):
        build_hubspot_client(settings.model_copy(update={'hubspot_access_token': None}))
