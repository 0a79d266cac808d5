"""
HubSpot CRM Client

Thin async wrapper over the CRM v3 object endpoints used by callsync:
contacts (get, search, create, update), calls, notes and deals.

Every request is a single attempt. Non-2xx responses and transport
failures raise ``CrmRequestError``; deciding whether that is fatal is
the caller's job.
"""

import logging
from typing import Any, Optional

import httpx

from callsync.common.config import Settings
from callsync.common.errors import CrmNotConfiguredError, CrmRequestError

logger = logging.getLogger(__name__)

# HUBSPOT_DEFINED association type ids
CALL_TO_CONTACT = 194
NOTE_TO_CONTACT = 202
DEAL_TO_CONTACT = 3


def _association(contact_id: str, type_id: int) -> list[dict]:
    return [{
        'to': {'id': contact_id},
        'types': [{
            'associationCategory': 'HUBSPOT_DEFINED',
            'associationTypeId': type_id,
        }],
    }]


class HubSpotClient:
    """Async CRM client bound to one access token."""

    def __init__(
        self,
        access_token: str,
        base_url: str = 'https://api.hubapi.com',
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={'Authorization': f'Bearer {access_token}'},
        )

    async def __aenter__(self) -> 'HubSpotClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        allow_not_found: bool = False,
    ) -> Optional[dict[str, Any]]:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as ex:
            raise CrmRequestError(f'CRM request {method} {path} failed: {ex}') from ex

        if allow_not_found and response.status_code == 404:
            return None
        if response.is_error:
            body = response.text
            logger.error("CRM %s %s failed: %s %s", method, path, response.status_code, body)
            raise CrmRequestError(
                f'CRM {method} {path} returned {response.status_code}: {body}',
                status=response.status_code,
                body=body,
            )
        if not response.content:
            return {}
        return response.json()

    # Contacts

    async def get_contact(
        self, contact_id: str, properties: tuple[str, ...] = ('firstname', 'lastname', 'phone')
    ) -> Optional[dict]:
        """Fetch a contact, or None when it does not exist."""
        return await self._request(
            'GET',
            f'/crm/v3/objects/contacts/{contact_id}',
            params={'properties': ','.join(properties)},
            allow_not_found=True,
        )

    async def search_contact(self, property_name: str, value: str) -> Optional[str]:
        """Return the id of the first contact whose property equals value."""
        data = await self._request('POST', '/crm/v3/objects/contacts/search', json={
            'filterGroups': [{
                'filters': [{
                    'propertyName': property_name,
                    'operator': 'EQ',
                    'value': value,
                }],
            }],
            'limit': 1,
        })
        results = (data or {}).get('results') or []
        return str(results[0]['id']) if results else None

    async def create_contact(self, properties: dict) -> str:
        data = await self._request('POST', '/crm/v3/objects/contacts', json={'properties': properties})
        return str(data['id'])

    async def update_contact(self, contact_id: str, properties: dict) -> None:
        await self._request(
            'PATCH', f'/crm/v3/objects/contacts/{contact_id}', json={'properties': properties}
        )

    # Activities

    async def create_call(self, properties: dict, contact_id: str) -> str:
        data = await self._request('POST', '/crm/v3/objects/calls', json={
            'properties': properties,
            'associations': _association(contact_id, CALL_TO_CONTACT),
        })
        return str(data['id'])

    async def update_call(self, call_id: str, properties: dict) -> None:
        await self._request(
            'PATCH', f'/crm/v3/objects/calls/{call_id}', json={'properties': properties}
        )

    async def create_note(self, body: str, timestamp_ms: int, contact_id: str) -> str:
        data = await self._request('POST', '/crm/v3/objects/notes', json={
            'properties': {
                'hs_note_body': body,
                'hs_timestamp': timestamp_ms,
            },
            'associations': _association(contact_id, NOTE_TO_CONTACT),
        })
        return str(data['id'])

    # Deals

    async def create_deal(self, properties: dict, contact_id: str) -> str:
        data = await self._request('POST', '/crm/v3/objects/deals', json={
            'properties': properties,
            'associations': _association(contact_id, DEAL_TO_CONTACT),
        })
        return str(data['id'])


def build_hubspot_client(settings: Settings) -> HubSpotClient:
    """
    Construct a CRM client from settings.

    Raises:
        CrmNotConfiguredError: If no access token is configured
    """
    if not settings.hubspot_access_token:
        raise CrmNotConfiguredError()
    return HubSpotClient(
        settings.hubspot_access_token,
        base_url=settings.hubspot_api_base,
        timeout=settings.hubspot_timeout_seconds,
    )
