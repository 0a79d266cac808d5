"""
Contact Resolver

Finds or creates the CRM contact a disposition form refers to:
explicit id, else exact email match, else exact phone match, else a new
contact. There is no fuzzy matching, so the same person stored with a
differently formatted phone number is not found and gets a new contact.
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContactResolution:
    contact_id: str
    created: bool
    matched_by: str  # 'id', 'email', 'phone' or 'created'


async def find_contact(crm, email: Optional[str], phone: Optional[str]) -> tuple[Optional[str], str]:
    """Search by email, then by phone. Returns (contact id or None, matched field)."""
    if email:
        contact_id = await crm.search_contact('email', email)
        if contact_id:
            return contact_id, 'email'
    if phone:
        contact_id = await crm.search_contact('phone', phone)
        if contact_id:
            return contact_id, 'phone'
    return None, ''


async def resolve_contact(
    crm,
    properties: dict,
    explicit_id: Optional[str] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
) -> ContactResolution:
    """
    Resolve the contact and write the property set to it.

    An existing contact is updated with ``properties``; otherwise a
    contact is created from them.

    Args:
        crm: CRM client
        properties: Contact properties built from the submission
        explicit_id: Contact id from the caller's context, used without lookup
        email: Email to search by
        phone: Phone to search by

    Returns:
        ContactResolution: Resolved contact id and how it was found

    Raises:
        CrmRequestError: If a CRM call fails
    """
    if explicit_id:
        contact_id, matched_by = explicit_id, 'id'
    else:
        contact_id, matched_by = await find_contact(crm, email, phone)

    if contact_id:
        if properties:
            await crm.update_contact(contact_id, properties)
        logger.info("Contact %s updated (matched by %s)", contact_id, matched_by)
        return ContactResolution(contact_id, created=False, matched_by=matched_by)

    contact_id = await crm.create_contact(properties)
    logger.info("Contact %s created", contact_id)
    return ContactResolution(contact_id, created=True, matched_by='created')
