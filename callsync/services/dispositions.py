"""
Disposition Mapper

Maps the free-form disposition labels agents pick in the telephony
provider onto the canonical taxonomy, and each canonical disposition
onto the CRM's call disposition GUID.

This table is the single source of truth for provider-to-CRM
dispositions. An unmapped label aborts webhook processing: defaulting
would silently corrupt CRM call reporting.
"""

import enum
import re

from callsync.common.errors import UnmappedDispositionError


class CallDisposition(str, enum.Enum):
    """Canonical call dispositions, each carrying its CRM GUID."""

    def __new__(cls, key: str, crm_id: str, label: str):
        member = str.__new__(cls, key)
        member._value_ = key
        member.crm_id = crm_id
        member.label = label
        return member

    CONNECTED = ('connected', 'f240bbac-87c9-4f6e-bf70-924b57d47db7', 'Connected')
    BOOKED_TEST = ('booked_test', 'f72848b8-6063-4591-9832-a4e4604864f5', 'Booked Test')
    BOOKED_TEST_SINGLE_LEG = (
        'booked_test_single_leg', '0823d714-3974-4bb4-a65a-ecf3596f49ac',
        'Booked Test - Single Leg',
    )
    NO_ANSWER = ('no_answer', '73a0d17f-1163-4015-bdd5-ec830791da20', 'No Answer')
    WRONG_NUMBER = ('wrong_number', '17b47fee-58de-441e-a44c-c6300d46f273', 'Wrong Number')
    NOT_INTERESTED = ('not_interested', '5e8c009f-db89-4e1a-9c9a-429b45faf0c0', 'Not Interested')
    BUSY = ('busy', '9d9162e7-6cf3-4944-bf63-4dff82258764', 'Busy')
    LEFT_LIVE_MESSAGE = (
        'left_live_message', 'a4c4c377-d246-4b32-a13b-75a56a4cd0ff', 'Left Live Message',
    )
    LEFT_VOICEMAIL = ('left_voicemail', 'b2cf5968-551e-4856-9783-52b3da59a7d0', 'Left Voicemail')
    UNABLE_TO_SERVICE = (
        'unable_to_service', '109bdbfc-6552-40e0-8eb2-0e58c13208a1', 'Unable To Service',
    )
    OTHER_DEPARTMENTS = (
        'other_departments', 'c5067c48-aaf1-4f67-9c56-6a749b666817', 'Other Departments',
    )
    NEEDS_CALL_BACK = ('needs_call_back', '4aa8b662-f76e-4557-8a24-ffae50519382', 'Needs Call Back')
    RO_ONLY = ('ro_only', 'ba63d1f1-e3ef-400a-a3c0-c6e1f1a5d6a4', 'RO Only')
    NEW_BUILD = ('new_build', '21467e3f-24c5-4b82-9e37-e918d77d2c48', 'New Build')
    WATER_SOURCE = ('water_source', 'a8a9584b-366a-4a68-a185-21ce4181d78c', 'Water Source')
    PHONE_PITCH_CHF = ('phone_pitch_chf', '6c20cc50-781f-4543-a773-d4698f649bcf', 'Phone Pitch - CHF')
    WANTS_FOLLOW_UP = ('wants_follow_up', '937b1e0e-ab79-49c8-9e8f-a5efd6966c3f', 'Wants Follow Up')
    INTERNAL_CLOSED_DEAL = (
        'internal_closed_deal', 'def5ec8d-b566-413c-b558-e4a39884ab8b', 'Internal - Closed Deal',
    )
    INTERNAL_DEPOSIT_TAKEN = (
        'internal_deposit_taken', '5f7f3f43-e0d0-4c03-ba44-09894047c474',
        'Internal - Deposit Taken',
    )
    NOT_QUALIFIED = ('not_qualified', '7cb0159d-1cc0-4f56-919e-e1231a7be7af', 'Not Qualified')
    DO_NOT_CALL = ('do_not_call', 'df11c246-3ff0-45da-b77b-35baaf3e7238', 'Do Not Call')


# Normalized synonym -> canonical disposition. Every canonical key maps to itself.
DISPOSITION_SYNONYMS: dict[str, CallDisposition] = {
    **{member.value: member for member in CallDisposition},

    'booked': CallDisposition.BOOKED_TEST,
    'book_water_test': CallDisposition.BOOKED_TEST,
    'booked_water_test': CallDisposition.BOOKED_TEST,

    'booked_single_leg': CallDisposition.BOOKED_TEST_SINGLE_LEG,
    'single_leg': CallDisposition.BOOKED_TEST_SINGLE_LEG,

    'noanswer': CallDisposition.NO_ANSWER,
    'na': CallDisposition.NO_ANSWER,
    'no_response': CallDisposition.NO_ANSWER,

    'wrongnumber': CallDisposition.WRONG_NUMBER,
    'wrong': CallDisposition.WRONG_NUMBER,
    'invalid_number': CallDisposition.WRONG_NUMBER,

    'not_intrested': CallDisposition.NOT_INTERESTED,  # common misspelling
    'ni': CallDisposition.NOT_INTERESTED,

    'live_message': CallDisposition.LEFT_LIVE_MESSAGE,

    'voicemail': CallDisposition.LEFT_VOICEMAIL,
    'leftvoicemail': CallDisposition.LEFT_VOICEMAIL,
    'vm': CallDisposition.LEFT_VOICEMAIL,
    'left_vm': CallDisposition.LEFT_VOICEMAIL,

    'cannot_service': CallDisposition.UNABLE_TO_SERVICE,
    'out_of_area': CallDisposition.UNABLE_TO_SERVICE,

    'other_department': CallDisposition.OTHER_DEPARTMENTS,
    'transfer': CallDisposition.OTHER_DEPARTMENTS,

    'call_back': CallDisposition.NEEDS_CALL_BACK,
    'callback': CallDisposition.NEEDS_CALL_BACK,

    'ro': CallDisposition.RO_ONLY,

    'newbuild': CallDisposition.NEW_BUILD,

    'watersource': CallDisposition.WATER_SOURCE,

    'phone_pitch': CallDisposition.PHONE_PITCH_CHF,
    'phonepitch': CallDisposition.PHONE_PITCH_CHF,

    'follow_up': CallDisposition.WANTS_FOLLOW_UP,
    'followup': CallDisposition.WANTS_FOLLOW_UP,

    'closed_deal': CallDisposition.INTERNAL_CLOSED_DEAL,

    'deposit_taken': CallDisposition.INTERNAL_DEPOSIT_TAKEN,
    'deposit': CallDisposition.INTERNAL_DEPOSIT_TAKEN,

    'notqualified': CallDisposition.NOT_QUALIFIED,
    'nq': CallDisposition.NOT_QUALIFIED,

    'donotcall': CallDisposition.DO_NOT_CALL,
    'dnc': CallDisposition.DO_NOT_CALL,
    'do_not_register': CallDisposition.DO_NOT_CALL,
}


def normalize_disposition_label(label: str) -> str:
    """Lowercase and collapse whitespace/hyphen runs to underscores."""
    return re.sub(r'[\s\-]+', '_', label.strip().lower())


def map_disposition(label: str) -> CallDisposition:
    """
    Map a provider disposition label to its canonical disposition.

    Args:
        label: Raw label, e.g. "Left Voicemail" or "not-intrested"

    Returns:
        CallDisposition: Canonical disposition

    Raises:
        UnmappedDispositionError: If the normalized label is unknown
    """
    normalized = normalize_disposition_label(label or '')
    try:
        return DISPOSITION_SYNONYMS[normalized]
    except KeyError:
        raise UnmappedDispositionError(label, normalized, DISPOSITION_SYNONYMS) from None
