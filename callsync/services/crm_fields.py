"""
CRM Field Builder

Pure translation of a disposition form submission into CRM contact
properties, plus the per-category note text written alongside it.

Rules shared by every category:
- identity properties are only written when present, so an update
  never blanks an existing CRM value
- yes/no/blank radios become "Yes"/"No"/omitted (never False for blank)
- date inputs become UTC-midnight epoch milliseconds
- multi-select checkboxes are joined with ";"

Building properties never creates other CRM objects. The internal
sales deal is a separate step gated by ``wants_internal_sales_deal``.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Callable, Optional

from callsync.common.schemas import (
    BookWaterTestForm,
    CallBackForm,
    FormDisposition,
    NoAnswerForm,
    NotInterestedForm,
    OtherDepartmentForm,
    UnableToServiceForm,
    WrongNumberForm,
)
from callsync.services.timestamps import to_epoch_millis

PropertyValue = str | int | bool
Properties = dict[str, PropertyValue]

MULTI_SELECT_DELIMITER = ';'

# Form field -> CRM internal property name
CRM_FIELD_MAPPINGS = {
    # Standard contact properties
    'first_name': 'firstname',
    'last_name': 'lastname',
    'phone_number': 'phone',
    'email_address': 'email',
    'street_address': 'address',
    'city': 'city',
    'state_region': 'state',
    'postal_code': 'zip',

    # Custom properties
    'home_owner': 'n1__home_owner_',
    'mains_water': 'n1__mains_water_',
    'people_in_house': 'n1__number_of_people_in_the_house',
    'property_type': 'type_of_property',
    'partner_name': 'partners_name',
    'referred': 'n1__referred_',
    'referrers_name': 'n1__referrers_name',
    'strata': 'n1__strata',
    'water_concerns': 'water_concerns',
    'lead_status': 'hs_lead_status',
    'date_of_booking_call': 'date_water_test_booked',
    'water_test_day': 'water_test_day',
    'water_test_date': 'water_test_date',
    'water_test_time': 'water_test_time',
    'leads_rep': 'leads_rep',
    'available_from': 'available_from',
    'how_did_you_find_us': 'n1__how_did_you_find_out_about_us_',

    'follow_up_date': 'follow_up_date',
    'wants_followed_up': 'wants_followed_up__call_back',

    'advised_not_interested_reason': 'new_advised_not_interested__classification_',
    'contact_owner': 'hubspot_owner_id',
}

# Mutually exclusive list classification flags
LIST_CLASSIFICATION_PROPERTIES = {
    'amberlist': 'n1__amberlist___not_ready_now',
    'greylist': 'n1__greylist___advised_not_interested',
    'blacklist': 'n1__blacklist___do_not_contact',
}

LEAD_STATUS_VALUES = {
    'SL': 'IN_PROGRESS',  # single leg
    'DL': 'OPEN',         # double leg
}

WRONG_NUMBER_REASON = 'GREY- No response to Emails'

DEPARTMENT_LABELS = {
    'is': 'Internal Sales',
    'service': 'Service',
    'filters': 'Filters',
    'installs': 'Installs',
}


@dataclass(frozen=True)
class ContactOwners:
    """CRM owner ids assigned per disposition; empty means leave as is."""
    enquiries: str = ''
    call_back: str = ''
    unable_to_service: str = ''


def to_crm_boolean(value: str) -> Optional[str]:
    """Map a yes/no/blank radio to "Yes"/"No"/None."""
    if value == 'yes':
        return 'Yes'
    if value == 'no':
        return 'No'
    return None


def to_crm_date(value: str) -> Optional[int]:
    """
    Convert a local date string to UTC-midnight epoch milliseconds.

    Only the date part is used, so "2026-03-05" and
    "2026-03-05T14:00:00" give the same value. Unparseable input
    returns None and the property is omitted.
    """
    if not value:
        return None
    try:
        day = date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None
    return to_epoch_millis(datetime.combine(day, time(0, 0), tzinfo=timezone.utc))


def join_multi_select(values: list[str]) -> str:
    """Serialize checkbox values in the CRM multi-enum format."""
    return MULTI_SELECT_DELIMITER.join(values)


def split_multi_select(value: Optional[str]) -> list[str]:
    """Parse a CRM multi-enum value back into its items."""
    if not value:
        return []
    return [item.strip() for item in value.split(MULTI_SELECT_DELIMITER) if item.strip()]


def _set_if(properties: Properties, field: str, value) -> None:
    if value is not None and value != '':
        properties[CRM_FIELD_MAPPINGS[field]] = value


def _set_list_classification(properties: Properties, classification: str) -> None:
    prop = LIST_CLASSIFICATION_PROPERTIES.get(classification)
    if prop:
        properties[prop] = True


def _identity_properties(form) -> Properties:
    properties: Properties = {}
    _set_if(properties, 'first_name', form.first_name)
    _set_if(properties, 'last_name', form.last_name)
    _set_if(properties, 'phone_number', form.phone_number)
    _set_if(properties, 'email_address', form.email_address)
    return properties


def _book_water_test(form: BookWaterTestForm, properties: Properties, owners: ContactOwners):
    _set_if(properties, 'street_address', form.street_address)
    _set_if(properties, 'city', form.city)
    _set_if(properties, 'state_region', form.state_region)
    _set_if(properties, 'postal_code', form.postal_code)

    _set_if(properties, 'home_owner', to_crm_boolean(form.home_owner))
    _set_if(properties, 'mains_water', to_crm_boolean(form.mains_water))
    _set_if(properties, 'people_in_house', form.people_in_house)
    _set_if(properties, 'property_type', form.property_type)
    _set_if(properties, 'partner_name', form.partner_name)
    _set_if(properties, 'strata', to_crm_boolean(form.strata))

    _set_if(properties, 'referred', to_crm_boolean(form.referred))
    _set_if(properties, 'referrers_name', form.referrers_name)
    _set_if(properties, 'how_did_you_find_us', form.how_did_you_find_us)

    if form.water_concerns:
        _set_if(properties, 'water_concerns', join_multi_select(form.water_concerns))

    _set_if(properties, 'lead_status', LEAD_STATUS_VALUES.get(form.lead_status))

    _set_if(properties, 'date_of_booking_call', to_crm_date(form.date_of_booking_call))
    _set_if(properties, 'water_test_day', form.water_test_day)
    _set_if(properties, 'water_test_date', to_crm_date(form.water_test_date))
    # Arrives with seconds already, e.g. "11:00:00 AM"
    _set_if(properties, 'water_test_time', form.water_test_time)
    _set_if(properties, 'leads_rep', form.leads_rep)
    _set_if(properties, 'available_from', form.available_from)

    _set_if(properties, 'contact_owner', owners.enquiries)
    return properties


def _call_back(form: CallBackForm, properties: Properties, owners: ContactOwners):
    _set_if(properties, 'follow_up_date', to_crm_date(form.follow_up_date))
    _set_if(properties, 'wants_followed_up', to_crm_boolean(form.wants_followed_up))
    _set_if(properties, 'leads_rep', form.leads_rep)
    _set_if(properties, 'contact_owner', owners.call_back)
    return properties


def _not_interested(form: NotInterestedForm, properties: Properties, owners: ContactOwners):
    _set_list_classification(properties, form.list_classification)
    _set_if(properties, 'advised_not_interested_reason', form.advised_not_interested_reason)
    _set_if(properties, 'leads_rep', form.leads_rep)
    return properties


def _other_department(form: OtherDepartmentForm, properties: Properties, owners: ContactOwners):
    # Internal sales notes travel in the note and the deal, not on the contact
    return properties


def _unable_to_service(form: UnableToServiceForm, properties: Properties, owners: ContactOwners):
    _set_list_classification(properties, form.list_classification)
    _set_if(properties, 'advised_not_interested_reason', form.advised_not_interested_reason)

    if form.water_source:
        _set_if(properties, 'mains_water', to_crm_boolean('no'))
    if form.unable_to_service_sub_type == 'non_homeowner':
        _set_if(properties, 'home_owner', to_crm_boolean('no'))
    if form.unable_to_service_sub_type == 'incompatible_dwelling':
        _set_if(properties, 'property_type', form.property_type)

    _set_if(properties, 'leads_rep', form.leads_rep)
    _set_if(properties, 'contact_owner', owners.unable_to_service)
    return properties


def _no_answer(form: NoAnswerForm, properties: Properties, owners: ContactOwners):
    # The attempt is recorded in the note; contact counters are CRM automation
    return properties


def _wrong_number(form: WrongNumberForm, properties: Properties, owners: ContactOwners):
    _set_list_classification(properties, 'greylist')
    _set_if(properties, 'advised_not_interested_reason', WRONG_NUMBER_REASON)
    return properties


PROPERTY_BUILDERS: dict[FormDisposition, Callable] = {
    FormDisposition.BOOK_WATER_TEST: _book_water_test,
    FormDisposition.CALL_BACK: _call_back,
    FormDisposition.NOT_INTERESTED: _not_interested,
    FormDisposition.OTHER_DEPARTMENT: _other_department,
    FormDisposition.UNABLE_TO_SERVICE: _unable_to_service,
    FormDisposition.NO_ANSWER: _no_answer,
    FormDisposition.WRONG_NUMBER: _wrong_number,
}


def build_contact_properties(form, owners: Optional[ContactOwners] = None) -> Properties:
    """
    Build the CRM contact property set for a form submission.

    Args:
        form: Validated form submission (one of the per-category models)
        owners: Contact owner ids to assign per category

    Returns:
        dict: CRM property name -> value, with absent fields omitted
    """
    builder = PROPERTY_BUILDERS[FormDisposition(form.disposition)]
    return builder(form, _identity_properties(form), owners or ContactOwners())


def wants_internal_sales_deal(form) -> bool:
    """True when the agent transferred to internal sales and asked for a deal."""
    return (
        isinstance(form, OtherDepartmentForm)
        and form.other_department == 'is'
        and form.create_is_deal == 'yes'
    )


def _book_water_test_note(form: BookWaterTestForm) -> list[str]:
    parts = ['Disposition: Book Water Test']
    if form.lead_status:
        parts.append(f'Lead Status: {form.lead_status}')
    if form.water_test_date:
        parts.append(f'Test Date: {form.water_test_date}')
    if form.water_test_time:
        parts.append(f'Test Time: {form.water_test_time}')
    return parts


def _call_back_note(form: CallBackForm) -> list[str]:
    parts = ['Disposition: Call Back']
    if form.call_back_sub_type == 'reschedule':
        parts.append('Reason: Reschedule')
    elif form.call_back_sub_type == 'follow_up':
        parts.append('Reason: Follow Up')
    if form.follow_up_date:
        parts.append(f'Follow Up Date: {form.follow_up_date}')
    return parts


def _not_interested_note(form: NotInterestedForm) -> list[str]:
    parts = ['Disposition: Not Interested']
    if form.advised_not_interested_reason:
        parts.append(f'Reason: {form.advised_not_interested_reason}')
    if form.list_classification:
        parts.append(f'List: {form.list_classification.capitalize()}')
    return parts


def _other_department_note(form: OtherDepartmentForm) -> list[str]:
    parts = ['Disposition: Other Department']
    if form.other_department:
        department = DEPARTMENT_LABELS.get(form.other_department, form.other_department)
        parts.append(f'Transferred to: {department}')
    if form.notes_for_internal_sales:
        parts.append(f'Notes: {form.notes_for_internal_sales}')
    return parts


def _unable_to_service_note(form: UnableToServiceForm) -> list[str]:
    parts = ['Disposition: Unable to Service']
    sub_type = form.unable_to_service_sub_type
    if sub_type == 'water_source':
        parts.append('Reason: Non-Mains Water')
        if form.water_source:
            parts.append(f'Water Source: {form.water_source}')
    elif sub_type == 'non_homeowner':
        parts.append('Reason: Non-Homeowner')
    elif sub_type == 'incompatible_dwelling':
        parts.append('Reason: Incompatible Dwelling')
        if form.property_type:
            parts.append(f'Property Type: {form.property_type}')
    if form.advised_not_interested_reason:
        parts.append(f'Classification: {form.advised_not_interested_reason}')
    return parts


def _no_answer_note(form: NoAnswerForm) -> list[str]:
    attempt = 'Voicemail Left' if form.no_answer_sub_type == 'voicemail' else 'No Answer'
    return ['Disposition: No Answer', f'Call Attempt: {attempt}']


def _wrong_number_note(form: WrongNumberForm) -> list[str]:
    kind = 'Wrong Person' if form.wrong_number_sub_type == 'wrong_person' else 'Invalid Number'
    return ['Disposition: Wrong Number', f'Unreachable: {kind}']


NOTE_TEMPLATES: dict[FormDisposition, Callable] = {
    FormDisposition.BOOK_WATER_TEST: _book_water_test_note,
    FormDisposition.CALL_BACK: _call_back_note,
    FormDisposition.NOT_INTERESTED: _not_interested_note,
    FormDisposition.OTHER_DEPARTMENT: _other_department_note,
    FormDisposition.UNABLE_TO_SERVICE: _unable_to_service_note,
    FormDisposition.NO_ANSWER: _no_answer_note,
    FormDisposition.WRONG_NUMBER: _wrong_number_note,
}


def build_note_content(form) -> str:
    """Render the disposition summary note, with agent notes appended."""
    parts = NOTE_TEMPLATES[FormDisposition(form.disposition)](form)
    if form.notes:
        parts.append(f'\nAgent Notes: {form.notes}')
    return ' | '.join(parts)
