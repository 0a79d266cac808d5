"""
Pydantic payload types for the two inbound surfaces: the telephony
disposition webhook and the agent disposition form.

The form is a closed tagged union on ``disposition``: each category is
its own model carrying only the fields that category uses, so an
unknown category fails validation at the boundary.
"""

import enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

YesNo = Literal['yes', 'no', '']
ListClassification = Literal['amberlist', 'greylist', 'blacklist', '']


class RingCXWebhookPayload(BaseModel):
    """
    Telephony disposition webhook.

    Every value may arrive as an unresolved ``#placeholder#``; callers
    run optional fields through ``resolve_field`` before use.
    """
    model_config = ConfigDict(extra='allow', coerce_numbers_to_str=True)

    call_id: Optional[str] = None
    call_duration: Optional[str] = None
    call_start: Optional[str] = None
    call_direction: Optional[str] = None

    agent_id: Optional[str] = None
    agent_username: Optional[str] = None
    agent_first_name: Optional[str] = None
    agent_last_name: Optional[str] = None
    agent_extern_id: Optional[str] = None

    extern_id: Optional[str] = None
    ani: Optional[str] = None
    dnis: Optional[str] = None

    # Present only on the webhook fired after the agent submits a disposition
    agent_disposition: Optional[str] = None
    disposition: Optional[str] = None

    notes: Optional[str] = None
    summary: Optional[str] = None
    recording_url: Optional[str] = None
    account_id: Optional[str] = None


class FormDisposition(str, enum.Enum):
    """Disposition categories offered by the agent form."""
    BOOK_WATER_TEST = 'book_water_test'
    CALL_BACK = 'call_back'
    NOT_INTERESTED = 'not_interested'
    OTHER_DEPARTMENT = 'other_department'
    UNABLE_TO_SERVICE = 'unable_to_service'
    NO_ANSWER = 'no_answer'
    WRONG_NUMBER = 'wrong_number'


class ContactInfo(BaseModel):
    """Lead context the form was opened with."""
    model_config = ConfigDict(extra='ignore', coerce_numbers_to_str=True)

    contact_id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    agent_id: Optional[str] = None


class _FormBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
        coerce_numbers_to_str=True,
    )

    first_name: str = ''
    last_name: str = ''
    phone_number: str = ''
    email_address: str = ''
    postcode: str = ''
    leads_rep: str = ''
    notes: str = ''
    timestamp: str = ''
    contact_info: Optional[ContactInfo] = None

    @model_validator(mode='before')
    @classmethod
    def _drop_nulls(cls, data):
        # The form posts null for untouched inputs; treat them as blank
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class BookWaterTestForm(_FormBase):
    disposition: Literal['book_water_test']

    street_address: str = ''
    city: str = ''
    state_region: str = ''
    postal_code: str = ''
    home_owner: YesNo = ''
    mains_water: YesNo = ''
    people_in_house: str = ''
    property_type: str = ''
    partner_name: str = ''
    referred: YesNo = ''
    referrers_name: str = ''
    strata: YesNo = ''
    water_concerns: list[str] = Field(default_factory=list)
    lead_status: Literal['SL', 'DL', ''] = ''
    date_of_booking_call: str = ''
    water_test_day: str = ''
    water_test_date: str = ''
    water_test_time: str = ''
    available_from: str = ''
    how_did_you_find_us: str = ''


class CallBackForm(_FormBase):
    disposition: Literal['call_back']

    call_back_sub_type: str = ''
    follow_up_date: str = ''
    wants_followed_up: YesNo = ''


class NotInterestedForm(_FormBase):
    disposition: Literal['not_interested']

    not_interested_sub_type: str = ''
    list_classification: ListClassification = ''
    advised_not_interested_reason: str = ''


class OtherDepartmentForm(_FormBase):
    disposition: Literal['other_department']

    other_department: str = ''
    create_is_deal: YesNo = ''
    notes_for_internal_sales: str = ''


class UnableToServiceForm(_FormBase):
    disposition: Literal['unable_to_service']

    unable_to_service_sub_type: str = ''
    water_source: str = ''
    property_type: str = ''
    list_classification: ListClassification = ''
    advised_not_interested_reason: str = ''


class NoAnswerForm(_FormBase):
    disposition: Literal['no_answer']

    no_answer_sub_type: str = ''


class WrongNumberForm(_FormBase):
    disposition: Literal['wrong_number']

    wrong_number_sub_type: str = ''


FormSubmission = Annotated[
    Union[
        BookWaterTestForm,
        CallBackForm,
        NotInterestedForm,
        OtherDepartmentForm,
        UnableToServiceForm,
        NoAnswerForm,
        WrongNumberForm,
    ],
    Field(discriminator='disposition'),
]

form_submission_adapter: TypeAdapter = TypeAdapter(FormSubmission)
