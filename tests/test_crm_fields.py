import pytest
from pydantic import ValidationError

from callsync.common.schemas import (
    BookWaterTestForm,
    CallBackForm,
    OtherDepartmentForm,
    form_submission_adapter,
)
from callsync.services.crm_fields import (
    ContactOwners,
    LIST_CLASSIFICATION_PROPERTIES,
    build_contact_properties,
    build_note_content,
    join_multi_select,
    split_multi_select,
    to_crm_boolean,
    to_crm_date,
    wants_internal_sales_deal,
)


def parse(**payload):
    return form_submission_adapter.validate_python(payload)


def test_form_union_picks_model_by_disposition():
    form = parse(disposition='call_back', firstName='Ann', followUpDate='2026-03-05')
    assert isinstance(form, CallBackForm)
    assert form.first_name == 'Ann'
    assert form.follow_up_date == '2026-03-05'


def test_unknown_disposition_fails_validation():
    with pytest.raises(ValidationError):
        parse(disposition='abducted')


def test_null_inputs_are_blank():
    form = parse(disposition='book_water_test', firstName=None, homeOwner=None)
    assert form.first_name == ''
    assert form.home_owner == ''


def test_multi_select_round_trip():
    assert join_multi_select(['A', 'B']) == 'A;B'
    assert split_multi_select('A;B') == ['A', 'B']
    assert split_multi_select(' A ; B ') == ['A', 'B']
    assert split_multi_select(join_multi_select(['Taste', 'Hardness', 'Smell'])) == [
        'Taste', 'Hardness', 'Smell',
    ]
    assert split_multi_select('') == []


def test_tri_state_boolean():
    assert to_crm_boolean('yes') == 'Yes'
    assert to_crm_boolean('no') == 'No'
    assert to_crm_boolean('') is None


def test_dates_become_utc_midnight_millis():
    assert to_crm_date('2026-03-05') == 1772668800000
    assert to_crm_date('2026-03-05T14:00:00') == 1772668800000
    assert to_crm_date('not a date') is None
    assert to_crm_date('') is None


def test_identity_properties_only_when_present():
    props = build_contact_properties(parse(disposition='no_answer', firstName='Ann', email=''))
    assert props == {'firstname': 'Ann'}


def test_book_water_test_properties():
    form = parse(
        disposition='book_water_test',
        firstName='Ann',
        lastName='Lee',
        phoneNumber='+61412345678',
        emailAddress='ann@example.com',
        homeOwner='yes',
        mainsWater='no',
        strata='',
        waterConcerns=['Taste', 'Smell'],
        leadStatus='SL',
        waterTestDate='2026-03-05',
        waterTestTime='11:00:00 AM',
    )
    assert isinstance(form, BookWaterTestForm)

    props = build_contact_properties(form, ContactOwners(enquiries='77'))

    assert props['firstname'] == 'Ann'
    assert props['email'] == 'ann@example.com'
    assert props['n1__home_owner_'] == 'Yes'
    assert props['n1__mains_water_'] == 'No'
    assert 'n1__strata' not in props
    assert props['water_concerns'] == 'Taste;Smell'
    assert props['hs_lead_status'] == 'IN_PROGRESS'
    assert props['water_test_date'] == 1772668800000
    assert props['water_test_time'] == '11:00:00 AM'
    assert props['hubspot_owner_id'] == '77'


def test_owner_not_set_when_unconfigured():
    props = build_contact_properties(parse(disposition='call_back', wantsFollowedUp='yes'))
    assert 'hubspot_owner_id' not in props
    assert props['wants_followed_up__call_back'] == 'Yes'


@pytest.mark.parametrize("disposition", ['not_interested', 'unable_to_service'])
@pytest.mark.parametrize("classification", ['amberlist', 'greylist', 'blacklist', ''])
def test_at_most_one_list_flag(disposition, classification):
    props = build_contact_properties(parse(disposition=disposition, listClassification=classification))
    flags = [prop for prop in LIST_CLASSIFICATION_PROPERTIES.values() if prop in props]
    if classification:
        assert flags == [LIST_CLASSIFICATION_PROPERTIES[classification]]
    else:
        assert flags == []


def test_wrong_number_always_greylisted_with_reason():
    props = build_contact_properties(parse(disposition='wrong_number', wrongNumberSubType='invalid'))
    assert props['n1__greylist___advised_not_interested'] is True
    assert props['new_advised_not_interested__classification_'] == 'GREY- No response to Emails'


def test_unable_to_service_non_homeowner():
    props = build_contact_properties(parse(
        disposition='unable_to_service', unableToServiceSubType='non_homeowner',
    ))
    assert props['n1__home_owner_'] == 'No'
    assert 'n1__mains_water_' not in props


def test_internal_sales_deal_gate():
    wants = parse(disposition='other_department', otherDepartment='is', createIsDeal='yes')
    no_deal = parse(disposition='other_department', otherDepartment='is', createIsDeal='no')
    service = parse(disposition='other_department', otherDepartment='service', createIsDeal='yes')

    assert isinstance(wants, OtherDepartmentForm)
    assert wants_internal_sales_deal(wants) is True
    assert wants_internal_sales_deal(no_deal) is False
    assert wants_internal_sales_deal(service) is False
    # building properties never implies a deal write
    assert build_contact_properties(wants) == {}


def test_note_content_per_category():
    note = build_note_content(parse(
        disposition='not_interested',
        advisedNotInterestedReason='Price',
        listClassification='amberlist',
        notes='Call in spring',
    ))
    assert note == 'Disposition: Not Interested | Reason: Price | List: Amberlist | \nAgent Notes: Call in spring'


def test_note_for_transfer_uses_department_label():
    note = build_note_content(parse(
        disposition='other_department', otherDepartment='is', notesForInternalSales='Wants a quote',
    ))
    assert note == 'Disposition: Other Department | Transferred to: Internal Sales | Notes: Wants a quote'
