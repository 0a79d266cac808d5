from callsync.services.contact_resolver import resolve_contact


async def test_explicit_id_is_used_without_search(crm):
    resolution = await resolve_contact(crm, {'firstname': 'Ann'}, explicit_id='42', email='ann@example.com')

    assert resolution.contact_id == '42'
    assert resolution.created is False
    assert resolution.matched_by == 'id'
    assert crm.searches == []
    assert crm.contact_updates == [('42', {'firstname': 'Ann'})]


async def test_email_match_wins_over_phone(crm):
    crm.add_contact('1', email='ann@example.com')
    crm.add_contact('2', phone='+61412345678')

    resolution = await resolve_contact(
        crm, {'lastname': 'Lee'}, email='ann@example.com', phone='+61412345678'
    )

    assert resolution.contact_id == '1'
    assert resolution.matched_by == 'email'
    assert crm.searches == [('email', 'ann@example.com')]


async def test_phone_match_when_email_unknown(crm):
    crm.add_contact('2', phone='+61412345678')

    resolution = await resolve_contact(crm, {}, email='new@example.com', phone='+61412345678')

    assert resolution.contact_id == '2'
    assert resolution.matched_by == 'phone'
    # nothing to write, so no update call
    assert crm.contact_updates == []


async def test_phone_match_is_exact(crm):
    crm.add_contact('2', phone='0412345678')

    resolution = await resolve_contact(crm, {'phone': '+61412345678'}, phone='+61412345678')

    assert resolution.created is True
    assert resolution.contact_id != '2'
    assert crm.created_contacts == [{'phone': '+61412345678'}]
