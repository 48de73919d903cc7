import pytest
from django.urls import reverse

from portal.exceptions import EnvelopeError, FormInvalid
from portal.services.directory import (MANAGER_LOCATION_REQUIRED, STAFF_FIELDS_REQUIRED, PatientDirectory,
                                       parse_page, staff_payload)

pytestmark = pytest.mark.django_db

PATIENTS = {'items': [{'_id': 'p1', 'empId': 'AB1234', 'PatientName': 'Jane Doe'}], 'total': 41}
STAFF = {
    'empId': 'S001',
    'name': 'Nurse Joy',
    'email': 'joy@clinic.test',
    'password': 'P@ssw0rd1',
    'role': 'staff',
    'locationId': 'LOC1',
}


def test_page_shapes():
    assert parse_page(PATIENTS, page=1, limit=20).total == 41
    enveloped = parse_page({'success': True, 'data': [{'_id': 'p1'}]}, page=2, limit=20)
    assert enveloped.items == [{'_id': 'p1'}]
    assert enveloped.total == 1
    with pytest.raises(EnvelopeError):
        parse_page({'data': {'items': []}}, page=1, limit=20)
    with pytest.raises(EnvelopeError):
        parse_page([{'_id': 'p1'}], page=1, limit=20)


def test_blank_patient_search_is_not_sent(upstream, dropdown):
    assert PatientDirectory(dropdown).search('  ') == []
    assert upstream.calls == []


def test_patient_edit_needs_a_name(upstream, dropdown):
    with pytest.raises(FormInvalid):
        PatientDirectory(dropdown).update('p1', {'PatientName': ' '})
    assert upstream.calls == []


def test_staff_payload_rules():
    assert staff_payload(STAFF, creating=True) == STAFF
    with pytest.raises(FormInvalid) as exc:
        staff_payload({**STAFF, 'password': ''}, creating=True)
    assert exc.value.message == STAFF_FIELDS_REQUIRED

    update = staff_payload({**STAFF, 'password': ''}, creating=False)
    assert 'password' not in update

    with pytest.raises(FormInvalid) as exc:
        staff_payload({**STAFF, 'role': 'manager'}, creating=True)
    assert exc.value.message == MANAGER_LOCATION_REQUIRED
    manager = staff_payload({**STAFF, 'role': 'manager', 'managerLocation': ['Camp A', '']}, creating=True)
    assert manager['managerLocation'] == ['Camp A']
    assert 'managerLocation' not in staff_payload({**STAFF, 'managerLocation': ['Camp A']}, creating=True)


# ---------------------------------------------------------------------------
# views
# ---------------------------------------------------------------------------

def test_patient_directory_pages(signed_in, upstream):
    upstream.on('GET', '/patients', PATIENTS)

    r = signed_in.get(reverse('patient_collection'), {'q': 'jane', 'page': 3})

    assert r.status_code == 200
    assert r.data['data'] == {'items': PATIENTS['items'], 'total': 41, 'page': 3, 'limit': 20}
    call = upstream.calls[0]
    assert call.host == 'dropdown.test'
    assert call.params == {'page': 3, 'limit': 20, 'q': 'jane'}


def test_patient_search(signed_in, upstream):
    upstream.on('GET', '/patients/all', [{'_id': 'p1', 'PatientName': 'Jane Doe'}])

    r = signed_in.get(reverse('patient_search'), {'q': 'AB12'})

    assert r.data['data'] == [{'_id': 'p1', 'PatientName': 'Jane Doe'}]
    assert upstream.calls[0].params == {'q': 'AB12'}


def test_patient_edit_goes_upstream(signed_in, upstream):
    upstream.on('PUT', '/patients/p1', {'_id': 'p1'})

    r = signed_in.put(reverse('patient_detail', args=['p1']), {
        'PatientName': 'Jane A. Doe', 'mobileNumber': '0509999999',
    }, format='json')

    assert r.status_code == 200
    assert upstream.calls[0].json == {
        'PatientName': 'Jane A. Doe',
        'emiratesId': '',
        'insuranceId': '',
        'trLocation': '',
        'mobileNumber': '0509999999',
    }


def test_failed_patient_edit_is_a_toast(signed_in, upstream):
    upstream.on('PUT', '/patients/p1', {'message': 'down'}, status=500)
    r = signed_in.put(reverse('patient_detail', args=['p1']), {'PatientName': 'Jane'}, format='json')
    assert r.status_code == 502
    assert r.data['error'] == {'code': 'submission_failed', 'message': 'Failed to update patient.'}


def test_staff_list_and_create(signed_in, upstream):
    upstream.on('GET', '/auth', {'items': [{'_id': 'u1', 'name': 'Nurse Joy'}], 'total': 1})
    upstream.on('POST', '/auth', {'_id': 'u2'})

    listed = signed_in.get(reverse('staff_collection'))
    created = signed_in.post(reverse('staff_collection'), STAFF, format='json')

    assert listed.data['data']['items'] == [{'_id': 'u1', 'name': 'Nurse Joy'}]
    assert created.status_code == 201
    sent = upstream.calls_to('POST', '/auth')[0]
    assert sent.host == 'curd.test'
    assert sent.json == STAFF


def test_staff_create_with_missing_fields(signed_in, upstream):
    r = signed_in.post(reverse('staff_collection'), {**STAFF, 'locationId': ''}, format='json')
    assert r.status_code == 400
    assert r.data['error']['message'] == STAFF_FIELDS_REQUIRED
    assert upstream.calls == []


def test_staff_update_keeps_the_password_unless_given(signed_in, upstream):
    upstream.on('PUT', '/auth/u1', {'_id': 'u1'})

    r = signed_in.put(reverse('staff_detail', args=['u1']), {**STAFF, 'password': ''}, format='json')

    assert r.status_code == 200
    assert 'password' not in upstream.calls[0].json
