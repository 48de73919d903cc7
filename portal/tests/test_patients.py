import pytest

from portal.exceptions import FormInvalid, PatientCreateError
from portal.services.forms import HospitalFormState, IsolationFormState
from portal.services.lookup import EmployeeLookupResult
from portal.services.patients import (PATIENT_CREATE_ERROR, PatientRecordReconciler, PatientSyncStore,
                                      SyncOutcome)
from portal.services.records import HospitalService, IsolationService

JANE = {'empNo': '123456', 'employeeName': 'Jane Doe', 'emiratesId': '784-1111'}


def hospital_form(**values):
    return HospitalFormState(values={**JANE, **values})


class SessionDict(dict):
    modified = False


def test_submit_creates_the_patient_before_the_hospital_record(upstream, curd, dropdown):
    upstream.on('POST', '/patients', {'success': True, 'data': {'_id': 'p1'}})
    upstream.on('POST', '/hospital', {'success': True, 'data': {'_id': 'h1'}})
    reconciler = PatientRecordReconciler(dropdown)

    result = HospitalService(curd).submit(hospital_form(), reconciler)

    assert upstream.paths() == [('POST', '/patients'), ('POST', '/hospital')]
    assert [c.host for c in upstream.calls] == ['dropdown.test', 'curd.test']
    assert upstream.calls[0].json == {
        'empNo': '123456',
        'PatientName': 'Jane Doe',
        'emiratesId': '784-1111',
        'insuranceId': '',
        'mobileNumber': '',
        'trLocation': '',
    }
    assert result == {'record': {'_id': 'h1'}, 'patientId': 'p1', 'patientSync': 'created'}


def test_resubmitting_never_creates_the_patient_twice(upstream, curd, dropdown):
    upstream.on('POST', '/patients', {'_id': 'p1'})
    upstream.on('POST', '/hospital', {'_id': 'h1'})
    reconciler = PatientRecordReconciler(dropdown)
    service = HospitalService(curd)

    service.submit(hospital_form(), reconciler)
    result = service.submit(hospital_form(), reconciler)

    assert result['patientSync'] == 'unchanged'
    assert len(upstream.calls_to('POST', '/patients')) == 1
    assert upstream.calls_to('PUT', '/patients/p1') == []
    assert len(upstream.calls_to('POST', '/hospital')) == 2


def test_changed_employee_fields_update_the_patient(upstream, curd, dropdown):
    upstream.on('POST', '/patients', {'_id': 'p1'})
    upstream.on('PUT', '/patients/p1', {'_id': 'p1'})
    upstream.on('POST', '/hospital', {'_id': 'h1'})
    reconciler = PatientRecordReconciler(dropdown)
    service = HospitalService(curd)

    service.submit(hospital_form(), reconciler)
    result = service.submit(hospital_form(mobileNumber='0509999999'), reconciler)

    assert result['patientSync'] == 'updated'
    put = upstream.calls_to('PUT', '/patients/p1')[0]
    assert put.json['mobileNumber'] == '0509999999'
    assert 'empNo' not in put.json


def test_failed_patient_update_does_not_block_the_save(upstream, curd, dropdown):
    upstream.on('PUT', '/patients/p1', {'message': 'nope'}, status=500)
    upstream.on('POST', '/isolation', {'_id': 'i1'})
    reconciler = PatientRecordReconciler(dropdown, patient_id='p1')
    form = IsolationFormState(values={**JANE, 'clinicVisitId': 'c1', 'siNo': '1', 'createdBy': 'Nurse Joy'})

    result = IsolationService(curd).submit(form, reconciler)

    assert result['patientSync'] == 'failed'
    assert result['record'] == {'_id': 'i1'}
    assert upstream.paths() == [('PUT', '/patients/p1'), ('POST', '/isolation')]


@pytest.mark.parametrize('status, body', [
    (500, {'message': 'duplicate'}),
    (200, {'success': True, 'data': {}}),
    (None, None),
])
def test_failed_patient_create_aborts_the_save(upstream, curd, dropdown, status, body):
    upstream.on('POST', '/patients', body, status=status)
    upstream.on('POST', '/hospital', {'_id': 'h1'})
    reconciler = PatientRecordReconciler(dropdown)

    with pytest.raises(PatientCreateError) as exc:
        HospitalService(curd).submit(hospital_form(), reconciler)

    assert exc.value.message == PATIENT_CREATE_ERROR
    assert upstream.calls_to('POST', '/hospital') == []
    assert reconciler.patient_id is None


def test_invalid_form_is_rejected_before_any_request(upstream, curd, dropdown):
    with pytest.raises(FormInvalid):
        HospitalService(curd).submit(HospitalFormState(values={'empNo': '123456'}), PatientRecordReconciler(dropdown))
    assert upstream.calls == []


def test_create_needs_number_and_name(upstream, dropdown):
    reconciler = PatientRecordReconciler(dropdown)
    assert reconciler.ensure_synced({'empNo': '123456'}) is SyncOutcome.SKIPPED
    assert upstream.calls == []


def test_create_failure_can_be_ignored(upstream, dropdown):
    upstream.on('POST', '/patients', {'message': 'down'}, status=502)
    reconciler = PatientRecordReconciler(dropdown)
    assert reconciler.ensure_synced(JANE, on_create_failure='ignore') is SyncOutcome.FAILED


def test_adopted_patient_is_updated_not_created(upstream, dropdown):
    upstream.on('PUT', '/patients/p9', {'_id': 'p9'})
    reconciler = PatientRecordReconciler(dropdown)
    found = EmployeeLookupResult(emp_no='123456', employee_name='Jane Doe', emirates_id='784-1111',
                                 patient_id='p9')

    assert reconciler.adopt(found)
    assert reconciler.ensure_synced(JANE) is SyncOutcome.UNCHANGED
    assert reconciler.ensure_synced({**JANE, 'employeeName': 'Jane A. Doe'}) is SyncOutcome.UPDATED
    assert upstream.paths() == [('PUT', '/patients/p9')]


def test_patient_of_another_employee_is_not_updated(upstream, dropdown):
    upstream.on('POST', '/patients', {'_id': 'p2'})
    reconciler = PatientRecordReconciler(dropdown)
    reconciler.adopt(EmployeeLookupResult(emp_no='123456', employee_name='Jane Doe', patient_id='p1'))
    assert reconciler.belongs_to('123456')

    outcome = reconciler.ensure_synced({'empNo': '654321', 'employeeName': 'Bob Roe'})

    assert outcome is SyncOutcome.CREATED
    assert reconciler.patient_id == 'p2'
    assert reconciler.belongs_to('654321')
    assert upstream.paths() == [('POST', '/patients')]


def test_lookup_without_a_patient_is_not_adopted(dropdown):
    reconciler = PatientRecordReconciler(dropdown)
    assert not reconciler.adopt(EmployeeLookupResult(emp_no='123456'))
    assert reconciler.patient_id is None


def test_sync_store_round_trips_through_the_session(dropdown):
    session = SessionDict()
    store = PatientSyncStore(session)
    reconciler = PatientRecordReconciler(dropdown, patient_id='p1', snapshot={'empNo': '123456'})

    store.save(' 123456 ', reconciler)

    assert session.modified
    restored = store.reconciler_for('123456', dropdown)
    assert restored.patient_id == 'p1'
    assert restored.snapshot == {'empNo': '123456'}
    assert store.reconciler_for('654321', dropdown).patient_id is None


def test_sync_store_ignores_unsaved_patients(dropdown):
    session = SessionDict()
    PatientSyncStore(session).save('123456', PatientRecordReconciler(dropdown))
    assert PatientSyncStore.SESSION_KEY not in session
