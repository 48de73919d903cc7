import asyncio

import pytest

from portal.constants import EMPLOYEE_LOOKUP_ERROR, PRIMARY_DIAGNOSIS
from portal.services.lookup import (DebouncedSuggestions, EmployeeLookup, SuggestionClient, normalize_emp_no,
                                    snap_to_option)

FEVERS = {'success': True, 'data': [
    {'_id': '1', 'name': 'Fever', 'category': PRIMARY_DIAGNOSIS},
    {'_id': '2', 'name': 'Fever, unspecified', 'category': PRIMARY_DIAGNOSIS},
    {'_id': '3', 'name': 'Febrile convulsion', 'category': PRIMARY_DIAGNOSIS},
]}

JANE = {
    '_id': 'p1',
    'PatientName': 'Jane Doe',
    'emiratesId': '784-1111',
    'insuranceId': 'INS-9',
    'mobileNumber': '0501234567',
    'trLocation': 'Camp A',
}


# ---------------------------------------------------------------------------
# suggestions
# ---------------------------------------------------------------------------

def test_suggestions_query_the_category(upstream, dropdown):
    upstream.on('GET', '/professions', FEVERS)
    items = SuggestionClient(dropdown, limit=5).search(PRIMARY_DIAGNOSIS, ' fe ')
    assert items == ['Fever', 'Fever, unspecified', 'Febrile convulsion']
    call = upstream.calls[0]
    assert call.host == 'dropdown.test'
    assert call.params == {'category': PRIMARY_DIAGNOSIS, 'search': 'fe', 'limit': 5}
    assert call.headers['Authorization'] == 'Bearer t1'


def test_suggestions_are_capped_at_the_limit(upstream, dropdown):
    upstream.on('GET', '/professions', FEVERS)
    assert SuggestionClient(dropdown, limit=2).search(PRIMARY_DIAGNOSIS, 'fe') == ['Fever', 'Fever, unspecified']


@pytest.mark.parametrize('query', ['', '   '])
def test_blank_query_never_hits_the_network(upstream, dropdown, query):
    assert SuggestionClient(dropdown).search(PRIMARY_DIAGNOSIS, query) == []
    assert upstream.calls == []


@pytest.mark.parametrize('status, body', [
    (500, {'message': 'boom'}),
    (200, {'items': []}),
    (None, None),
])
def test_suggestion_failures_are_an_empty_list(upstream, dropdown, status, body):
    upstream.on('GET', '/professions', body, status=status)
    assert SuggestionClient(dropdown).search(PRIMARY_DIAGNOSIS, 'fe') == []


# ---------------------------------------------------------------------------
# snapping on blur
# ---------------------------------------------------------------------------

def test_strict_field_takes_canonical_spelling():
    assert snap_to_option('fever', ['Fever', 'Fever, unspecified']) == 'Fever'


def test_strict_field_without_a_match_is_cleared():
    assert snap_to_option('fev', ['Fever']) == ''


def test_strict_field_is_left_alone_while_loading():
    assert snap_to_option('fev', [], loading=True) == 'fev'


def test_free_text_field_keeps_what_was_typed():
    assert snap_to_option('fev', ['Fever'], strict=False) == 'fev'


# ---------------------------------------------------------------------------
# debounced lookups
# ---------------------------------------------------------------------------

class Recorder:
    def __init__(self):
        self.searched = []
        self.delivered = []

    def search(self, category, query):
        self.searched.append((category, query))
        return [query.upper()]

    async def on_result(self, field, query, items):
        self.delivered.append((field, query, items))


def test_newer_request_supersedes_the_pending_one():
    rec = Recorder()

    async def scenario():
        s = DebouncedSuggestions(rec.search, rec.on_result, delay_ms=20)
        s.request('primaryDiagnosis', PRIMARY_DIAGNOSIS, 'fe')
        await asyncio.sleep(0)
        await s.request('primaryDiagnosis', PRIMARY_DIAGNOSIS, 'fever')
        return s

    s = asyncio.run(scenario())
    assert rec.searched == [(PRIMARY_DIAGNOSIS, 'fever')]
    assert rec.delivered == [('primaryDiagnosis', 'fever', ['FEVER'])]
    assert s.latest == {'primaryDiagnosis': ['FEVER']}
    assert not s.is_loading('primaryDiagnosis')


def test_fields_are_debounced_independently():
    rec = Recorder()

    async def scenario():
        s = DebouncedSuggestions(rec.search, rec.on_result, delay_ms=10)
        first = s.request('primaryDiagnosis', PRIMARY_DIAGNOSIS, 'fe')
        second = s.request('secondaryDiagnosis.0', PRIMARY_DIAGNOSIS, 'co')
        await asyncio.gather(first, second)

    asyncio.run(scenario())
    assert sorted(field for field, _, _ in rec.delivered) == ['primaryDiagnosis', 'secondaryDiagnosis.0']


def test_empty_query_clears_without_searching():
    rec = Recorder()

    async def scenario():
        s = DebouncedSuggestions(rec.search, rec.on_result, delay_ms=10)
        await s.request('primaryDiagnosis', PRIMARY_DIAGNOSIS, '  ')

    asyncio.run(scenario())
    assert rec.searched == []
    assert rec.delivered == [('primaryDiagnosis', '  ', [])]


def test_close_cancels_pending_lookups():
    rec = Recorder()

    async def scenario():
        s = DebouncedSuggestions(rec.search, rec.on_result, delay_ms=1000)
        task = s.request('primaryDiagnosis', PRIMARY_DIAGNOSIS, 'fe')
        await asyncio.sleep(0)
        assert s.is_loading('primaryDiagnosis')
        await s.close()
        return task

    task = asyncio.run(scenario())
    assert task.cancelled()
    assert rec.searched == []
    assert rec.delivered == []


# ---------------------------------------------------------------------------
# employee lookup
# ---------------------------------------------------------------------------

def test_normalize_emp_no():
    assert normalize_emp_no(' ab1234 ') == 'AB1234'
    assert normalize_emp_no(None) == ''


def test_lookup_fires_once_per_number(upstream, dropdown):
    upstream.on('GET', '/patients/emp/AB1234', JANE)
    lookup = EmployeeLookup(dropdown, location_id='LOC1')

    result = lookup.on_emp_no_changed(' ab1234')
    assert result.employee_fields() == {
        'empNo': 'AB1234',
        'employeeName': 'Jane Doe',
        'emiratesId': '784-1111',
        'insuranceId': 'INS-9',
        'mobileNumber': '0501234567',
        'trLocation': 'Camp A',
    }
    assert result.patient_id == 'p1'

    assert lookup.on_emp_no_changed('AB1234') is None
    assert lookup.on_emp_no_changed('ab1234 ') is None
    assert len(upstream.calls) == 1


@pytest.mark.parametrize('value', ['AB123', 'AB12345', ''])
def test_lookup_waits_for_the_full_length(upstream, dropdown, value):
    assert EmployeeLookup(dropdown).on_emp_no_changed(value) is None
    assert upstream.calls == []


def test_lookup_falls_back_to_the_users_location(upstream, dropdown):
    upstream.on('GET', '/patients/emp/AB1234', {**JANE, 'trLocation': '', '_id': None})
    result = EmployeeLookup(dropdown, location_id='LOC1').on_emp_no_changed('AB1234')
    assert result.tr_location == 'LOC1'
    assert result.patient_id is None


def test_lookup_failure_sets_the_error_and_allows_a_retry(upstream, dropdown):
    upstream.on('GET', '/patients/emp/AB1234', {'message': 'down'}, status=503)
    upstream.on('GET', '/patients/emp/AB1234', JANE)
    lookup = EmployeeLookup(dropdown)

    assert lookup.on_emp_no_changed('AB1234') is None
    assert lookup.error == EMPLOYEE_LOOKUP_ERROR
    assert lookup.last_fetched is None

    assert lookup.on_emp_no_changed('AB1234').employee_name == 'Jane Doe'
    assert lookup.error is None


def test_reset_forgets_the_last_number(upstream, dropdown):
    upstream.on('GET', '/patients/emp/AB1234', JANE)
    lookup = EmployeeLookup(dropdown)
    lookup.on_emp_no_changed('AB1234')
    lookup.reset()
    assert lookup.should_fetch('AB1234')


def test_fetch_alone_does_not_mark_the_number(upstream, dropdown):
    upstream.on('GET', '/patients/emp/AB1234', JANE)
    lookup = EmployeeLookup(dropdown)

    assert lookup.fetch('AB1234').employee_name == 'Jane Doe'
    assert lookup.should_fetch('AB1234')

    lookup.mark_applied('ab1234')
    assert not lookup.should_fetch('AB1234')
    assert lookup.is_complete('AB1234')
