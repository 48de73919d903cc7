"""
Suggestion search and employee-by-number lookup over REST.

The live form session does the same work over the WebSocket with
debouncing; these endpoints serve one-off lookups.
"""
from __future__ import annotations

from rest_framework.decorators import api_view

from portal.serializers.lookup import SnapSerializer, SuggestionQuerySerializer
from portal.services.lookup import EmployeeLookup, SuggestionClient, normalize_emp_no, snap_to_option

from .common import app_state, dropdown, ok, patient_store


@api_view(['GET'])
def suggestions(request):
    q = SuggestionQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    items = SuggestionClient(dropdown(request)).search(q.validated_data['category'], q.validated_data['q'])
    return ok(items)

suggestions.throttle_scope = 'lookup'


@api_view(['POST'])
def snap(request):
    s = SnapSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    return ok({'value': snap_to_option(vd['value'], vd['items'], strict=vd['strict'])})


@api_view(['GET'])
def employee(request, emp_no):
    """Employee details for a full-length employee number.

    A number of any other length is not looked up.  Every call fetches;
    repeat suppression belongs to the live form session.  When the upstream
    already has a patient record for the employee, the session remembers
    it so a later hospital or isolation save updates instead of creating.
    """
    client = dropdown(request)
    lookup = EmployeeLookup(client, location_id=app_state(request).location_id)
    emp_no = normalize_emp_no(emp_no)
    if not lookup.is_complete(emp_no):
        return ok({'empNo': emp_no, 'employee': None, 'error': None})
    result = lookup.fetch(emp_no)
    if result is None:
        return ok({'empNo': emp_no, 'employee': None, 'error': lookup.error})
    store = patient_store(request)
    reconciler = store.reconciler_for(emp_no, client)
    if reconciler.adopt(result):
        store.save(emp_no, reconciler)
    return ok({'empNo': emp_no, 'employee': result.to_dict(), 'error': None})

employee.throttle_scope = 'lookup'
