"""
Happiness survey endpoints.

Eligibility is checked against the CRUD API; an eligible employee's
details are prefilled from the patient master.
"""
from __future__ import annotations

from rest_framework.decorators import api_view

from portal.constants import ELIGIBILITY_CHECK_ERROR
from portal.serializers.survey import SurveySubmitSerializer
from portal.services.forms import HappinessSurveyState
from portal.services.lookup import EmployeeLookup
from portal.services.records import SurveyService

from .common import app_state, curd, dropdown, ok


def _surveyor(request) -> str:
    return app_state(request).display_name


@api_view(['GET'])
def survey_eligibility(request, emp_no):
    eligibility = SurveyService(curd(request)).lookup_eligibility(emp_no)
    if eligibility is None:
        return ok({'eligible': None, 'lastSurveyDate': None, 'nextEligibleDate': None, 'message': '',
                   'employee': None, 'error': ELIGIBILITY_CHECK_ERROR})
    data = eligibility.to_dict()
    data['employee'] = None
    data['error'] = None
    if eligibility.eligible:
        lookup = EmployeeLookup(dropdown(request), location_id=app_state(request).location_id)
        result = lookup.on_emp_no_changed(emp_no)
        data['employee'] = result.to_dict() if result else None
        data['error'] = lookup.error
    return ok(data)

survey_eligibility.throttle_scope = 'lookup'


@api_view(['POST'])
def survey_submit(request):
    s = SurveySubmitSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    form = HappinessSurveyState(values=s.validated_data['values'])
    service = SurveyService(curd(request))
    surveyor = _surveyor(request)
    saved = service.submit(form, surveyor)
    return ok({
        'record': saved,
        'happinessScore': form['happinessScore'],
        'todayCount': service.count_for(form['surveyor']),
    }, status=201)


@api_view(['GET'])
def survey_count(request):
    return ok({'count': SurveyService(curd(request)).count_for(_surveyor(request))})
