"""
Clinic visit endpoints.
"""
from __future__ import annotations

from rest_framework.decorators import api_view

from portal.serializers.records import ClinicSearchQuerySerializer, FormValuesSerializer
from portal.services.forms import ClinicFormState
from portal.services.records import ClinicService

from .common import curd, ok


@api_view(['GET', 'POST'])
def clinic_collection(request):
    if request.method == 'POST':
        return _create(request)
    q = ClinicSearchQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    page = ClinicService(curd(request)).search(
        page=vd['page'],
        limit=vd['limit'],
        emp_no=vd['empNo'],
        date=vd['date'].isoformat() if vd['date'] else '',
        visit_status=vd['visitStatus'],
        role=getattr(request.user, 'role', ''),
    )
    return ok(page.to_dict())


def _create(request):
    s = FormValuesSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    form = ClinicFormState(values=s.validated_data['values'])
    saved = ClinicService(curd(request)).create(form)
    return ok(saved, status=201)


@api_view(['GET', 'PUT'])
def clinic_detail(request, clinic_id):
    service = ClinicService(curd(request))
    if request.method == 'GET':
        return ok(service.get(clinic_id))
    s = FormValuesSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return ok(service.update(clinic_id, ClinicFormState(values=s.validated_data['values'])))
