"""
Patient master directory: paged list, quick search and edit.
"""
from __future__ import annotations

from rest_framework.decorators import api_view

from portal.serializers.directory import DirectoryQuerySerializer, PatientEditSerializer, PatientSearchQuerySerializer
from portal.services.directory import PatientDirectory

from .common import dropdown, ok


@api_view(['GET'])
def patient_collection(request):
    q = DirectoryQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    page = PatientDirectory(dropdown(request)).list(q=vd['q'], page=vd['page'], limit=vd['limit'])
    return ok(page.to_dict())


@api_view(['GET'])
def patient_search(request):
    q = PatientSearchQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return ok(PatientDirectory(dropdown(request)).search(q.validated_data['q']))

patient_search.throttle_scope = 'lookup'


@api_view(['PUT'])
def patient_detail(request, patient_id):
    s = PatientEditSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return ok(PatientDirectory(dropdown(request)).update(patient_id, s.validated_data))
