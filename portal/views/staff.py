"""
Staff accounts, kept by the CRUD API under ``/auth``.
"""
from __future__ import annotations

from rest_framework.decorators import api_view

from portal.serializers.directory import DirectoryQuerySerializer, StaffSerializer
from portal.services.directory import StaffDirectory

from .common import curd, ok


@api_view(['GET', 'POST'])
def staff_collection(request):
    directory = StaffDirectory(curd(request))
    if request.method == 'POST':
        s = StaffSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        return ok(directory.create(s.validated_data), status=201)
    q = DirectoryQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    return ok(directory.list(q=vd['q'], page=vd['page'], limit=vd['limit']).to_dict())


@api_view(['PUT'])
def staff_detail(request, user_id):
    s = StaffSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return ok(StaffDirectory(curd(request)).update(user_id, s.validated_data))
