"""
Helpers shared by the portal views.
"""
from __future__ import annotations

from rest_framework.response import Response

from portal.services.patients import PatientSyncStore
from portal.services.upstream import curd_client, dropdown_client
from portal.state import AppState


def ok(data=None, status=200) -> Response:
    return Response({'ok': True, 'data': data}, status=status)


def app_state(request) -> AppState:
    state = getattr(request._request, 'app_state', None)
    return state if state is not None else AppState.hydrate(request.session)


def curd(request):
    return curd_client(app_state(request))


def dropdown(request):
    return dropdown_client(app_state(request))


def patient_store(request) -> PatientSyncStore:
    return PatientSyncStore(request.session)
