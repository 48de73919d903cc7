"""
Login, session refresh and logout.

The upstream token never reaches the browser; it is kept in the Django
session and attached to upstream calls server side.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny

from portal.exceptions import AuthError
from portal.serializers.auth import LoginSerializer
from portal.services import auth as auth_service
from portal.state import AppState

from .common import app_state, ok


def _session_payload(state: AppState) -> dict:
    return {
        'authenticated': state.is_authenticated,
        'user': state.user or None,
        'profile': state.profile or None,
    }


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def login_view(request):
    """GET reports the current session; POST signs in with email and password."""
    state = app_state(request)
    if request.method == 'GET':
        return ok(_session_payload(state))
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        auth_service.login(state, s.validated_data['email'], s.validated_data['password'])
    except AuthError:
        state.clear(request.session)
        raise
    request.session.cycle_key()
    state.persist(request.session)
    return ok(_session_payload(state))

# DRF ScopedRateThrottle uses throttle_scope on the view function
login_view.throttle_scope = 'login'


@api_view(['POST'])
def refresh_view(request):
    state = app_state(request)
    try:
        auth_service.refresh(state)
    except AuthError:
        state.clear(request.session)
        raise
    state.persist(request.session)
    return ok(_session_payload(state))


@api_view(['POST'])
@permission_classes([AllowAny])
def logout_view(request):
    auth_service.logout(app_state(request), request.session)
    request.session.flush()
    return ok({'authenticated': False})


@api_view(['GET'])
def me_view(request):
    return ok(_session_payload(app_state(request)))
