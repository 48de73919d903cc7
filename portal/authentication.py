"""
DRF authentication backed by the Django session.

The upstream bearer token is stored in the session at login.  A request is
authenticated when the session holds a token; there are no local user rows.
"""
from __future__ import annotations

from rest_framework import authentication

from portal.state import AppState


class PortalUser:
    """Signed-in user as reported by the CRUD API."""

    is_authenticated = True
    is_anonymous = False

    def __init__(self, state: AppState):
        self.state = state
        self.role = str(state.user.get('role') or '')
        self.email = str(state.user.get('email') or state.profile.get('email') or '')
        self.pk = str(state.user.get('_id') or state.user.get('id') or self.email)

    @property
    def name(self) -> str:
        return self.state.display_name

    @property
    def location_id(self) -> str:
        return self.state.location_id

    def __str__(self):
        return self.email or self.name


class SessionTokenAuthentication(authentication.SessionAuthentication):
    keyword = 'Session'

    def authenticate(self, request):
        session = getattr(request._request, 'session', None)
        state = AppState.hydrate(session)
        request._request.app_state = state
        if not state.is_authenticated:
            return None
        self.enforce_csrf(request)
        return PortalUser(state), state.token

    def authenticate_header(self, request):
        return self.keyword
