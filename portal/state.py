"""
Per-session application state.

The upstream auth token and the signed-in user travel with the Django
session.  Views and consumers build an :class:`AppState` from the session
once (``hydrate``) and hand it to the services that need it, instead of
reading a global store.  ``clear`` is the logout path.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

SESSION_KEY = 'portal.auth'


@dataclass
class AppState:
    token: Optional[str] = None
    user: dict[str, Any] = field(default_factory=dict)
    profile: dict[str, Any] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def location_id(self) -> str:
        return str(self.user.get('locationId') or '')

    @property
    def display_name(self) -> str:
        return str(self.user.get('name') or self.profile.get('name') or '')

    @classmethod
    def hydrate(cls, session) -> 'AppState':
        raw = session.get(SESSION_KEY) if session is not None else None
        if not isinstance(raw, dict):
            return cls()
        return cls(
            token=raw.get('token') or None,
            user=dict(raw.get('user') or {}),
            profile=dict(raw.get('profile') or {}),
        )

    def sign_in(self, token: str, user: Optional[dict[str, Any]], *, email: str = '') -> None:
        self.token = token
        self.user = dict(user or {})
        if user:
            self.profile = {'name': user.get('name'), 'email': user.get('email')}
        else:
            self.profile = {'email': email}

    def persist(self, session) -> None:
        session[SESSION_KEY] = {'token': self.token, 'user': self.user, 'profile': self.profile}

    def clear(self, session=None) -> None:
        self.token = None
        self.user = {}
        self.profile = {}
        if session is not None:
            session.pop(SESSION_KEY, None)
