"""
Sign-in against the CRUD API.

The login answer is ``{"token": ..., "user": {...}}``, optionally wrapped
once in the standard envelope.  Anything else is a failed login.
"""
from __future__ import annotations

import logging
from typing import Any

from portal.exceptions import AuthError, UpstreamError
from portal.services.upstream import Envelope, UpstreamClient, curd_client
from portal.state import AppState

logger = logging.getLogger(__name__)

LOGIN_FAILED = 'Invalid credentials or server error.'
SESSION_EXPIRED = 'Your session has expired. Please sign in again.'


def parse_auth_response(body: Any) -> tuple[str, dict]:
    payload = Envelope.parse(body, expect=dict).data if Envelope.is_envelope(body) else body
    if not isinstance(payload, dict):
        raise AuthError(LOGIN_FAILED)
    token = payload.get('token')
    user = payload.get('user')
    if not isinstance(token, str) or not token:
        raise AuthError(LOGIN_FAILED)
    if user is not None and not isinstance(user, dict):
        raise AuthError(LOGIN_FAILED)
    return token, user or {}


def login(state: AppState, email: str, password: str, *, client: UpstreamClient | None = None) -> AppState:
    state.clear()
    client = client or curd_client()
    try:
        token, user = parse_auth_response(client.post('/auth/login', json={'email': email, 'password': password}))
    except UpstreamError as exc:
        logger.info('login failed for %s: %s', email, exc.message)
        raise AuthError(LOGIN_FAILED) from exc
    except AuthError:
        logger.info('login for %s returned an unexpected body', email)
        raise
    state.sign_in(token, user, email=email)
    logger.info('signed in %s', email)
    return state


def refresh(state: AppState, *, client: UpstreamClient | None = None) -> AppState:
    if not state.is_authenticated:
        raise AuthError(SESSION_EXPIRED)
    client = client or curd_client(state)
    try:
        token, user = parse_auth_response(client.post('/auth/refresh'))
    except (UpstreamError, AuthError) as exc:
        logger.info('session refresh failed: %s', exc.message)
        state.clear()
        raise AuthError(SESSION_EXPIRED) from exc
    state.sign_in(token, user or state.user)
    return state


def logout(state: AppState, session=None) -> None:
    state.clear(session)
