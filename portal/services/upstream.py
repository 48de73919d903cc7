"""
HTTP access to the upstream REST services.

Two services are consumed: the CRUD API (clinic, hospital, isolation,
auth, surveys) and the dropdown API (option lists, suggestions, patient
master records).  Both speak JSON; every request carries the signed-in
user's bearer token when one is known.

Response bodies are parsed through :class:`Envelope`, which accepts exactly
one declared shape per call and raises :class:`EnvelopeError` otherwise.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from portal.exceptions import EnvelopeError, UpstreamError

logger = logging.getLogger(__name__)

ENVELOPE_KEYS = frozenset({'success', 'data', 'count', 'message', 'meta', 'pagination', 'total', 'page', 'limit'})


@dataclass(frozen=True)
class Envelope:
    """``{"success": bool, "data": ..., ...}`` as returned by the upstream APIs."""

    data: Any
    success: bool = True
    message: str = ''
    meta: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def is_envelope(body: Any) -> bool:
        return isinstance(body, dict) and 'data' in body and set(body) <= ENVELOPE_KEYS

    @classmethod
    def parse(cls, body: Any, *, expect: type | tuple[type, ...] | None = dict, bare: bool = False) -> 'Envelope':
        """Parse ``body``.

        ``expect`` is the type the payload must have.  With ``bare=True`` a
        body that is not an envelope is taken as the payload itself (some
        endpoints answer with the document directly); without it such a
        body is an error.
        """
        if cls.is_envelope(body):
            success = body.get('success', True)
            if not isinstance(success, bool):
                raise EnvelopeError("envelope 'success' must be a boolean")
            message = body.get('message') or ''
            if not success:
                raise EnvelopeError(message or 'upstream reported failure')
            meta = {k: v for k, v in body.items() if k not in ('data', 'success', 'message')}
            env = cls(data=body['data'], success=True, message=message, meta=meta)
        elif bare:
            env = cls(data=body)
        else:
            raise EnvelopeError(f'expected an envelope, got {type(body).__name__}')
        if expect is not None and not isinstance(env.data, expect):
            raise EnvelopeError(f'unexpected payload type {type(env.data).__name__}')
        return env


class UpstreamClient:
    """Thin ``requests`` wrapper bound to one base URL and one bearer token."""

    def __init__(self, base_url: str, *, token: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        if not base_url:
            raise ImproperlyConfigured('upstream base URL is not configured')
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout if timeout is not None else settings.UPSTREAM_TIMEOUT
        self.session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, *, params: Optional[dict] = None, json: Any = None) -> Any:
        url = self.url(path)
        try:
            r = self.session.request(method, url, params=params, json=json,
                                     headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamError(f'{method} {path} failed: {exc}') from exc
        if not 200 <= r.status_code < 300:
            raise UpstreamError(_error_message(r) or f'{method} {path} returned {r.status_code}',
                                status_code=r.status_code)
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as exc:
            raise EnvelopeError(f'{method} {path} returned a non-JSON body') from exc

    def get(self, path: str, *, params: Optional[dict] = None) -> Any:
        return self.request('GET', path, params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request('POST', path, json=json)

    def put(self, path: str, json: Any = None) -> Any:
        return self.request('PUT', path, json=json)


def _error_message(r) -> str:
    try:
        body = r.json()
    except ValueError:
        return ''
    if isinstance(body, dict):
        return str(body.get('message') or body.get('error') or '')
    return ''


def curd_client(state=None, **kwargs) -> UpstreamClient:
    return UpstreamClient(settings.CURD_API_URL, token=getattr(state, 'token', None), **kwargs)


def dropdown_client(state=None, **kwargs) -> UpstreamClient:
    return UpstreamClient(settings.DROPDOWN_API_URL, token=getattr(state, 'token', None), **kwargs)
