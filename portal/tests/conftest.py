"""
Shared fixtures.

The upstream REST services are replaced by :class:`FakeUpstream`, which
stands in for ``requests.Session`` and answers from a route table keyed by
``(METHOD, path)``.  Paths are given without the ``/api`` base prefix.
"""
import json as jsonlib
import threading
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import unquote, urlsplit

import pytest
import requests
from django.conf import settings
from django.core.cache import cache
from rest_framework.test import APIClient

from portal.services import upstream as upstream_module
from portal.services.upstream import UpstreamClient
from portal.state import SESSION_KEY

USER = {
    '_id': 'u1',
    'name': 'Nurse Joy',
    'email': 'joy@clinic.test',
    'role': 'staff',
    'locationId': 'LOC1',
}


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body
        self.content = b'' if body is None else jsonlib.dumps(body).encode()

    def json(self):
        if self._body is None:
            raise ValueError('empty body')
        return self._body


@dataclass
class Call:
    method: str
    host: str
    path: str
    params: Optional[dict] = None
    json: Any = None
    headers: dict = field(default_factory=dict)


class FakeUpstream:
    def __init__(self):
        self.routes = {}
        self.calls = []
        self.gates = {}
        self.answered = 0

    def on(self, method, path, body=None, status=200):
        """Queue an answer.  The last queued answer repeats; ``status=None`` is a connection error."""
        self.routes.setdefault((method, path), []).append((status, body))
        return self

    def hold(self, method, path):
        """Hold answers on a route until the returned event is set."""
        gate = self.gates[(method, path)] = threading.Event()
        return gate

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        parts = urlsplit(url)
        path = unquote(parts.path)
        if path.startswith('/api'):
            path = path[len('/api'):]
        self.calls.append(Call(method, parts.hostname, path, params, json, dict(headers or {})))
        gate = self.gates.get((method, path))
        if gate is not None:
            gate.wait(timeout=5)
        answers = self.routes.get((method, path))
        if not answers:
            return FakeResponse(404, {'message': f'no route for {method} {path}'})
        status, body = answers.pop(0) if len(answers) > 1 else answers[0]
        self.answered += 1
        if status is None:
            raise requests.ConnectionError('connection refused')
        return FakeResponse(status, body)

    def paths(self, method=None):
        return [(c.method, c.path) for c in self.calls if method is None or c.method == method]

    def calls_to(self, method, path):
        return [c for c in self.calls if c.method == method and c.path == path]


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def upstream(monkeypatch):
    fake = FakeUpstream()
    monkeypatch.setattr(upstream_module.requests, 'Session', lambda: fake)
    return fake


@pytest.fixture
def curd(upstream):
    return UpstreamClient(settings.CURD_API_URL, token='t1', session=upstream)


@pytest.fixture
def dropdown(upstream):
    return UpstreamClient(settings.DROPDOWN_API_URL, token='t1', session=upstream)


def sign_in(client, user=None, token='t1'):
    session = client.session
    session[SESSION_KEY] = {'token': token, 'user': dict(user or USER), 'profile': {}}
    session.save()
    return client


@pytest.fixture
def api():
    return APIClient()


@pytest.fixture
def signed_in(api, upstream):
    return sign_in(api)
