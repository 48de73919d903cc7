"""
Patient master and staff account directories.

Both are paged lists kept upstream: patients in the dropdown API, staff
accounts behind the CRUD API's ``/auth`` resource.  Edits here go straight
to the upstream record; the form reconciler is not involved.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping
from urllib.parse import quote

from portal.exceptions import EnvelopeError, FormInvalid, SubmissionError, UpstreamError
from portal.services.records import Page, total_from
from portal.services.upstream import Envelope, UpstreamClient

logger = logging.getLogger(__name__)

PATIENT_NAME_REQUIRED = 'Patient name is required.'
STAFF_FIELDS_REQUIRED = 'All fields are required'
MANAGER_LOCATION_REQUIRED = 'Please select at least one location for manager role'

STAFF_ROLES = ('staff', 'manager', 'superadmin')
PATIENT_EDIT_FIELDS = ('PatientName', 'emiratesId', 'insuranceId', 'trLocation', 'mobileNumber')


def parse_page(body: Any, *, page: int, limit: int) -> Page:
    """``{"items": [...], "total": n}`` or an envelope around a list."""
    if Envelope.is_envelope(body):
        env = Envelope.parse(body, expect=list)
        total = total_from(env.meta)
        return Page(items=env.data, total=len(env.data) if total is None else total, page=page, limit=limit)
    if isinstance(body, dict) and isinstance(body.get('items'), list):
        total = body.get('total')
        return Page(items=body['items'], total=total if isinstance(total, int) else len(body['items']),
                    page=page, limit=limit)
    raise EnvelopeError(f'expected a page of items, got {type(body).__name__}')


def _params(q: str, page: int, limit: int) -> dict[str, Any]:
    params: dict[str, Any] = {'page': page, 'limit': limit}
    if q:
        params['q'] = q
    return params


class PatientDirectory:
    def __init__(self, client: UpstreamClient):
        self.client = client

    def list(self, *, q: str = '', page: int = 1, limit: int = 20) -> Page:
        body = self.client.get('/patients', params=_params(q.strip(), page, limit))
        return parse_page(body, page=page, limit=limit)

    def search(self, q: str) -> list[dict]:
        q = (q or '').strip()
        if not q:
            return []
        body = self.client.get('/patients/all', params={'q': q})
        return Envelope.parse(body, expect=list, bare=True).data

    def update(self, patient_id: str, fields: Mapping[str, Any]) -> dict:
        payload = {name: str(fields.get(name) or '').strip() for name in PATIENT_EDIT_FIELDS}
        if not payload['PatientName']:
            raise FormInvalid(PATIENT_NAME_REQUIRED)
        try:
            body = self.client.put(f'/patients/{quote(str(patient_id), safe="")}', json=payload)
            return Envelope.parse(body, expect=(dict, type(None)), bare=True).data or {}
        except UpstreamError as exc:
            logger.warning('patient %s edit failed: %s', patient_id, exc.message)
            raise SubmissionError('Failed to update patient.') from exc


def staff_payload(values: Mapping[str, Any], *, creating: bool) -> dict[str, Any]:
    """Validated upstream payload for a staff account.

    The password is required on create and only sent on update when a new
    one was typed; manager locations are only sent for managers.
    """
    payload = {name: str(values.get(name) or '').strip() for name in ('empId', 'name', 'email', 'locationId')}
    role = values.get('role') or 'staff'
    if role not in STAFF_ROLES:
        raise FormInvalid(f'Unknown role {role!r}.')
    password = values.get('password') or ''
    if not all(payload.values()) or (creating and not password):
        raise FormInvalid(STAFF_FIELDS_REQUIRED)
    payload['role'] = role
    if password:
        payload['password'] = password
    if role == 'manager':
        locations = [str(loc) for loc in values.get('managerLocation') or [] if loc]
        if not locations:
            raise FormInvalid(MANAGER_LOCATION_REQUIRED)
        payload['managerLocation'] = locations
    return payload


class StaffDirectory:
    def __init__(self, client: UpstreamClient):
        self.client = client

    def list(self, *, q: str = '', page: int = 1, limit: int = 20) -> Page:
        body = self.client.get('/auth', params=_params(q.strip(), page, limit))
        return parse_page(body, page=page, limit=limit)

    def create(self, values: Mapping[str, Any]) -> dict:
        return self._send('POST', '/auth', staff_payload(values, creating=True), 'Failed to create staff')

    def update(self, user_id: str, values: Mapping[str, Any]) -> dict:
        path = f'/auth/{quote(str(user_id), safe="")}'
        return self._send('PUT', path, staff_payload(values, creating=False), 'Failed to update staff')

    def _send(self, method: str, path: str, payload: dict, failure: str) -> dict:
        try:
            body = self.client.request(method, path, json=payload)
            return Envelope.parse(body, expect=(dict, type(None)), bare=True).data or {}
        except UpstreamError as exc:
            logger.warning('%s %s failed: %s', method, path, exc.message)
            raise SubmissionError(failure) from exc
