"""
Remote lookups used while a form is being filled in.

* Suggestions: free-text search against a dropdown category.  Best effort;
  any failure is an empty list.  :class:`DebouncedSuggestions` runs them on
  the event loop, one cancellable task per input field.
* Employee by number: fired once the employee number reaches its fixed
  length, never twice for the same normalised number.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from urllib.parse import quote

from asgiref.sync import sync_to_async
from django.conf import settings

from portal.constants import EMPLOYEE_LOOKUP_ERROR
from portal.exceptions import UpstreamError
from portal.services.dropdowns import option_names
from portal.services.upstream import Envelope, UpstreamClient

logger = logging.getLogger(__name__)


class SuggestionClient:
    def __init__(self, client: UpstreamClient, *, limit: Optional[int] = None):
        self.client = client
        self.limit = limit or settings.SUGGESTION_LIMIT

    def search(self, category: str, query: str) -> list[str]:
        q = (query or '').strip()
        if not q:
            return []
        try:
            body = self.client.get('/professions', params={'category': category, 'search': q, 'limit': self.limit})
            env = Envelope.parse(body, expect=list)
        except UpstreamError as exc:
            logger.info('suggestions for %r unavailable: %s', category, exc.message)
            return []
        return option_names(env.data)[:self.limit]


def snap_to_option(value: str, items: list[str], *, strict: bool = True, loading: bool = False) -> str:
    """Value a suggestion field keeps when it loses focus.

    Non-strict fields keep free text.  Strict fields take the canonical
    spelling of a case-insensitive exact match and are cleared otherwise;
    while a lookup is still running the typed value is left alone.
    """
    if not strict:
        return value
    if not value:
        return ''
    if loading:
        return value
    lowered = value.lower()
    for item in items:
        if item.lower() == lowered:
            return item
    return ''


ResultCallback = Callable[[str, str, list], Awaitable[None]]


class DebouncedSuggestions:
    """Debounced, cancellable suggestion lookups keyed by input field.

    ``request`` replaces whatever the field had pending or in flight.  A
    result is delivered only if it belongs to the field's newest request, so
    a slow answer can never overwrite a fresher one.
    """

    def __init__(self, search: Callable[[str, str], list], on_result: ResultCallback, *,
                 delay_ms: Optional[int] = None):
        self._search = search
        self._on_result = on_result
        self.delay = (settings.SUGGESTION_DEBOUNCE_MS if delay_ms is None else delay_ms) / 1000
        self._tasks: dict[str, asyncio.Task] = {}
        self._seq: dict[str, int] = {}
        self._loading: set[str] = set()
        self.latest: dict[str, list[str]] = {}

    def is_loading(self, field: str) -> bool:
        return field in self._loading

    def request(self, field: str, category: str, query: str) -> asyncio.Task:
        self.cancel(field)
        seq = self._seq.get(field, 0) + 1
        self._seq[field] = seq
        task = asyncio.get_running_loop().create_task(self._run(field, seq, category, query or ''))
        self._tasks[field] = task
        return task

    async def _run(self, field: str, seq: int, category: str, query: str) -> None:
        items: list[str] = []
        if query.strip():
            self._loading.add(field)
            try:
                await asyncio.sleep(self.delay)
                items = await sync_to_async(self._search, thread_sensitive=False)(category, query)
            except asyncio.CancelledError:
                logger.debug('suggestion lookup for %s cancelled', field)
                raise
            finally:
                if self._seq.get(field) == seq:
                    self._loading.discard(field)
        if self._seq.get(field) != seq:
            return
        self._tasks.pop(field, None)
        self.latest[field] = list(items)
        await self._on_result(field, query, list(items))

    def cancel(self, field: str) -> None:
        task = self._tasks.pop(field, None)
        if task is not None and not task.done():
            task.cancel()
        self._loading.discard(field)

    def cancel_all(self) -> list[asyncio.Task]:
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        self._tasks.clear()
        self._loading.clear()
        self.latest.clear()
        return tasks

    async def close(self) -> None:
        tasks = self.cancel_all()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


@dataclass
class EmployeeLookupResult:
    emp_no: str
    employee_name: str = ''
    emirates_id: str = ''
    insurance_id: str = ''
    mobile_number: str = ''
    tr_location: str = ''
    patient_id: Optional[str] = None

    def employee_fields(self) -> dict[str, str]:
        """The lookup as form field values."""
        return {
            'empNo': self.emp_no,
            'employeeName': self.employee_name,
            'emiratesId': self.emirates_id,
            'insuranceId': self.insurance_id,
            'mobileNumber': self.mobile_number,
            'trLocation': self.tr_location,
        }

    def to_dict(self) -> dict:
        return {**self.employee_fields(), 'patientId': self.patient_id}


def normalize_emp_no(value: Optional[str]) -> str:
    return (value or '').strip().upper()


class EmployeeLookup:
    def __init__(self, client: UpstreamClient, *, location_id: str = '', length: Optional[int] = None):
        self.client = client
        self.location_id = location_id
        self.length = length or settings.EMPLOYEE_NUMBER_LENGTH
        self.last_fetched: Optional[str] = None
        self.error: Optional[str] = None

    def is_complete(self, value: Optional[str]) -> bool:
        return len(normalize_emp_no(value)) == self.length

    def should_fetch(self, value: Optional[str]) -> bool:
        return self.is_complete(value) and normalize_emp_no(value) != self.last_fetched

    def on_emp_no_changed(self, value: Optional[str]) -> Optional[EmployeeLookupResult]:
        if not self.should_fetch(value):
            return None
        result = self.fetch(normalize_emp_no(value))
        if result is not None:
            self.mark_applied(result.emp_no)
        return result

    def fetch(self, emp_no: str) -> Optional[EmployeeLookupResult]:
        self.error = None
        try:
            body = self.client.get(f'/patients/emp/{quote(emp_no, safe="")}')
            data = Envelope.parse(body, expect=dict, bare=True).data
        except UpstreamError as exc:
            logger.info('employee lookup for %s failed: %s', emp_no, exc.message)
            self.error = EMPLOYEE_LOOKUP_ERROR
            return None
        return EmployeeLookupResult(
            emp_no=emp_no,
            employee_name=str(data.get('PatientName') or ''),
            emirates_id=str(data.get('emiratesId') or ''),
            insurance_id=str(data.get('insuranceId') or ''),
            mobile_number=str(data.get('mobileNumber') or ''),
            tr_location=str(data.get('trLocation') or self.location_id or ''),
            patient_id=str(data['_id']) if data.get('_id') else None,
        )

    def mark_applied(self, emp_no: str) -> None:
        """Record that the form now shows this employee."""
        self.last_fetched = normalize_emp_no(emp_no)

    def reset(self) -> None:
        self.last_fetched = None
        self.error = None
