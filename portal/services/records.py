"""
Clinic visit, hospital, isolation and happiness survey records.

All of them live in the CRUD API.  Hospital and isolation submissions run
the patient reconciler first: a failed patient create aborts the
submission, a failed patient update does not.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import quote

from portal.exceptions import SubmissionError, UpstreamError
from portal.services.derived import parse_date
from portal.services.forms import ClinicFormState, FormState, HappinessSurveyState
from portal.services.lookup import normalize_emp_no
from portal.services.patients import PatientRecordReconciler
from portal.services.upstream import Envelope, UpstreamClient

logger = logging.getLogger(__name__)


@dataclass
class Page:
    items: list[dict] = field(default_factory=list)
    total: Optional[int] = None
    page: int = 1
    limit: int = 20

    def to_dict(self) -> dict:
        return {'items': self.items, 'total': self.total, 'page': self.page, 'limit': self.limit}


def total_from(meta: dict) -> Optional[int]:
    for source in (meta.get('meta'), meta.get('pagination'), meta):
        if isinstance(source, dict) and isinstance(source.get('total'), int):
            return source['total']
    count = meta.get('count')
    return count if isinstance(count, int) else None


class RecordService:
    path = ''
    noun = 'record'

    def __init__(self, client: UpstreamClient):
        self.client = client

    def get(self, record_id: str) -> dict:
        body = self.client.get(f'{self.path}/{quote(str(record_id), safe="")}')
        return Envelope.parse(body, expect=dict, bare=True).data

    def _send(self, method: str, path: str, payload: dict) -> dict:
        try:
            body = self.client.request(method, path, json=payload)
            return Envelope.parse(body, expect=(dict, type(None)), bare=True).data or {}
        except UpstreamError as exc:
            logger.warning('%s %s failed: %s', method, path, exc.message)
            raise SubmissionError(f'Failed to save {self.noun}.') from exc

    def update(self, record_id: str, form: FormState) -> dict:
        form.validate()
        return self._send('PUT', f'{self.path}/{quote(str(record_id), safe="")}', form.build_payload())


class ClinicService(RecordService):
    path = '/clinic'
    noun = 'clinic visit'

    def search(self, *, page: int = 1, limit: int = 20, emp_no: str = '', date: str = '',
               visit_status: str = '', role: str = '') -> Page:
        params: dict[str, Any] = {'page': page, 'limit': limit}
        filters = {'empNo': normalize_emp_no(emp_no), 'date': date, 'visitStatus': visit_status}
        filters = {k: v for k, v in filters.items() if v}
        if filters:
            path = '/clinic/search'
            params.update(filters)
        else:
            path = '/clinic/my-location' if role == 'staff' else '/clinic'
        env = Envelope.parse(self.client.get(path, params=params), expect=list)
        return Page(items=env.data, total=total_from(env.meta), page=page, limit=limit)

    def create(self, form: ClinicFormState) -> dict:
        form.validate()
        saved = self._send('POST', self.path, form.build_payload())
        clinic_id = saved.get('_id')
        token = saved.get('tokenNo')
        return {
            'id': str(clinic_id) if clinic_id else None,
            'tokenNo': str(token) if token is not None else None,
            'employee': form.saved_employee(saved),
            'record': saved,
        }


class _ReconciledService(RecordService):

    def submit(self, form: FormState, reconciler: PatientRecordReconciler) -> dict:
        form.validate()
        outcome = reconciler.ensure_synced(form.values)
        saved = self._send('POST', self.path, form.build_payload())
        logger.info('%s saved for %s (patient %s)', self.noun, form['empNo'], outcome.value)
        return {'record': saved, 'patientId': reconciler.patient_id, 'patientSync': outcome.value}

    def update(self, record_id: str, form: FormState,
               reconciler: Optional[PatientRecordReconciler] = None) -> dict:
        form.validate()
        if reconciler is not None and reconciler.patient_id:
            reconciler.ensure_synced(form.values)
        return super().update(record_id, form)


class HospitalService(_ReconciledService):
    path = '/hospital'
    noun = 'hospital record'


class IsolationService(_ReconciledService):
    path = '/isolation'
    noun = 'isolation record'


def _day(value: Any) -> str:
    parsed = parse_date(value)
    return parsed.strftime('%d/%m/%Y') if parsed else str(value or '')


@dataclass
class Eligibility:
    eligible: bool
    last_survey_date: Optional[str] = None
    next_eligible_date: Optional[str] = None

    @property
    def message(self) -> str:
        if self.eligible:
            return ''
        return f'Not eligible. Last survey: {_day(self.last_survey_date)}. Next eligible: {_day(self.next_eligible_date)}.'

    def to_dict(self) -> dict:
        return {'eligible': self.eligible, 'lastSurveyDate': self.last_survey_date,
                'nextEligibleDate': self.next_eligible_date, 'message': self.message}


class SurveyService:
    def __init__(self, client: UpstreamClient):
        self.client = client

    def check_eligibility(self, emp_no: str) -> Eligibility:
        body = self.client.get(f'/happiness-survey/check/emp/{quote(normalize_emp_no(emp_no), safe="")}')
        if isinstance(body, dict) and body.get('status') == 'OK':
            return Eligibility(eligible=True)
        data = Envelope.parse(body, expect=dict).data
        return Eligibility(eligible=False, last_survey_date=data.get('lastSurveyDate'),
                           next_eligible_date=data.get('nextEligibleDate'))

    def lookup_eligibility(self, emp_no: str) -> Optional[Eligibility]:
        """Eligibility, or ``None`` when the check itself failed."""
        try:
            return self.check_eligibility(emp_no)
        except UpstreamError as exc:
            logger.info('survey eligibility for %s unavailable: %s', emp_no, exc.message)
            return None

    def submit(self, form: HappinessSurveyState, surveyor: str = '') -> dict:
        if surveyor:
            form.set('surveyor', surveyor)
        form.validate()
        try:
            body = self.client.post('/happiness-survey/', json=form.build_payload())
            return Envelope.parse(body, expect=(dict, type(None)), bare=True).data or {}
        except UpstreamError as exc:
            logger.warning('survey submit for %s failed: %s', form['empNo'], exc.message)
            raise SubmissionError('Failed to submit survey.') from exc

    def count_for(self, surveyor: str) -> int:
        if not surveyor:
            return 0
        try:
            body = self.client.get(f'/happiness-survey/count/surveyor/{quote(surveyor, safe="")}')
            data = Envelope.parse(body, expect=dict).data
        except UpstreamError as exc:
            logger.info('survey count for %s unavailable: %s', surveyor, exc.message)
            return 0
        count = data.get('count')
        return count if isinstance(count, int) else 0
