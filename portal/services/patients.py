"""
Patient master record reconciliation.

Hospital and isolation forms keep an upstream patient record in line with
the employee fields on screen.  The record is created at most once per
employee number; afterwards only changed fields trigger an update.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from portal.exceptions import PatientCreateError, UpstreamError
from portal.services.lookup import EmployeeLookupResult, normalize_emp_no
from portal.services.upstream import Envelope, UpstreamClient

logger = logging.getLogger(__name__)

PATIENT_CREATE_ERROR = 'Failed to create patient record. Please try again.'

TRACKED_FIELDS = ('empNo', 'employeeName', 'emiratesId', 'insuranceId', 'trLocation', 'mobileNumber')


class SyncOutcome(str, enum.Enum):
    CREATED = 'created'
    UPDATED = 'updated'
    UNCHANGED = 'unchanged'
    SKIPPED = 'skipped'
    FAILED = 'failed'


@dataclass
class PatientRecord:
    emp_no: str = ''
    employee_name: str = ''
    emirates_id: str = ''
    insurance_id: str = ''
    mobile_number: str = ''
    tr_location: str = ''
    id: Optional[str] = None

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> 'PatientRecord':
        def text(key):
            return str(fields.get(key) or '')
        return cls(
            emp_no=normalize_emp_no(fields.get('empNo')),
            employee_name=text('employeeName'),
            emirates_id=text('emiratesId'),
            insurance_id=text('insuranceId'),
            mobile_number=text('mobileNumber'),
            tr_location=text('trLocation'),
        )

    def tracked(self) -> dict[str, str]:
        return {
            'empNo': self.emp_no,
            'employeeName': self.employee_name,
            'emiratesId': self.emirates_id,
            'insuranceId': self.insurance_id,
            'trLocation': self.tr_location,
            'mobileNumber': self.mobile_number,
        }

    def create_payload(self) -> dict[str, str]:
        return {
            'empNo': self.emp_no,
            'PatientName': self.employee_name,
            'emiratesId': self.emirates_id,
            'insuranceId': self.insurance_id,
            'mobileNumber': self.mobile_number,
            'trLocation': self.tr_location,
        }

    def update_payload(self) -> dict[str, str]:
        return {
            'PatientName': self.employee_name,
            'emiratesId': self.emirates_id,
            'insuranceId': self.insurance_id,
            'trLocation': self.tr_location,
            'mobileNumber': self.mobile_number,
        }


class PatientRecordReconciler:
    """Create-or-update of one patient record for one form session.

    ``snapshot`` is the last state known to be on the server; ``None`` with
    a known id means nothing is known and any save sends an update.
    ``emp_no`` is the employee the known id belongs to; a form that now
    shows someone else starts over instead of updating that record.
    """

    def __init__(self, client: UpstreamClient, *, patient_id: Optional[str] = None,
                 snapshot: Optional[dict[str, str]] = None, emp_no: str = ''):
        self.client = client
        self.patient_id = patient_id
        self.emp_no = normalize_emp_no(emp_no)
        self.snapshot = dict(snapshot) if snapshot is not None else None

    def adopt(self, result: EmployeeLookupResult) -> bool:
        """Take over the record an employee lookup found upstream."""
        if not result.patient_id:
            return False
        self.patient_id = result.patient_id
        self.emp_no = normalize_emp_no(result.emp_no)
        self.snapshot = PatientRecord.from_fields(result.employee_fields()).tracked()
        return True

    def belongs_to(self, emp_no: Optional[str]) -> bool:
        return bool(self.patient_id) and self.emp_no == normalize_emp_no(emp_no)

    def changed_fields(self, fields: Mapping[str, Any]) -> list[str]:
        current = PatientRecord.from_fields(fields).tracked()
        if self.snapshot is None:
            return list(TRACKED_FIELDS)
        return [name for name in TRACKED_FIELDS if current[name] != self.snapshot.get(name, '')]

    def ensure_synced(self, fields: Mapping[str, Any], *, on_create_failure: str = 'raise') -> SyncOutcome:
        record = PatientRecord.from_fields(fields)
        if self.patient_id and self.emp_no and record.emp_no != self.emp_no:
            logger.info('patient %s belongs to %s, not %s; starting over', self.patient_id, self.emp_no, record.emp_no)
            self.patient_id, self.snapshot, self.emp_no = None, None, ''
        if not self.patient_id:
            if not (record.emp_no and record.employee_name):
                return SyncOutcome.SKIPPED
            return self._create(record, on_create_failure)
        if not self.changed_fields(fields):
            return SyncOutcome.UNCHANGED
        try:
            self.client.put(f'/patients/{self.patient_id}', json=record.update_payload())
        except UpstreamError as exc:
            logger.warning('patient %s update failed: %s', self.patient_id, exc.message)
            return SyncOutcome.FAILED
        self.snapshot = record.tracked()
        return SyncOutcome.UPDATED

    def _create(self, record: PatientRecord, on_create_failure: str) -> SyncOutcome:
        try:
            body = self.client.post('/patients', json=record.create_payload())
            created = Envelope.parse(body, expect=dict, bare=True).data
            patient_id = created.get('_id')
            if not patient_id:
                raise UpstreamError('patient create returned no id')
        except UpstreamError as exc:
            logger.warning('patient create for %s failed: %s', record.emp_no, exc.message)
            if on_create_failure == 'raise':
                raise PatientCreateError(PATIENT_CREATE_ERROR) from exc
            return SyncOutcome.FAILED
        self.patient_id = str(patient_id)
        self.emp_no = record.emp_no
        self.snapshot = record.tracked()
        logger.info('created patient %s for %s', self.patient_id, record.emp_no)
        return SyncOutcome.CREATED

    def to_dict(self) -> dict:
        return {'patientId': self.patient_id, 'snapshot': self.snapshot, 'empNo': self.emp_no}

    @classmethod
    def from_dict(cls, client: UpstreamClient, raw: Optional[Mapping[str, Any]]) -> 'PatientRecordReconciler':
        raw = raw or {}
        return cls(client, patient_id=raw.get('patientId') or None, snapshot=raw.get('snapshot'),
                   emp_no=raw.get('empNo') or '')


class PatientSyncStore:
    """Reconciler state kept in the Django session, keyed by employee number."""

    SESSION_KEY = 'portal.patients'

    def __init__(self, session):
        self.session = session

    def _entries(self) -> dict:
        entries = self.session.get(self.SESSION_KEY)
        return entries if isinstance(entries, dict) else {}

    def reconciler_for(self, emp_no: str, client: UpstreamClient) -> PatientRecordReconciler:
        key = normalize_emp_no(emp_no)
        reconciler = PatientRecordReconciler.from_dict(client, self._entries().get(key))
        reconciler.emp_no = key
        return reconciler

    def save(self, emp_no: str, reconciler: PatientRecordReconciler) -> None:
        key = normalize_emp_no(emp_no)
        if not key or not reconciler.patient_id:
            return
        entries = self._entries()
        entries[key] = reconciler.to_dict()
        self.session[self.SESSION_KEY] = entries
        self.session.modified = True
