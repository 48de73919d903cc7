"""
Server-side state of the clinic, hospital, isolation and survey forms.

A form state lives as long as the form is open (one WebSocket session or
one REST request).  ``set`` returns the names of every field that changed,
derived ones included, so callers only push what actually moved.
"""
from __future__ import annotations

import copy
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Optional

from django.utils import timezone

from portal import constants
from portal.exceptions import FormInvalid
from portal.services import derived
from portal.services.lookup import normalize_emp_no

REQUIRED_FIELDS_MESSAGE = 'Please fill all required fields.'
DISCHARGE_BEFORE_ADMISSION = 'Date of Discharge cannot be before Date of Admission.'
CLINIC_VISIT_REQUIRED = 'Clinic visit is required. Please save clinic visit first.'
SURVEY_ANSWERS_REQUIRED = 'Please answer all survey questions (Q1-Q7).'
ISOLATION_TYPE_INVALID = 'Type must be ISOLATION or REHABILITATION.'

EMPLOYEE_FIELDS = ('empNo', 'employeeName', 'emiratesId', 'insuranceId', 'mobileNumber', 'trLocation')

EMPTY_MEDICINE = {'name': '', 'course': '', 'expiryDate': ''}
EMPTY_FOLLOW_UP = {'date': '', 'remarks': ''}
EMPTY_VISIT = {'visitDate': '', 'visitRemarks': ''}
EMPTY_REFERRAL = {
    'referralCode': '',
    'referralType': '',
    'referredToHospital': '',
    'visitDateReferral': '',
    'specialistType': '',
    'doctorName': '',
    'investigationReports': '',
    'primaryDiagnosisReferral': '',
    'secondaryDiagnosisReferral': [],
    'nurseRemarksReferral': '',
    'insuranceApprovalRequested': False,
    'followUpRequired': False,
    'followUpVisits': [EMPTY_VISIT],
}


def to_number(value: Any) -> Optional[float | int]:
    number = derived.as_number(value)
    if number is None:
        return None
    return int(number) if number.is_integer() else number


def _blank(value: Any) -> Optional[Any]:
    return value if value not in ('', None, []) else None


def _compact(payload: dict) -> dict:
    return {k: v for k, v in payload.items() if v is not None}


def _strings(values) -> list[str]:
    return [str(v) for v in values or [] if v]


def _prefill_value(name: str, value: Any, current: Any) -> Any:
    if value in (None, ''):
        return current if name == 'trLocation' else ''
    return value


def _local_date() -> str:
    return timezone.localtime().strftime('%Y-%m-%d')


def _local_time() -> str:
    return timezone.localtime().strftime('%H:%M')


def _sl_no() -> str:
    return str(int(time.time() * 1000))


@dataclass
class FormState:
    """Field values of one form plus its validation and payload rules."""

    kind: ClassVar[str] = ''
    DEFAULTS: ClassVar[dict[str, Any]] = {}
    BOOLEAN_FIELDS: ClassVar[frozenset[str]] = frozenset()
    LIST_FIELDS: ClassVar[frozenset[str]] = frozenset()
    DERIVED_FIELDS: ClassVar[frozenset[str]] = frozenset()
    REQUIRED: ClassVar[tuple[str, ...]] = ()
    # field -> (search category, strict)
    SUGGESTIONS: ClassVar[dict[str, tuple[str, bool]]] = {}

    values: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        initial = self.values
        self.values = self.initial_values()
        for name, value in initial.items():
            if name in self.values and name not in self.DERIVED_FIELDS:
                self.values[name] = self._coerce(name, value)
        self.recompute()

    def initial_values(self) -> dict[str, Any]:
        return copy.deepcopy(self.DEFAULTS)

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def _coerce(self, name: str, value: Any) -> Any:
        if name in self.BOOLEAN_FIELDS:
            if isinstance(value, str):
                return value.strip().lower() in ('true', 'yes', '1')
            return bool(value)
        if name in self.LIST_FIELDS:
            if value in (None, ''):
                return []
            if not isinstance(value, (list, tuple)):
                raise FormInvalid(f'{name} must be a list')
            return copy.deepcopy(list(value))
        if value is None:
            return ''
        if isinstance(value, (dict, list)):
            raise FormInvalid(f'{name} must be a scalar')
        return value if isinstance(value, str) else str(value)

    def _write(self, name: str, value: Any) -> bool:
        if self.values.get(name) == value:
            return False
        self.values[name] = value
        return True

    def set(self, name: str, value: Any) -> set[str]:
        if name not in self.values:
            raise FormInvalid(f'unknown field {name}')
        if name in self.DERIVED_FIELDS:
            raise FormInvalid(f'{name} is calculated')
        changed = set()
        if self._write(name, self._coerce(name, value)):
            changed.add(name)
            changed |= self.recompute()
            self.changed(changed)
        return changed

    def update(self, data: dict[str, Any]) -> set[str]:
        changed: set[str] = set()
        for name, value in data.items():
            changed |= self.set(name, value)
        return changed

    def set_path(self, path: str, value: Any) -> set[str]:
        """``name``, ``name.<index>`` or ``name.<index>.<key>``."""
        name, _, rest = path.partition('.')
        if not rest:
            return self.set(name, value)
        if name not in self.LIST_FIELDS:
            raise FormInvalid(f'{name} is not a list field')
        items = copy.deepcopy(self.values[name])
        index_text, _, key = rest.partition('.')
        try:
            index = int(index_text)
        except ValueError:
            raise FormInvalid(f'bad index in {path}')
        if index < 0 or index > len(items):
            raise FormInvalid(f'index out of range in {path}')
        if key:
            if index == len(items):
                raise FormInvalid(f'index out of range in {path}')
            if not isinstance(items[index], dict):
                raise FormInvalid(f'{name} entries have no keys')
            items[index][key] = value
        elif index == len(items):
            items.append(value)
        else:
            items[index] = value
        return self.set(name, items)

    def get_path(self, path: str) -> Any:
        name, _, rest = path.partition('.')
        value = self.values.get(name)
        for part in [p for p in rest.split('.') if p]:
            if isinstance(value, list):
                try:
                    value = value[int(part)]
                except (ValueError, IndexError):
                    return None
            elif isinstance(value, dict):
                value = value.get(part)
            else:
                return None
        return value

    def suggestion_for(self, path: str) -> Optional[tuple[str, bool]]:
        """Search category and strictness of the suggestion input at ``path``."""
        parts = path.split('.')
        key = parts[0] if len(parts) <= 2 else f'{parts[0]}.{parts[2]}'
        return self.SUGGESTIONS.get(key)

    def recompute(self) -> set[str]:
        return set()

    def changed(self, names: set[str]) -> None:
        pass

    def apply_employee(self, employee: dict[str, Any]) -> set[str]:
        """Prefill from a lookup.

        Every field the lookup carries replaces what the previous employee
        left behind, blanks included.  Only a blank location keeps the one
        already on screen.
        """
        changed: set[str] = set()
        for name in EMPLOYEE_FIELDS:
            if name not in employee or name not in self.values:
                continue
            changed |= self.set(name, _prefill_value(name, employee[name], self.values[name]))
        return changed

    def missing(self) -> list[str]:
        return [name for name in self.REQUIRED if not self.values.get(name)]

    def errors(self) -> list[str]:
        return [REQUIRED_FIELDS_MESSAGE] if self.missing() else []

    def is_valid(self) -> bool:
        return not self.errors()

    def validate(self) -> None:
        errors = self.errors()
        if errors:
            raise FormInvalid(errors[0])

    def build_payload(self) -> dict[str, Any]:
        raise NotImplementedError

    def reset(self) -> set[str]:
        before = self.values
        self.values = self.initial_values()
        for name in self.keep_on_reset():
            self.values[name] = before[name]
        self.recompute()
        changed = {name for name in self.values if self.values[name] != before.get(name)}
        if changed:
            self.changed(changed)
        return changed

    def keep_on_reset(self) -> tuple[str, ...]:
        return ()

    def to_dict(self) -> dict[str, Any]:
        return {
            'kind': self.kind,
            'values': copy.deepcopy(self.values),
            'valid': self.is_valid(),
            'missing': self.missing(),
            'errors': self.errors(),
        }


FlagListener = Callable[[str, Any], None]


@dataclass
class ClinicFormState(FormState):
    kind: ClassVar[str] = 'clinic'
    DEFAULTS: ClassVar[dict[str, Any]] = {
        'locationId': '',
        'slNo': '',
        'date': '',
        'time': '',
        'empNo': '',
        'employeeName': '',
        'emiratesId': '',
        'insuranceId': '',
        'trLocation': '',
        'mobileNumber': '',
        'natureOfCase': '',
        'caseCategory': '',
        'nurseAssessment': [],
        'symptomDuration': '',
        'temperature': '',
        'bloodPressure': '',
        'heartRate': '',
        'others': '',
        'tokenNo': '',
        'sentTo': '',
        'providerName': '',
        'doctorName': '',
        'primaryDiagnosis': '',
        'secondaryDiagnosis': [],
        'medicines': [EMPTY_MEDICINE],
        'sickLeaveStatus': '',
        'sickLeaveStartDate': '',
        'sickLeaveEndDate': '',
        'totalSickLeaveDays': '',
        'remarks': '',
        'referrals': [EMPTY_REFERRAL],
        'visitStatus': 'Open',
        'finalRemarks': '',
        'ipAdmissionRequired': False,
        'createdBy': '',
    }
    BOOLEAN_FIELDS: ClassVar[frozenset[str]] = frozenset({'ipAdmissionRequired'})
    LIST_FIELDS: ClassVar[frozenset[str]] = frozenset({'nurseAssessment', 'secondaryDiagnosis', 'medicines', 'referrals'})
    REQUIRED: ClassVar[tuple[str, ...]] = (
        'slNo', 'date', 'time', 'empNo', 'employeeName', 'emiratesId',
        'trLocation', 'mobileNumber', 'natureOfCase', 'caseCategory',
    )
    SUGGESTIONS: ClassVar[dict[str, tuple[str, bool]]] = {
        'nurseAssessment': (constants.NURSE_ASSESSMENT, False),
        'primaryDiagnosis': (constants.PRIMARY_DIAGNOSIS, False),
        'secondaryDiagnosis': (constants.PRIMARY_DIAGNOSIS, False),
        'medicines.name': (constants.MEDICINE_NAME, False),
        'referrals.primaryDiagnosisReferral': (constants.PRIMARY_DIAGNOSIS, False),
    }
    FLAG_FIELDS: ClassVar[tuple[str, ...]] = ('ipAdmissionRequired', 'caseCategory')

    listeners: list[FlagListener] = field(default_factory=list, repr=False, compare=False)

    def initial_values(self) -> dict[str, Any]:
        values = super().initial_values()
        values.update(slNo=_sl_no(), date=_local_date(), time=_local_time())
        return values

    def subscribe(self, listener: FlagListener) -> None:
        self.listeners.append(listener)

    def changed(self, names: set[str]) -> None:
        for name in self.FLAG_FIELDS:
            if name in names:
                for listener in list(self.listeners):
                    listener(name, self.values[name])

    def keep_on_reset(self) -> tuple[str, ...]:
        return ('locationId', 'createdBy')

    def saved_employee(self, saved: dict[str, Any]) -> dict[str, str]:
        """Employee fields of a saved visit, falling back to what was typed."""
        return {name: str(saved.get(name) or self.values.get(name) or '') for name in EMPLOYEE_FIELDS}

    def _referrals(self) -> list[dict]:
        result = []
        for item in self.values['referrals']:
            if not isinstance(item, dict):
                continue
            secondary = _strings(item.get('secondaryDiagnosisReferral'))
            text_keys = [k for k, v in EMPTY_REFERRAL.items() if isinstance(v, str)]
            if not any(item.get(k) for k in text_keys) and not secondary:
                continue
            entry = {k: _blank(item.get(k)) for k in text_keys}
            entry['secondaryDiagnosisReferral'] = secondary or None
            entry['insuranceApprovalRequested'] = bool(item.get('insuranceApprovalRequested'))
            entry['followUpRequired'] = bool(item.get('followUpRequired'))
            entry['followUpVisits'] = [
                _compact({'visitDate': _blank(v.get('visitDate')), 'visitRemarks': _blank(v.get('visitRemarks'))})
                for v in item.get('followUpVisits') or []
                if isinstance(v, dict) and (v.get('visitDate') or v.get('visitRemarks'))
            ]
            result.append(_compact(entry))
        return result

    def build_payload(self) -> dict[str, Any]:
        v = self.values
        medicines = [
            _compact({'name': _blank(m.get('name')), 'course': _blank(m.get('course')),
                      'expiryDate': _blank(m.get('expiryDate'))})
            for m in v['medicines']
            if isinstance(m, dict) and (m.get('name') or m.get('course') or m.get('expiryDate'))
        ]
        referrals = self._referrals()
        return _compact({
            'locationId': _blank(v['locationId']),
            'slNo': to_number(v['slNo']),
            'date': v['date'],
            'time': v['time'],
            'empNo': v['empNo'],
            'employeeName': v['employeeName'],
            'emiratesId': v['emiratesId'],
            'insuranceId': _blank(v['insuranceId']),
            'trLocation': v['trLocation'],
            'mobileNumber': v['mobileNumber'],
            'natureOfCase': v['natureOfCase'],
            'caseCategory': v['caseCategory'],
            'nurseAssessment': _blank(_strings(v['nurseAssessment'])),
            'symptomDuration': _blank(v['symptomDuration']),
            'temperature': to_number(v['temperature']),
            'bloodPressure': _blank(v['bloodPressure']),
            'heartRate': to_number(v['heartRate']),
            'others': _blank(v['others']),
            'tokenNo': v['tokenNo'],
            'sentTo': _blank(v['sentTo']),
            'providerName': _blank(v['providerName']),
            'doctorName': _blank(v['doctorName']),
            'primaryDiagnosis': _blank(v['primaryDiagnosis']),
            'secondaryDiagnosis': _blank(_strings(v['secondaryDiagnosis'])),
            'medicines': medicines or None,
            'sickLeaveStatus': _blank(v['sickLeaveStatus']),
            'sickLeaveStartDate': _blank(v['sickLeaveStartDate']),
            'sickLeaveEndDate': _blank(v['sickLeaveEndDate']),
            'totalSickLeaveDays': to_number(v['totalSickLeaveDays']),
            'remarks': _blank(v['remarks']),
            'referrals': referrals or None,
            'visitStatus': _blank(v['visitStatus']),
            'finalRemarks': _blank(v['finalRemarks']),
            'ipAdmissionRequired': v['ipAdmissionRequired'],
            'createdBy': v['createdBy'],
        })


@dataclass
class HospitalFormState(FormState):
    kind: ClassVar[str] = 'hospital'
    DEFAULTS: ClassVar[dict[str, Any]] = {
        'locationId': '',
        'clinicVisitToken': '',
        'clinicVisitId': '',
        'sno': '',
        'empNo': '',
        'employeeName': '',
        'emiratesId': '',
        'insuranceId': '',
        'trLocation': '',
        'mobileNumber': '',
        'hospitalName': '',
        'dateOfAdmission': '',
        'natureOfCase': '',
        'caseCategory': '',
        'primaryDiagnosis': '',
        'secondaryDiagnosis': [],
        'status': 'Admit',
        'dischargeSummaryReceived': False,
        'dateOfDischarge': '',
        'daysHospitalized': '',
        'followUp': [EMPTY_FOLLOW_UP],
        'fitnessStatus': '',
        'isolationRequired': False,
        'finalRemarks': '',
        'createdBy': '',
    }
    BOOLEAN_FIELDS: ClassVar[frozenset[str]] = frozenset({'dischargeSummaryReceived', 'isolationRequired'})
    LIST_FIELDS: ClassVar[frozenset[str]] = frozenset({'secondaryDiagnosis', 'followUp'})
    DERIVED_FIELDS: ClassVar[frozenset[str]] = frozenset({'daysHospitalized'})
    REQUIRED: ClassVar[tuple[str, ...]] = ('empNo', 'employeeName', 'emiratesId')
    SUGGESTIONS: ClassVar[dict[str, tuple[str, bool]]] = {
        'primaryDiagnosis': (constants.PRIMARY_DIAGNOSIS, True),
        'secondaryDiagnosis': (constants.PRIMARY_DIAGNOSIS, True),
    }

    def recompute(self) -> set[str]:
        days = derived.days_hospitalized(self.values['dateOfAdmission'], self.values['dateOfDischarge'])
        text = '' if days is None else str(days)
        return {'daysHospitalized'} if self._write('daysHospitalized', text) else set()

    def keep_on_reset(self) -> tuple[str, ...]:
        return ('locationId', 'clinicVisitId', 'createdBy')

    def errors(self) -> list[str]:
        errors = super().errors()
        admission = derived.parse_date(self.values['dateOfAdmission'])
        discharge = derived.parse_date(self.values['dateOfDischarge'])
        if admission and discharge and discharge < admission:
            errors.append(DISCHARGE_BEFORE_ADMISSION)
        return errors

    def build_payload(self) -> dict[str, Any]:
        v = self.values
        follow_up = [
            _compact({'date': _blank(f.get('date')), 'remarks': _blank(f.get('remarks'))})
            for f in v['followUp']
            if isinstance(f, dict) and (f.get('date') or f.get('remarks'))
        ]
        return _compact({
            'locationId': _blank(v['locationId']),
            'clinicVisitToken': _blank(v['clinicVisitToken']),
            'clinicVisitId': _blank(v['clinicVisitId']),
            'sno': to_number(v['sno']),
            'empNo': normalize_emp_no(v['empNo']),
            'employeeName': v['employeeName'],
            'emiratesId': v['emiratesId'],
            'insuranceId': _blank(v['insuranceId']),
            'trLocation': _blank(v['trLocation']),
            'mobileNumber': _blank(v['mobileNumber']),
            'hospitalName': _blank(v['hospitalName']),
            'dateOfAdmission': _blank(v['dateOfAdmission']),
            'natureOfCase': _blank(v['natureOfCase']),
            'caseCategory': _blank(v['caseCategory']),
            'primaryDiagnosis': _blank(v['primaryDiagnosis']),
            'secondaryDiagnosis': _blank(_strings(v['secondaryDiagnosis'])),
            'status': _blank(v['status']),
            'dischargeSummaryReceived': v['dischargeSummaryReceived'],
            'dateOfDischarge': _blank(v['dateOfDischarge']),
            'daysHospitalized': to_number(v['daysHospitalized']),
            'followUp': follow_up or None,
            'fitnessStatus': _blank(v['fitnessStatus']),
            'isolationRequired': v['isolationRequired'],
            'finalRemarks': _blank(v['finalRemarks']),
            'createdBy': v['createdBy'],
        })


@dataclass
class IsolationFormState(FormState):
    kind: ClassVar[str] = 'isolation'
    DEFAULTS: ClassVar[dict[str, Any]] = {
        'locationId': '',
        'clinicVisitId': '',
        'siNo': '',
        'empNo': '',
        'type': '',
        'employeeName': '',
        'emiratesId': '',
        'insuranceId': '',
        'mobileNumber': '',
        'trLocation': '',
        'isolatedIn': '',
        'isolationReason': '',
        'nationality': '',
        'slUpto': '',
        'dateFrom': '',
        'dateTo': '',
        'currentStatus': '',
        'remarks': '',
        'createdBy': '',
    }
    REQUIRED: ClassVar[tuple[str, ...]] = ('clinicVisitId', 'siNo', 'empNo', 'employeeName', 'emiratesId', 'createdBy')

    def keep_on_reset(self) -> tuple[str, ...]:
        return ('locationId', 'clinicVisitId', 'createdBy')

    def errors(self) -> list[str]:
        if not self.values['clinicVisitId']:
            return [CLINIC_VISIT_REQUIRED]
        errors = super().errors()
        if self.values['type'] and self.values['type'] not in constants.ISOLATION_TYPES:
            errors.append(ISOLATION_TYPE_INVALID)
        return errors

    def build_payload(self) -> dict[str, Any]:
        v = self.values
        payload = {name: _blank(v[name]) for name in self.DEFAULTS}
        payload.update(
            siNo=to_number(v['siNo']),
            empNo=v['empNo'],
            employeeName=v['employeeName'],
            emiratesId=v['emiratesId'],
            createdBy=v['createdBy'],
        )
        return _compact(payload)


@dataclass
class HappinessSurveyState(FormState):
    kind: ClassVar[str] = 'survey'
    DEFAULTS: ClassVar[dict[str, Any]] = {
        'date': '',
        'time': '',
        'empNo': '',
        'empName': '',
        'emiratesId': '',
        'insuranceId': '',
        'trLocation': '',
        'surveyor': '',
        'q1': '',
        'q2': '',
        'q3': '',
        'q4': '',
        'q5': '',
        'q6': '',
        'overallRating': '',
        'suggestion': '',
        'happinessScore': '',
        'photoBase64': '',
        'signatureBase64': '',
    }
    DERIVED_FIELDS: ClassVar[frozenset[str]] = frozenset({'happinessScore'})
    REQUIRED: ClassVar[tuple[str, ...]] = ('empNo', 'empName')
    ANSWERS: ClassVar[tuple[str, ...]] = ('q1', 'q2', 'q3', 'q4', 'q5', 'q6', 'overallRating')

    def initial_values(self) -> dict[str, Any]:
        values = super().initial_values()
        values.update(date=_local_date(), time=_local_time())
        return values

    def _coerce(self, name: str, value: Any) -> Any:
        if name in self.ANSWERS:
            return '' if value in (None, '') else to_number(value)
        return super()._coerce(name, value)

    def recompute(self) -> set[str]:
        score = derived.happiness_score(*(self.values[name] for name in self.ANSWERS))
        return {'happinessScore'} if self._write('happinessScore', '' if score is None else score) else set()

    def apply_employee(self, employee: dict[str, Any]) -> set[str]:
        mapped = dict(employee)
        if 'employeeName' in mapped:
            mapped.setdefault('empName', mapped['employeeName'])
        changed: set[str] = set()
        for name in ('empNo', 'empName', 'emiratesId', 'insuranceId', 'trLocation'):
            if name in mapped:
                changed |= self.set(name, _prefill_value(name, mapped[name], self.values[name]))
        return changed

    def clear_employee(self) -> set[str]:
        changed: set[str] = set()
        for name in ('empName', 'emiratesId', 'insuranceId', 'trLocation'):
            changed |= self.set(name, '')
        return changed

    def keep_on_reset(self) -> tuple[str, ...]:
        return ('surveyor',)

    def errors(self) -> list[str]:
        errors = super().errors()
        if any(self.values[name] in ('', None) for name in self.ANSWERS):
            errors.append(SURVEY_ANSWERS_REQUIRED)
        return errors

    def build_payload(self) -> dict[str, Any]:
        payload = {name: _blank(value) for name, value in self.values.items()}
        score = self.values['happinessScore']
        payload['happinessScore'] = score if isinstance(score, float) and math.isfinite(score) else 0
        return _compact(payload)


FORM_TYPES: dict[str, type[FormState]] = {
    cls.kind: cls for cls in (ClinicFormState, HospitalFormState, IsolationFormState, HappinessSurveyState)
}


def new_form(kind: str, values: Optional[dict[str, Any]] = None) -> FormState:
    try:
        form_cls = FORM_TYPES[kind]
    except KeyError:
        raise FormInvalid(f'unknown form kind {kind}')
    return form_cls(values=dict(values or {}))
