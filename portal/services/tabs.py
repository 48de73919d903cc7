"""
Clinic / hospital / isolation tab gating.

The clinic form drives two flags: ``ipAdmissionRequired`` unlocks the
hospital tab and the communicable-disease case category unlocks the
isolation tab.  A tab whose record already exists stays unlocked whatever
the flags say.  Saving is per tab; nothing ties the three saves together.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from portal.constants import COMMUNICABLE_DISEASE
from portal.exceptions import FormInvalid, PortalError

logger = logging.getLogger(__name__)


class Tab(str, enum.Enum):
    CLINIC = 'clinic'
    HOSPITAL = 'hospital'
    ISOLATION = 'isolation'

    @classmethod
    def parse(cls, value: Any) -> Optional['Tab']:
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class TabSaveResult:
    tab: Tab
    ok: bool
    data: Any = None
    error: str = ''

    def to_dict(self) -> dict:
        return {'tab': self.tab.value, 'ok': self.ok, 'data': self.data, 'error': self.error}


def _record_id(record: Any) -> Optional[str]:
    if not isinstance(record, dict):
        return None
    value = record.get('_id') or record.get('id')
    return str(value) if value else None


@dataclass
class TabOrchestrator:
    ip_admission_required: bool = False
    case_category: str = ''
    has_hospital_record: bool = False
    has_isolation_record: bool = False
    # new multi-form flow: gated tabs wait for the clinic visit to be saved
    require_clinic_saved: bool = False
    clinic_saved: bool = False
    clinic_id: Optional[str] = None
    current: Tab = Tab.CLINIC
    _requested_consumed: bool = field(default=False, init=False, repr=False)
    _savers: dict = field(default_factory=dict, init=False, repr=False)

    @classmethod
    def for_clinic_visit(cls, visit: dict[str, Any]) -> 'TabOrchestrator':
        """Edit flow: flags and record presence from a loaded clinic visit."""
        hospital = (visit.get('hospitalizations') or [None])[0]
        isolation = (visit.get('isolations') or [None])[0]
        return cls(
            ip_admission_required=bool(visit.get('ipAdmissionRequired')),
            case_category=str(visit.get('caseCategory') or ''),
            has_hospital_record=_record_id(hospital) is not None,
            has_isolation_record=_record_id(isolation) is not None,
            clinic_id=_record_id(visit),
            clinic_saved=True,
        )

    @property
    def hospital_condition(self) -> bool:
        return self.ip_admission_required is True

    @property
    def isolation_condition(self) -> bool:
        return self.case_category == COMMUNICABLE_DISEASE

    @property
    def condition_met(self) -> bool:
        return self.hospital_condition or self.isolation_condition

    def is_enabled(self, tab: Tab) -> bool:
        if tab is Tab.CLINIC:
            return True
        if tab is Tab.HOSPITAL:
            condition, has_record = self.hospital_condition, self.has_hospital_record
        else:
            condition, has_record = self.isolation_condition, self.has_isolation_record
        if has_record:
            return True
        if not condition:
            return False
        return not (self.require_clinic_saved and not self.clinic_saved)

    def enabled_tabs(self) -> list[Tab]:
        return [tab for tab in Tab if self.is_enabled(tab)]

    def initial_tab(self, requested: Any = None) -> Tab:
        """Honour a requested tab once, and only if it is enabled right now."""
        if not self._requested_consumed:
            self._requested_consumed = True
            tab = Tab.parse(requested)
            if tab is not None and self.is_enabled(tab):
                self.current = tab
        return self.current

    def select(self, tab: Any) -> Tab:
        parsed = Tab.parse(tab)
        if parsed is None:
            raise FormInvalid(f'unknown tab {tab}')
        if not self.is_enabled(parsed):
            raise FormInvalid(f'{parsed.value} tab is not available')
        self.current = parsed
        return parsed

    def _settle(self) -> None:
        if not self.is_enabled(self.current):
            self.current = Tab.CLINIC

    def observe(self, name: str, value: Any) -> None:
        """Listener for clinic form flag changes."""
        if name == 'ipAdmissionRequired':
            self.ip_admission_required = bool(value)
        elif name == 'caseCategory':
            self.case_category = str(value or '')
        self._settle()

    def mark_clinic_saved(self, clinic_id: str) -> None:
        self.clinic_id = clinic_id
        self.clinic_saved = True

    def mark_record_saved(self, tab: Tab) -> None:
        if tab is Tab.HOSPITAL:
            self.has_hospital_record = True
        elif tab is Tab.ISOLATION:
            self.has_isolation_record = True

    def reset(self) -> None:
        self.ip_admission_required = False
        self.case_category = ''
        self.clinic_saved = False
        self.clinic_id = None
        self.current = Tab.CLINIC

    def register_saver(self, tab: Tab, saver: Callable[[], Any]) -> None:
        self._savers[tab] = saver

    def save(self, tab: Tab) -> TabSaveResult:
        if not self.is_enabled(tab):
            return TabSaveResult(tab, ok=False, error=f'{tab.value} tab is not available')
        saver = self._savers.get(tab)
        if saver is None:
            return TabSaveResult(tab, ok=False, error=f'nothing to save on {tab.value}')
        try:
            data = saver()
        except PortalError as exc:
            logger.info('%s save failed: %s', tab.value, exc.message)
            return TabSaveResult(tab, ok=False, error=exc.message)
        if tab is Tab.CLINIC and isinstance(data, dict) and data.get('id'):
            self.mark_clinic_saved(str(data['id']))
        else:
            self.mark_record_saved(tab)
        return TabSaveResult(tab, ok=True, data=data)

    def save_enabled(self) -> list[TabSaveResult]:
        """Save every enabled tab that has a saver; each result stands alone."""
        return [self.save(tab) for tab in self.enabled_tabs() if tab in self._savers]

    def snapshot(self) -> dict[str, Any]:
        return {
            'current': self.current.value,
            'clinicId': self.clinic_id,
            'clinicSaved': self.clinic_saved,
            'ipAdmissionRequired': self.ip_admission_required,
            'caseCategory': self.case_category,
            'tabs': {tab.value: self.is_enabled(tab) for tab in Tab},
        }
