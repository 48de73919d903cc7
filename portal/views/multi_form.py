"""
Clinic visit with its hospital and isolation sub-records, edited together.

Each tab saves on its own; the response lists one result per tab and a
failure on one tab does not undo another.
"""
from __future__ import annotations

from rest_framework.decorators import api_view

from portal.serializers.records import MultiFormSaveSerializer
from portal.services.forms import EMPLOYEE_FIELDS, ClinicFormState, HospitalFormState, IsolationFormState
from portal.services.records import ClinicService, HospitalService, IsolationService
from portal.services.tabs import Tab, TabOrchestrator

from .common import curd, ok, patient_store
from .hospital import reconciler_for


def _first(records):
    return records[0] if isinstance(records, list) and records else None


def _record_id(record):
    if not isinstance(record, dict):
        return None
    return record.get('_id') or record.get('id')


def _employee(visit: dict) -> dict:
    return {name: str(visit.get(name) or '') for name in EMPLOYEE_FIELDS}


@api_view(['GET'])
def multi_form_detail(request, clinic_id):
    visit = ClinicService(curd(request)).get(clinic_id)
    tabs = TabOrchestrator.for_clinic_visit(visit)
    tabs.initial_tab(request.query_params.get('tab'))
    return ok({
        'tabs': tabs.snapshot(),
        'clinic': {k: v for k, v in visit.items() if k not in ('hospitalizations', 'isolations')},
        'hospital': _first(visit.get('hospitalizations')),
        'isolation': _first(visit.get('isolations')),
        'employee': _employee(visit),
    })


@api_view(['POST'])
def multi_form_save(request, clinic_id):
    s = MultiFormSaveSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    client = curd(request)
    visit = ClinicService(client).get(clinic_id)
    tabs = TabOrchestrator.for_clinic_visit(visit)
    employee = _employee(visit)

    # clinic edits may change the gates before the sub-forms are saved
    if 'clinic' in vd:
        clinic_form = ClinicFormState(values=vd['clinic'])
        for name in ClinicFormState.FLAG_FIELDS:
            tabs.observe(name, clinic_form[name])
        tabs.register_saver(Tab.CLINIC, lambda: ClinicService(client).update(clinic_id, clinic_form))

    def sub_form_saver(form_cls, service_cls, existing):
        def save():
            form = form_cls(values={**vd[form_cls.kind], 'clinicVisitId': clinic_id})
            # the visit fills gaps, it never blanks submitted employee fields
            form.apply_employee({name: value for name, value in employee.items() if value})
            reconciler = reconciler_for(request, form)
            service = service_cls(client)
            record_id = _record_id(existing)
            try:
                if record_id:
                    return service.update(record_id, form, reconciler)
                return service.submit(form, reconciler)
            finally:
                patient_store(request).save(form['empNo'], reconciler)
        return save

    if 'hospital' in vd:
        tabs.register_saver(Tab.HOSPITAL, sub_form_saver(
            HospitalFormState, HospitalService, _first(visit.get('hospitalizations'))))
    if 'isolation' in vd:
        tabs.register_saver(Tab.ISOLATION, sub_form_saver(
            IsolationFormState, IsolationService, _first(visit.get('isolations'))))

    results = tabs.save_enabled()
    skipped = [tab.value for tab in (Tab.HOSPITAL, Tab.ISOLATION) if tab.value in vd and not tabs.is_enabled(tab)]
    return ok({
        'results': [r.to_dict() for r in results],
        'skipped': skipped,
        'tabs': tabs.snapshot(),
    })
