"""
Hospital admission and isolation endpoints.

Both run the patient reconciler before saving; its state is kept in the
session per employee number so repeated saves never create the patient
twice.
"""
from __future__ import annotations

from rest_framework.decorators import api_view

from portal.serializers.records import FormValuesSerializer
from portal.services.forms import HospitalFormState, IsolationFormState
from portal.services.patients import PatientRecordReconciler
from portal.services.records import HospitalService, IsolationService

from .common import curd, dropdown, ok, patient_store


def reconciler_for(request, form, patient_id=''):
    reconciler = patient_store(request).reconciler_for(form['empNo'], dropdown(request))
    if patient_id and not reconciler.patient_id:
        reconciler = PatientRecordReconciler(reconciler.client, patient_id=patient_id, emp_no=form['empNo'])
    return reconciler


def _submit(request, service_cls, form_cls):
    s = FormValuesSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    form = form_cls(values=s.validated_data['values'])
    reconciler = reconciler_for(request, form, s.validated_data['patientId'])
    try:
        result = service_cls(curd(request)).submit(form, reconciler)
    finally:
        patient_store(request).save(form['empNo'], reconciler)
    return ok(result, status=201)


def _detail(request, record_id, service_cls, form_cls):
    service = service_cls(curd(request))
    if request.method == 'GET':
        return ok(service.get(record_id))
    s = FormValuesSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    form = form_cls(values=s.validated_data['values'])
    reconciler = reconciler_for(request, form, s.validated_data['patientId'])
    saved = service.update(record_id, form, reconciler)
    patient_store(request).save(form['empNo'], reconciler)
    return ok(saved)


@api_view(['POST'])
def hospital_create(request):
    return _submit(request, HospitalService, HospitalFormState)


@api_view(['GET', 'PUT'])
def hospital_detail(request, record_id):
    return _detail(request, record_id, HospitalService, HospitalFormState)


@api_view(['POST'])
def isolation_create(request):
    return _submit(request, IsolationService, IsolationFormState)


@api_view(['GET', 'PUT'])
def isolation_detail(request, record_id):
    return _detail(request, record_id, IsolationService, IsolationFormState)
