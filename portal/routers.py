"""
URL mappings for the clinic portal API.

Trailing slashes are omitted, matching the upstream API paths.  The live
form sessions are routed separately in ``portal.realtime.routing``.
"""
from django.urls import include, path

from .views import auth, clinic, derived, dropdowns, health, hospital, lookup, multi_form, patients, staff, surveys

urlpatterns = [
    path('healthz', health.healthz, name='healthz'),
    path('', include('django_prometheus.urls')),

    # Auth
    path('login', auth.login_view, name='login_page'),
    path('api/auth/login', auth.login_view, name='login_view'),
    path('api/auth/refresh', auth.refresh_view, name='refresh_view'),
    path('api/auth/logout', auth.logout_view, name='logout_view'),
    path('api/auth/me', auth.me_view, name='me_view'),

    # Dropdowns and lookups
    path('api/dropdowns/categories', dropdowns.categories, name='dropdown_categories'),
    path('api/dropdowns/options', dropdowns.options_many, name='dropdown_options_many'),
    path('api/dropdowns/options/<str:category>', dropdowns.options, name='dropdown_options'),
    path('api/dropdowns/providers', dropdowns.providers, name='dropdown_providers'),
    path('api/lookup/suggestions', lookup.suggestions, name='suggestions'),
    path('api/lookup/snap', lookup.snap, name='snap'),
    path('api/lookup/employee/<str:emp_no>', lookup.employee, name='employee_lookup'),

    # Records
    path('api/clinic', clinic.clinic_collection, name='clinic_collection'),
    path('api/clinic/<str:clinic_id>', clinic.clinic_detail, name='clinic_detail'),
    path('api/hospital', hospital.hospital_create, name='hospital_create'),
    path('api/hospital/<str:record_id>', hospital.hospital_detail, name='hospital_detail'),
    path('api/isolation', hospital.isolation_create, name='isolation_create'),
    path('api/isolation/<str:record_id>', hospital.isolation_detail, name='isolation_detail'),
    path('api/multi-form/<str:clinic_id>', multi_form.multi_form_detail, name='multi_form_detail'),
    path('api/multi-form/<str:clinic_id>/save', multi_form.multi_form_save, name='multi_form_save'),
    path('api/derived/preview', derived.derived_preview, name='derived_preview'),

    # Patient master and staff accounts
    path('api/patients', patients.patient_collection, name='patient_collection'),
    path('api/patients/search', patients.patient_search, name='patient_search'),
    path('api/patients/<str:patient_id>', patients.patient_detail, name='patient_detail'),
    path('api/staff', staff.staff_collection, name='staff_collection'),
    path('api/staff/<str:user_id>', staff.staff_detail, name='staff_detail'),

    # Happiness survey
    path('api/surveys', surveys.survey_submit, name='survey_submit'),
    path('api/surveys/count', surveys.survey_count, name='survey_count'),
    path('api/surveys/eligibility/<str:emp_no>', surveys.survey_eligibility, name='survey_eligibility'),
]
