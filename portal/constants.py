"""Fixed category names and business constants shared by the forms."""
from __future__ import annotations

# Dropdown categories served by the dropdown API
TR_LOCATION = "TR LOCATION"
NATURE_OF_CASE = "NATURE OF CASE"
CASE_CATEGORY = "CASE CATEGORY"
SYMPTOM_DURATION = "SYMPTOM DURATION"
SENT_TO = "SENT TO"
TR_HOME_CARE = "TR HOME CARE"
TR_TELE_HEALTH = "TR TELE-HEALTH"
MEDICINE_COURSE = "MEDICINE  COURSE"
SICK_LEAVE_STATUS = "SICK LEAVE STATUS"
REFERRAL = "REFERRAL"
REFERRAL_TYPE = "REFERRAL TYPE"
SPECIALIST_TYPE = "SPECIALIST TYPE"
EXTERNAL_PROVIDER = "EXTERNAL PROVIDER"
INSURANCE_APPROVAL = "INSURANCE APPROVAL REQUESTS"
FOLLOW_UP_REQUIRED = "FOLLOW UP  REQUIRED"
VISIT_STATUS = "VISIT STATUS"
IP_ADMISSION = "IP ADMISSION"

DROPDOWN_CATEGORIES = (
    TR_LOCATION,
    NATURE_OF_CASE,
    CASE_CATEGORY,
    SYMPTOM_DURATION,
    SENT_TO,
    TR_HOME_CARE,
    TR_TELE_HEALTH,
    MEDICINE_COURSE,
    SICK_LEAVE_STATUS,
    REFERRAL,
    REFERRAL_TYPE,
    SPECIALIST_TYPE,
    EXTERNAL_PROVIDER,
    INSURANCE_APPROVAL,
    FOLLOW_UP_REQUIRED,
    VISIT_STATUS,
    IP_ADMISSION,
)

# Free-text search categories (suggestion inputs)
NURSE_ASSESSMENT = "NURSE ASSESMENT"
PRIMARY_DIAGNOSIS = "PRIMARY DIAGNOSIS"
MEDICINE_NAME = "medicine Name"
PROVIDER_NAME = "PROVIDER NAME"

SEARCH_CATEGORIES = (NURSE_ASSESSMENT, PRIMARY_DIAGNOSIS, MEDICINE_NAME, PROVIDER_NAME)

# "Sent to" value -> category listing the provider names for it
PROVIDER_CATEGORY_BY_SENT_TO = {
    TR_HOME_CARE: TR_HOME_CARE,
    TR_TELE_HEALTH: TR_TELE_HEALTH,
    EXTERNAL_PROVIDER: EXTERNAL_PROVIDER,
}

# Dropdown bundles each form loads on mount
CLINIC_FORM_DROPDOWNS = (
    NATURE_OF_CASE, CASE_CATEGORY, SENT_TO, SYMPTOM_DURATION, MEDICINE_COURSE, TR_LOCATION,
    REFERRAL_TYPE, EXTERNAL_PROVIDER, SPECIALIST_TYPE,
)
HOSPITAL_FORM_DROPDOWNS = (NATURE_OF_CASE, CASE_CATEGORY, TR_LOCATION, EXTERNAL_PROVIDER)
ISOLATION_FORM_DROPDOWNS = (TR_LOCATION,)

# Case category that unlocks the isolation tab
COMMUNICABLE_DISEASE = "COMMUNICABLE /INFECTIOUS DISEASE"

ISOLATION_TYPES = ("ISOLATION", "REHABILITATION")

EMPLOYEE_LOOKUP_ERROR = "Unable to load employee details."
ELIGIBILITY_CHECK_ERROR = "Unable to check survey eligibility."


def provider_category_for(sent_to: str) -> str | None:
    return PROVIDER_CATEGORY_BY_SENT_TO.get((sent_to or "").strip())
