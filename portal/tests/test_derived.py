from datetime import date, datetime

import pytest

from portal.services.derived import days_hospitalized, happiness_score, parse_date
from portal.services.forms import HappinessSurveyState, HospitalFormState


def test_days_hospitalized_counts_whole_days():
    assert days_hospitalized('2024-01-01', '2024-01-05') == 4


def test_days_hospitalized_rounds_partial_days_up():
    assert days_hospitalized('2024-01-01T00:00', '2024-01-02T06:00') == 2


def test_days_hospitalized_same_day_is_zero():
    assert days_hospitalized('2024-03-10', '2024-03-10') == 0


@pytest.mark.parametrize('admission, discharge', [
    ('', '2024-01-05'),
    ('2024-01-01', ''),
    ('2024-01-05', '2024-01-01'),
    ('not a date', '2024-01-01'),
])
def test_days_hospitalized_without_a_valid_range(admission, discharge):
    assert days_hospitalized(admission, discharge) is None


def test_parse_date_accepts_dates_and_utc_strings():
    assert parse_date(date(2024, 1, 2)) == datetime(2024, 1, 2)
    assert parse_date('2024-01-02T10:00:00Z') == datetime(2024, 1, 2, 10, 0)
    assert parse_date(None) is None


def test_offsets_are_compared_in_utc():
    assert parse_date('2024-01-01T23:00:00+05:00') == datetime(2024, 1, 1, 18, 0)
    assert days_hospitalized('2024-01-01T23:00:00+05:00', '2024-01-01T19:00:00Z') == 1


def test_happiness_score_all_fours():
    assert happiness_score(4, 4, 4, 4, 4, 4, 8) == 4.0


def test_happiness_score_rounds_to_one_decimal():
    # (5 + 4*5 + 4) / 7 = 4.142...
    assert happiness_score(5, 4, 4, 4, 4, 4, 8) == 4.1
    # (30 + 4.5) / 7 = 4.928...
    assert happiness_score(5, 5, 5, 5, 5, 5, 9) == 4.9


def test_happiness_score_accepts_numeric_strings():
    assert happiness_score('4', '4', '4', '4', '4', '4', '8') == 4.0


@pytest.mark.parametrize('answers', [
    (4, 4, 4, 4, 4, None, 8),
    (4, 4, 4, 4, 4, 4, ''),
    (4, 4, 'x', 4, 4, 4, 8),
    (4, 4, True, 4, 4, 4, 8),
])
def test_happiness_score_needs_every_answer(answers):
    assert happiness_score(*answers) is None


def test_hospital_form_recomputes_days_on_date_change():
    form = HospitalFormState()
    form.set('dateOfAdmission', '2024-01-01')
    changed = form.set('dateOfDischarge', '2024-01-05')
    assert changed == {'dateOfDischarge', 'daysHospitalized'}
    assert form['daysHospitalized'] == '4'

    changed = form.set('dateOfDischarge', '')
    assert 'daysHospitalized' in changed
    assert form['daysHospitalized'] == ''


def test_survey_state_scores_once_all_answers_are_in():
    form = HappinessSurveyState()
    for name in ('q1', 'q2', 'q3', 'q4', 'q5', 'q6'):
        form.set(name, '4')
    assert form['happinessScore'] == ''
    changed = form.set('overallRating', 8)
    assert changed == {'overallRating', 'happinessScore'}
    assert form['happinessScore'] == 4.0
