import datetime

import pytest

from flow.errors import NoWaitingPatients, ValidationError
from flow.models import QueueToken, TokenStatus
from flow.services import tokens

pytestmark = pytest.mark.django_db

DAY = datetime.date(2024, 3, 1)


def test_token_numbers_strictly_increase_per_clinician_day(clinician, make_patient):
    numbers = [tokens.enqueue(clinician, make_patient(), lane, service_date=DAY).number
               for lane in ('regular', 'emergency', 'priority', 'regular')]
    assert numbers == [1, 2, 3, 4]
    # a new day starts over
    assert tokens.enqueue(clinician, make_patient(), service_date=DAY + datetime.timedelta(days=1)).number == 1


def test_emergency_lane_served_before_lower_regular_token(clinician, make_patient):
    regular = tokens.enqueue(clinician, make_patient(), 'regular', service_date=DAY)
    emergency = tokens.enqueue(clinician, make_patient(), 'emergency', service_date=DAY)
    priority = tokens.enqueue(clinician, make_patient(), 'priority', service_date=DAY)
    assert emergency.number > regular.number

    order = [row['id'] for row in tokens.waiting_list(clinician, DAY)]
    assert order == [emergency.pk, priority.pk, regular.pk]
    assert tokens.advance(clinician, service_date=DAY).pk == emergency.pk


def test_advance_completes_current_and_calls_next(clinician, make_patient):
    first = tokens.enqueue(clinician, make_patient(), service_date=DAY)
    second = tokens.enqueue(clinician, make_patient(), service_date=DAY)

    tokens.advance(clinician, service_date=DAY)
    assert tokens.currently_serving(clinician, DAY)['id'] == first.pk

    tokens.advance(clinician, service_date=DAY)
    first.refresh_from_db()
    assert first.status == TokenStatus.COMPLETED
    assert first.completed_at is not None
    assert tokens.currently_serving(clinician, DAY)['id'] == second.pk


def test_last_patient_of_the_day_is_completed(clinician, make_patient):
    only = tokens.enqueue(clinician, make_patient(), service_date=DAY)
    assert tokens.advance(clinician, service_date=DAY).pk == only.pk
    assert tokens.advance(clinician, service_date=DAY) is None
    only.refresh_from_db()
    assert only.status == TokenStatus.COMPLETED
    assert only.completed_at is not None
    assert tokens.currently_serving(clinician, DAY) is None


def test_advance_on_empty_day_changes_nothing(clinician, make_patient):
    with pytest.raises(NoWaitingPatients):
        tokens.advance(clinician, service_date=DAY)
    done = tokens.enqueue(clinician, make_patient(), service_date=DAY)
    tokens.advance(clinician, service_date=DAY)
    tokens.advance(clinician, service_date=DAY)
    with pytest.raises(NoWaitingPatients):
        tokens.advance(clinician, service_date=DAY)
    done.refresh_from_db()
    assert done.status == TokenStatus.COMPLETED


def test_unknown_lane_rejected(clinician, make_patient):
    with pytest.raises(ValidationError):
        tokens.enqueue(clinician, make_patient(), 'vip', service_date=DAY)
    assert QueueToken.objects.count() == 0


def test_board_read_model(clinician, make_patient, settings):
    settings.FLOW_TOKEN_MINUTES_PER_PATIENT = 15
    for _ in range(3):
        tokens.enqueue(clinician, make_patient(), service_date=DAY)
    tokens.advance(clinician, service_date=DAY)

    board = tokens.clinician_board(clinician, DAY)
    assert board['currentlyServing']['token'] == '001'
    assert [w['token'] for w in board['waiting']] == ['002', '003']
    assert board['waitingCount'] == 2
    assert board['estimatedWaitMinutes'] == 30
    assert len(tokens.clinician_board(clinician, DAY, limit=1)['waiting']) == 1


def test_format_token():
    assert tokens.format_token(7) == '007'
    assert tokens.format_token(1234) == '1234'
