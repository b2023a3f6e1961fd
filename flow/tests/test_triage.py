import datetime

import pytest
from django.utils import timezone

from flow.errors import (
    CorruptStateError,
    EntryNotWaiting,
    IllegalTriageTransition,
    InvalidTriageLevel,
    NotFoundError,
    PatientAlreadyQueued,
    ValidationError,
)
from flow.models import TriageEntry, TriageStatus, TriageTransition
from flow.services import triage

pytestmark = pytest.mark.django_db


def board_ids(**filters):
    return [row['patientId'] for row in triage.iter_board(**filters)]


def test_critical_ahead_of_earlier_urgent_arrival(make_patient):
    now = timezone.now()
    x, y = make_patient('X'), make_patient('Y')
    triage.admit(x, 'critical', arrival_time=now)
    triage.admit(y, 'urgent', arrival_time=now - datetime.timedelta(minutes=10))
    assert board_ids() == [x.pk, y.pk]


def test_higher_priority_wins_regardless_of_admission_order(make_patient):
    minor, moderate, critical = make_patient(), make_patient(), make_patient()
    triage.admit(minor, 'minor')
    triage.admit(moderate, 'moderate')
    triage.admit(critical, 'critical')
    assert board_ids() == [critical.pk, moderate.pk, minor.pk]


def test_fifo_within_same_level(make_patient):
    patients = [make_patient() for _ in range(4)]
    entries = [triage.admit(p, 'urgent') for p in patients]
    sequences = [e.sequence for e in entries]
    assert sequences == sorted(sequences)
    assert len(set(sequences)) == 4
    assert board_ids() == [p.pk for p in patients]


def test_board_is_recomputed_and_repeatable(make_patient):
    for level in ('minor', 'critical', 'urgent'):
        triage.admit(make_patient(), level)
    assert list(triage.iter_board()) == list(triage.iter_board())


def test_unknown_level_is_rejected_without_side_effects(make_patient):
    with pytest.raises(InvalidTriageLevel):
        triage.admit(make_patient(), 'whenever')
    assert TriageEntry.objects.count() == 0


def test_legal_transitions_and_closing(make_patient, nurse):
    entry = triage.admit(make_patient(), 'moderate', operator=nurse)
    triage.change_status(entry.pk, TriageStatus.IN_TREATMENT, operator=nurse)
    triage.change_status(entry.pk, TriageStatus.UNDER_OBSERVATION, operator=nurse)
    triage.change_status(entry.pk, TriageStatus.IN_TREATMENT, operator=nurse)
    closed = triage.change_status(entry.pk, TriageStatus.ADMITTED, operator=nurse, reason='ward 3')
    assert closed.closed_at is not None
    events = list(TriageTransition.objects.filter(entry=entry).order_by('id').values_list('event', 'to_status'))
    assert events[0] == ('admit', 'waiting')
    assert events[-1] == ('change_status', 'admitted')
    assert TriageTransition.objects.filter(entry=entry, operator=nurse).count() == 5


@pytest.mark.parametrize('path, bad', [
    ([], TriageStatus.DISCHARGED),
    ([], TriageStatus.ADMITTED),
    ([TriageStatus.IN_TREATMENT], TriageStatus.WAITING),
    ([TriageStatus.IN_TREATMENT, TriageStatus.DISCHARGED], TriageStatus.IN_TREATMENT),
])
def test_illegal_transition_leaves_state_unchanged(make_patient, path, bad):
    entry = triage.admit(make_patient(), 'urgent')
    for status in path:
        triage.change_status(entry.pk, status)
    before = TriageEntry.objects.get(pk=entry.pk).status
    logged = TriageTransition.objects.filter(entry=entry).count()
    with pytest.raises(IllegalTriageTransition):
        triage.change_status(entry.pk, bad)
    assert TriageEntry.objects.get(pk=entry.pk).status == before
    assert TriageTransition.objects.filter(entry=entry).count() == logged


def test_unknown_status_is_a_validation_error(make_patient):
    entry = triage.admit(make_patient(), 'urgent')
    with pytest.raises(ValidationError):
        triage.change_status(entry.pk, 'bogus')
    assert TriageEntry.objects.get(pk=entry.pk).status == TriageStatus.WAITING
    assert TriageTransition.objects.filter(entry=entry).count() == 1


def test_closed_entries_leave_default_board_but_stay_queryable(make_patient):
    p = make_patient()
    entry = triage.admit(p, 'minor')
    triage.change_status(entry.pk, TriageStatus.IN_TREATMENT)
    triage.change_status(entry.pk, TriageStatus.DISCHARGED)
    assert board_ids() == []
    assert board_ids(include_closed=True) == [p.pk]
    assert triage.entry_detail(entry.pk)['status'] == 'discharged'


def test_patient_cannot_hold_two_open_entries(make_patient):
    p = make_patient()
    entry = triage.admit(p, 'minor')
    with pytest.raises(PatientAlreadyQueued):
        triage.admit(p, 'critical')
    triage.change_status(entry.pk, TriageStatus.IN_TREATMENT)
    triage.change_status(entry.pk, TriageStatus.DISCHARGED)
    again = triage.admit(p, 'critical')
    assert again.sequence > entry.sequence


def test_reassign_only_while_waiting(make_patient, clinician):
    entry = triage.admit(make_patient(), 'urgent')
    triage.reassign(entry.pk, clinician.pk)
    assert TriageEntry.objects.get(pk=entry.pk).assigned_clinician_id == clinician.pk
    triage.change_status(entry.pk, TriageStatus.IN_TREATMENT)
    with pytest.raises(EntryNotWaiting):
        triage.reassign(entry.pk, clinician.pk)


def test_unknown_entry_is_not_found():
    with pytest.raises(NotFoundError):
        triage.change_status(999, TriageStatus.IN_TREATMENT)


def test_board_filters_and_stats(make_patient, clinician):
    a = triage.admit(make_patient(), 'critical', facility='north')
    triage.admit(make_patient(), 'minor', facility='north', clinician=clinician)
    triage.admit(make_patient(), 'urgent', facility='south')
    triage.change_status(a.pk, TriageStatus.IN_TREATMENT)

    north = list(triage.iter_board(facility='north'))
    assert len(north) == 2
    assert [r['patientId'] for r in triage.iter_board(clinician_id=clinician.pk)] == [north[1]['patientId']]
    assert len(list(triage.iter_board(statuses=['waiting']))) == 2

    stats = triage.board_stats(north)
    assert stats['total'] == 2
    assert stats['byLevel']['critical'] == 1
    assert stats['byStatus']['in_treatment'] == 1
    assert stats['byStatus']['waiting'] == 1


def test_corrupt_stored_level_aborts_read(make_patient):
    entry = triage.admit(make_patient(), 'urgent')
    TriageEntry.objects.filter(pk=entry.pk).update(triage_level='purple')
    with pytest.raises(CorruptStateError):
        list(triage.iter_board())
