"""
Facility-wide triage queue.

Patients are served by clinical urgency first and arrival order second.
The order is never stored: it is recomputed from the current entries on
every read, so the same set of entries always yields the same board.
"""
import logging
from typing import Iterable, Iterator, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from flow.errors import (
    EntryNotWaiting,
    IllegalTriageTransition,
    InvalidTriageLevel,
    NotFoundError,
    PatientAlreadyQueued,
    ValidationError,
)
from flow.models import (
    Clinician,
    Patient,
    TriageEntry,
    TriageEventType,
    TriageLevel,
    TriageStatus,
    TriageTransition,
)
from flow.services import registry
from flow.services.audit import history, record_transition
from flow.services.guards import require_known_state
from flow.services.sequences import next_value

logger = logging.getLogger(__name__)

TRIAGE_SEQUENCE = 'triage'

TRIAGE_PRIORITY = {
    TriageLevel.CRITICAL: 0,
    TriageLevel.URGENT: 1,
    TriageLevel.MODERATE: 2,
    TriageLevel.MINOR: 3,
}

TRIAGE_TRANSITIONS = {
    TriageStatus.WAITING: {TriageStatus.IN_TREATMENT, TriageStatus.UNDER_OBSERVATION},
    TriageStatus.IN_TREATMENT: {TriageStatus.UNDER_OBSERVATION, TriageStatus.DISCHARGED, TriageStatus.ADMITTED},
    TriageStatus.UNDER_OBSERVATION: {TriageStatus.DISCHARGED, TriageStatus.ADMITTED, TriageStatus.IN_TREATMENT},
    TriageStatus.DISCHARGED: set(),
    TriageStatus.ADMITTED: set(),
}

ACTIVE_STATUSES = (TriageStatus.WAITING, TriageStatus.IN_TREATMENT, TriageStatus.UNDER_OBSERVATION)
CLOSING_STATUSES = (TriageStatus.DISCHARGED, TriageStatus.ADMITTED)


def triage_order_key(entry: TriageEntry) -> tuple[int, int]:
    level = require_known_state(entry.triage_level, TriageLevel, aggregate='triage entry', pk=entry.pk)
    return TRIAGE_PRIORITY[level], entry.sequence


def order_entries(entries: Iterable[TriageEntry]) -> list[TriageEntry]:
    return sorted(entries, key=triage_order_key)


def can_transition(entry: TriageEntry, new_status: str) -> bool:
    current = require_known_state(entry.status, TriageStatus, aggregate='triage entry', pk=entry.pk)
    return new_status in TRIAGE_TRANSITIONS[current]


def _locked_entry(entry_id: int) -> TriageEntry:
    entry = TriageEntry.objects.select_for_update().filter(pk=entry_id).first()
    if not entry:
        raise NotFoundError(f'triage entry {entry_id} not found')
    return entry


def admit(patient: Patient, triage_level: str, vitals: Optional[dict] = None, *,
          facility: Optional[str] = None, chief_complaint: str = '', arrival_time=None,
          clinician: Optional[Clinician] = None, operator=None) -> TriageEntry:
    """Put a patient on the triage board in ``waiting`` state."""
    if triage_level not in TriageLevel.values:
        raise InvalidTriageLevel(f'unknown triage level {triage_level!r}', detail={'allowed': list(TriageLevel.values)})
    if clinician is not None and not clinician.active:
        raise ValidationError(f'clinician {clinician.pk} is not active')
    with transaction.atomic():
        locked_patient = registry.get_patient(patient.pk, for_update=True)
        if TriageEntry.objects.filter(patient=locked_patient, closed_at__isnull=True).exists():
            raise PatientAlreadyQueued(f'patient {patient.pk} already has an open triage entry')
        entry = TriageEntry.objects.create(
            patient=locked_patient,
            sequence=next_value(TRIAGE_SEQUENCE),
            facility=facility or settings.FLOW_DEFAULT_FACILITY,
            triage_level=triage_level,
            status=TriageStatus.WAITING,
            arrival_time=arrival_time or timezone.now(),
            assigned_clinician=clinician,
            vitals=vitals or {},
            chief_complaint=chief_complaint,
        )
        record_transition(
            TriageTransition, operator=operator, event=TriageEventType.ADMIT,
            from_status=None, to_status=entry.status, entry=entry,
            detail={'triageLevel': triage_level, 'sequence': entry.sequence},
        )
    return entry


def change_status(entry_id: int, new_status: str, *, operator=None, reason: str = '') -> TriageEntry:
    if new_status not in TriageStatus.values:
        raise ValidationError(f'unknown triage status {new_status!r}', detail={'allowed': list(TriageStatus.values)})
    with transaction.atomic():
        entry = _locked_entry(entry_id)
        if not can_transition(entry, new_status):
            raise IllegalTriageTransition(
                f'cannot move triage entry {entry_id} from {entry.status} to {new_status}',
                detail={'from': entry.status, 'to': new_status},
            )
        old_status = entry.status
        entry.status = new_status
        if new_status in CLOSING_STATUSES:
            entry.closed_at = timezone.now()
        entry.save(update_fields=['status', 'closed_at', 'updated_at'])
        record_transition(
            TriageTransition, operator=operator, event=TriageEventType.CHANGE_STATUS,
            from_status=old_status, to_status=new_status, entry=entry,
            detail={'reason': reason} if reason else None,
        )
    return entry


def reassign(entry_id: int, clinician_id: int, *, operator=None) -> TriageEntry:
    clinician = registry.active_clinician(clinician_id)
    with transaction.atomic():
        entry = _locked_entry(entry_id)
        status = require_known_state(entry.status, TriageStatus, aggregate='triage entry', pk=entry.pk)
        if status != TriageStatus.WAITING:
            raise EntryNotWaiting(f'triage entry {entry_id} is {status}, only waiting entries can be reassigned')
        previous = entry.assigned_clinician_id
        entry.assigned_clinician = clinician
        entry.save(update_fields=['assigned_clinician', 'updated_at'])
        record_transition(
            TriageTransition, operator=operator, event=TriageEventType.REASSIGN,
            from_status=status, to_status=status, entry=entry,
            detail={'fromClinicianId': previous, 'toClinicianId': clinician.pk},
        )
    return entry


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------

def entry_snapshot(entry: TriageEntry, now=None) -> dict:
    now = now or timezone.now()
    waited = None
    if entry.status == TriageStatus.WAITING:
        waited = max(0, int((now - entry.arrival_time).total_seconds() // 60))
    return {
        'id': entry.pk,
        'sequence': entry.sequence,
        'patientId': entry.patient_id,
        'patientName': entry.patient.name,
        'facility': entry.facility,
        'triageLevel': entry.triage_level,
        'status': entry.status,
        'arrivalTime': entry.arrival_time.isoformat(),
        'assignedClinicianId': entry.assigned_clinician_id,
        'vitals': dict(entry.vitals or {}),
        'chiefComplaint': entry.chief_complaint,
        'closedAt': entry.closed_at.isoformat() if entry.closed_at else None,
        'waitMinutes': waited,
    }


def iter_board(*, facility: Optional[str] = None, statuses: Optional[Iterable[str]] = None,
               triage_level: Optional[str] = None, clinician_id: Optional[int] = None,
               include_closed: bool = False) -> Iterator[dict]:
    """Yield snapshots of matching entries in serving order."""
    qs = TriageEntry.objects.select_related('patient')
    if facility:
        qs = qs.filter(facility=facility)
    if statuses:
        qs = qs.filter(status__in=list(statuses))
    elif not include_closed:
        qs = qs.filter(status__in=ACTIVE_STATUSES)
    if triage_level:
        qs = qs.filter(triage_level=triage_level)
    if clinician_id:
        qs = qs.filter(assigned_clinician_id=clinician_id)
    now = timezone.now()
    for entry in order_entries(qs):
        yield entry_snapshot(entry, now)


def board_stats(snapshots: list[dict]) -> dict:
    waits = [s['waitMinutes'] for s in snapshots if s['waitMinutes'] is not None]
    by_level = {level: 0 for level in TriageLevel.values}
    by_status = {status: 0 for status in TriageStatus.values}
    for s in snapshots:
        by_level[s['triageLevel']] = by_level.get(s['triageLevel'], 0) + 1
        by_status[s['status']] = by_status.get(s['status'], 0) + 1
    return {
        'total': len(snapshots),
        'byLevel': by_level,
        'byStatus': by_status,
        'avgWaitMinutes': round(sum(waits) / len(waits)) if waits else 0,
    }


def entry_detail(entry_id: int) -> dict:
    entry = TriageEntry.objects.select_related('patient').filter(pk=entry_id).first()
    if not entry:
        raise NotFoundError(f'triage entry {entry_id} not found')
    data = entry_snapshot(entry)
    data['transitionHistory'] = history(entry.transitions.select_related('operator').order_by('timestamp', 'id'))
    return data
