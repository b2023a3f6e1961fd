"""
Bed occupancy lifecycle.

Every state change goes through :func:`next_bed_state`, which consults
``BED_TRANSITIONS``; a pair that is not in the table is rejected before the
row is touched.  Each accepted change appends a ``BedEvent``, and the
occupancy report is derived from that log rather than from the current
row.
"""
import datetime
import logging
import math
from decimal import Decimal
from typing import Callable, Optional

from django.db import transaction
from django.utils import timezone

from flow.errors import (
    BedNotAvailable,
    BedNotOccupied,
    IllegalBedTransition,
    PatientAlreadyBedded,
    ValidationError,
)
from flow.models import Bed, BedEvent, BedEventType, BedStatus, Patient
from flow.services import registry
from flow.services.audit import history, record_transition
from flow.services.guards import require_known_state

logger = logging.getLogger(__name__)

# event -> (states it may start from, resulting state)
BED_TRANSITIONS = {
    BedEventType.ALLOCATE: ({BedStatus.AVAILABLE, BedStatus.RESERVED}, BedStatus.OCCUPIED),
    BedEventType.DISCHARGE: ({BedStatus.OCCUPIED}, BedStatus.CLEANING),
    BedEventType.MARK_CLEAN: ({BedStatus.CLEANING}, BedStatus.AVAILABLE),
    BedEventType.FLAG_MAINTENANCE: ({BedStatus.AVAILABLE, BedStatus.CLEANING}, BedStatus.MAINTENANCE),
    BedEventType.COMPLETE_MAINTENANCE: ({BedStatus.MAINTENANCE}, BedStatus.AVAILABLE),
    BedEventType.RESERVE: ({BedStatus.AVAILABLE}, BedStatus.RESERVED),
    BedEventType.CANCEL_RESERVATION: ({BedStatus.RESERVED}, BedStatus.AVAILABLE),
}


def next_bed_state(current: str, event: str) -> str:
    """Resulting state of ``event`` applied to a bed in ``current`` state."""
    sources, target = BED_TRANSITIONS[event]
    if current in sources:
        return target
    message = f'{event} is not allowed while the bed is {current}'
    detail = {'from': current, 'event': event}
    if event == BedEventType.ALLOCATE:
        raise BedNotAvailable(message, detail=detail)
    if event == BedEventType.DISCHARGE:
        raise BedNotOccupied(message, detail=detail)
    raise IllegalBedTransition(message, detail=detail)


def stay_charge(assigned_at: Optional[datetime.datetime], discharged_at: datetime.datetime,
                daily_charge: Decimal) -> tuple[int, Decimal]:
    """Billable days (at least one, part days round up) and their total."""
    if assigned_at is None:
        days = 1
    else:
        elapsed = (discharged_at - assigned_at).total_seconds() / 86400
        days = max(1, math.ceil(elapsed))
    return days, Decimal(days) * Decimal(daily_charge)


def _transition(bed_id: int, event: str, *, operator=None, patient: Optional[Patient] = None,
                apply: Optional[Callable[[Bed], Optional[dict]]] = None) -> Bed:
    """Run one bed event under the bed's row lock.

    Must be called inside ``transaction.atomic()``.  ``apply`` mutates the
    locked row after the transition has been accepted and may return extra
    audit detail.
    """
    bed = registry.get_bed(bed_id, for_update=True)
    current = require_known_state(bed.status, BedStatus, aggregate='bed', pk=bed.pk)
    target = next_bed_state(current, event)
    detail = apply(bed) if apply else None
    bed.status = target
    bed.save()
    record_transition(
        BedEvent, operator=operator, event=event,
        from_status=current, to_status=target, bed=bed, patient=patient, detail=detail,
    )
    return bed


def allocate(bed_id: int, patient_id: int, *, operator=None) -> Bed:
    with transaction.atomic():
        # patient lock first so two beds cannot be handed to one patient
        patient = registry.get_patient(patient_id, for_update=True)
        held = Bed.objects.filter(patient=patient, status=BedStatus.OCCUPIED).exclude(pk=bed_id).first()
        if held:
            raise PatientAlreadyBedded(f'patient {patient_id} already occupies bed {held.pk}',
                                       detail={'bedId': held.pk})

        def occupy(bed: Bed) -> dict:
            if bed.status == BedStatus.RESERVED:
                today = timezone.localdate()
                if bed.reserved_for and today < bed.reserved_for:
                    raise BedNotAvailable(f'bed {bed.pk} is reserved from {bed.reserved_for}',
                                          detail={'from': bed.status, 'reservedFor': bed.reserved_for.isoformat()})
                if bed.reserved_patient_id and bed.reserved_patient_id != patient.pk:
                    raise BedNotAvailable(f'bed {bed.pk} is reserved for another patient',
                                          detail={'from': bed.status})
            bed.patient = patient
            bed.assigned_at = timezone.now()
            bed.discharged_at = None
            bed.reserved_for = None
            bed.reserved_patient = None
            return {'patientId': patient.pk}

        bed = _transition(bed_id, BedEventType.ALLOCATE, operator=operator, patient=patient, apply=occupy)
    return bed


def discharge(bed_id: int, *, operator=None) -> tuple[Bed, dict]:
    """Release the bed to cleaning and return it with the stay's bill."""
    bill = {}

    def release(bed: Bed) -> dict:
        now = timezone.now()
        days, total = stay_charge(bed.assigned_at, now, bed.daily_charge)
        bill.update({
            'patientId': bed.patient_id,
            'assignedAt': bed.assigned_at.isoformat() if bed.assigned_at else None,
            'dischargedAt': now.isoformat(),
            'daysStayed': days,
            'dailyCharge': str(bed.daily_charge),
            'totalCharge': str(total),
        })
        bed.patient = None
        bed.discharged_at = now
        return dict(bill)

    with transaction.atomic():
        locked = registry.get_bed(bed_id, for_update=True)
        bed = _transition(bed_id, BedEventType.DISCHARGE, operator=operator, patient=locked.patient, apply=release)
    return bed, bill


def mark_clean(bed_id: int, *, operator=None) -> Bed:
    with transaction.atomic():
        return _transition(bed_id, BedEventType.MARK_CLEAN, operator=operator)


def flag_maintenance(bed_id: int, reason: str = '', *, operator=None) -> Bed:
    def flag(bed: Bed) -> dict:
        bed.maintenance_reason = reason
        return {'reason': reason} if reason else {}

    with transaction.atomic():
        return _transition(bed_id, BedEventType.FLAG_MAINTENANCE, operator=operator, apply=flag)


def complete_maintenance(bed_id: int, *, operator=None) -> Bed:
    def clear(bed: Bed) -> None:
        bed.maintenance_reason = ''

    with transaction.atomic():
        return _transition(bed_id, BedEventType.COMPLETE_MAINTENANCE, operator=operator, apply=clear)


def reserve(bed_id: int, reserved_for: datetime.date, patient_id: Optional[int] = None, *, operator=None) -> Bed:
    with transaction.atomic():
        patient = registry.get_patient(patient_id) if patient_id else None

        def hold(bed: Bed) -> dict:
            bed.reserved_for = reserved_for
            bed.reserved_patient = patient
            return {'reservedFor': reserved_for.isoformat(), 'patientId': patient_id}

        return _transition(bed_id, BedEventType.RESERVE, operator=operator, patient=patient, apply=hold)


def cancel_reservation(bed_id: int, *, operator=None) -> Bed:
    def drop(bed: Bed) -> None:
        bed.reserved_for = None
        bed.reserved_patient = None

    with transaction.atomic():
        return _transition(bed_id, BedEventType.CANCEL_RESERVATION, operator=operator, apply=drop)


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------

def bed_snapshot(bed: Bed) -> dict:
    return {
        'id': bed.pk,
        'wardType': bed.ward_type,
        'floorNumber': bed.floor_number,
        'roomNumber': bed.room_number,
        'bedNumber': bed.bed_number,
        'status': bed.status,
        'dailyCharge': str(bed.daily_charge),
        'amenities': list(bed.amenities or []),
        'patientId': bed.patient_id,
        'patientName': bed.patient.name if bed.patient_id else None,
        'assignedAt': bed.assigned_at.isoformat() if bed.assigned_at else None,
        'dischargedAt': bed.discharged_at.isoformat() if bed.discharged_at else None,
        'reservedFor': bed.reserved_for.isoformat() if bed.reserved_for else None,
        'reservedPatientId': bed.reserved_patient_id,
        'maintenanceReason': bed.maintenance_reason,
    }


def bed_board(ward: Optional[str] = None) -> dict:
    qs = Bed.objects.select_related('patient').order_by('ward_type', 'floor_number', 'room_number', 'bed_number')
    if ward:
        qs = qs.filter(ward_type=ward)
    return {
        'beds': [bed_snapshot(b) for b in qs],
        'stats': registry.bed_statistics(ward),
        'byWard': registry.availability_by_ward(),
    }


def bed_history(bed_id: int) -> list[dict]:
    bed = registry.get_bed(bed_id)
    return history(bed.events.select_related('operator').order_by('timestamp', 'id'))


def _occupied_intervals(events, window_end: datetime.datetime):
    opened = None
    for ev in events:
        if ev.event == BedEventType.ALLOCATE:
            opened = ev.timestamp
        elif ev.event == BedEventType.DISCHARGE and opened is not None:
            yield opened, ev.timestamp
            opened = None
    if opened is not None:
        yield opened, window_end


def occupancy_report(start: datetime.datetime, end: datetime.datetime, ward: Optional[str] = None) -> dict:
    """Occupied time per bed inside ``[start, end)`` taken from the event log."""
    if end <= start:
        raise ValidationError('occupancy window must end after it starts')
    window = (end - start).total_seconds()
    # an open stay has only lasted until now, however far the window reaches
    horizon = min(end, timezone.now())
    beds = Bed.objects.order_by('id')
    if ward:
        beds = beds.filter(ward_type=ward)
    rows = []
    total_occupied = 0.0
    for bed in beds:
        events = bed.events.filter(
            timestamp__lt=end, event__in=[BedEventType.ALLOCATE, BedEventType.DISCHARGE],
        ).order_by('timestamp', 'id')
        occupied = 0.0
        for opened, closed in _occupied_intervals(events, horizon):
            lo, hi = max(opened, start), min(closed, end)
            if hi > lo:
                occupied += (hi - lo).total_seconds()
        total_occupied += occupied
        rows.append({
            'bedId': bed.pk,
            'wardType': bed.ward_type,
            'occupiedSeconds': int(occupied),
            'occupancyRate': round(occupied / window, 4),
        })
    return {
        'start': start.isoformat(),
        'end': end.isoformat(),
        'ward': ward,
        'beds': rows,
        'overallRate': round(total_occupied / (window * len(rows)), 4) if rows else 0.0,
    }
