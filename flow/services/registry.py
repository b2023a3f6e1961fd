"""
Registry of allocatable resources: beds grouped by ward and clinicians
with their session slot grid.

Other services come here to look resources up and to ask capacity
questions; the registry itself never changes a bed's occupancy state.
"""
import datetime
import logging
from decimal import Decimal
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Count, Q

from flow.errors import DuplicateBed, NotFoundError, ValidationError
from flow.models import (
    AppointmentSlot,
    Bed,
    BedEvent,
    BedEventType,
    BedStatus,
    Clinician,
    Patient,
    WardType,
)
from flow.services.audit import record_transition

logger = logging.getLogger(__name__)


def register_bed(*, ward_type: str, floor_number: int, room_number: str, bed_number: str,
                 daily_charge: Decimal = Decimal('0'), amenities: Optional[list] = None, operator=None) -> Bed:
    if ward_type not in WardType.values:
        raise ValidationError(f'unknown ward type {ward_type!r}')
    try:
        with transaction.atomic():
            bed = Bed.objects.create(
                ward_type=ward_type,
                floor_number=floor_number,
                room_number=room_number,
                bed_number=bed_number,
                daily_charge=daily_charge,
                amenities=amenities or [],
            )
            record_transition(
                BedEvent, operator=operator, event=BedEventType.REGISTER,
                from_status=None, to_status=bed.status, bed=bed,
            )
    except IntegrityError:
        raise DuplicateBed(
            f'bed {bed_number} already exists in room {room_number} on floor {floor_number}'
        ) from None
    return bed


def register_clinician(*, name: str, department: str = '', slot_minutes: int = 30,
                       session_start: datetime.time = datetime.time(9, 0),
                       session_end: datetime.time = datetime.time(17, 0),
                       consultation_fee: Decimal = Decimal('0'), user=None) -> Clinician:
    if slot_minutes <= 0:
        raise ValidationError('slot length must be positive')
    if session_end <= session_start:
        raise ValidationError('session must end after it starts')
    clinician = Clinician.objects.create(
        name=name,
        department=department,
        slot_minutes=slot_minutes,
        session_start=session_start,
        session_end=session_end,
        consultation_fee=consultation_fee,
        user=user,
    )
    logger.info('registered clinician %s (%s)', clinician.pk, clinician.name)
    return clinician


def get_bed(bed_id: int, *, for_update: bool = False) -> Bed:
    qs = Bed.objects.select_for_update() if for_update else Bed.objects.select_related('patient')
    bed = qs.filter(pk=bed_id).first()
    if not bed:
        raise NotFoundError(f'bed {bed_id} not found')
    return bed


def get_clinician(clinician_id: int) -> Clinician:
    clinician = Clinician.objects.filter(pk=clinician_id).first()
    if not clinician:
        raise NotFoundError(f'clinician {clinician_id} not found')
    return clinician


def active_clinician(clinician_id: int) -> Clinician:
    """Return the clinician if registered and currently taking patients."""
    clinician = get_clinician(clinician_id)
    if not clinician.active:
        raise ValidationError(f'clinician {clinician_id} is not active')
    return clinician


def get_patient(patient_id: int, *, for_update: bool = False) -> Patient:
    qs = Patient.objects.select_for_update() if for_update else Patient.objects.all()
    patient = qs.filter(pk=patient_id).first()
    if not patient:
        raise NotFoundError(f'patient {patient_id} not found')
    return patient


# ---------------------------------------------------------------------------
# Clinician session slots
# ---------------------------------------------------------------------------

def session_slots(clinician: Clinician) -> list[datetime.time]:
    """Start times of every slot in the clinician's daily session."""
    day = datetime.date(2000, 1, 1)
    cursor = datetime.datetime.combine(day, clinician.session_start)
    end = datetime.datetime.combine(day, clinician.session_end)
    step = datetime.timedelta(minutes=clinician.slot_minutes)
    slots = []
    while cursor + step <= end:
        slots.append(cursor.time())
        cursor += step
    return slots


def is_session_slot(clinician: Clinician, at: datetime.time) -> bool:
    at = at.replace(second=0, microsecond=0)
    return at in session_slots(clinician)


def slot_end(clinician: Clinician, start: datetime.time) -> datetime.time:
    moment = datetime.datetime.combine(datetime.date(2000, 1, 1), start)
    return (moment + datetime.timedelta(minutes=clinician.slot_minutes)).time()


def free_slots(clinician: Clinician, on: datetime.date) -> list[str]:
    taken = set(
        AppointmentSlot.objects.filter(clinician=clinician, date=on, appointment__isnull=False)
        .values_list('time', flat=True)
    )
    return [s.strftime('%H:%M') for s in session_slots(clinician) if s not in taken]


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------

def bed_statistics(ward: Optional[str] = None) -> dict:
    qs = Bed.objects.all()
    if ward:
        qs = qs.filter(ward_type=ward)
    stats = qs.aggregate(
        total=Count('id'),
        available=Count('id', filter=Q(status=BedStatus.AVAILABLE)),
        occupied=Count('id', filter=Q(status=BedStatus.OCCUPIED)),
        maintenance=Count('id', filter=Q(status=BedStatus.MAINTENANCE)),
        cleaning=Count('id', filter=Q(status=BedStatus.CLEANING)),
        reserved=Count('id', filter=Q(status=BedStatus.RESERVED)),
        icu_total=Count('id', filter=Q(ward_type=WardType.ICU)),
        icu_occupied=Count('id', filter=Q(ward_type=WardType.ICU, status=BedStatus.OCCUPIED)),
    )
    return {
        'total': stats['total'],
        'available': stats['available'],
        'occupied': stats['occupied'],
        'maintenance': stats['maintenance'],
        'cleaning': stats['cleaning'],
        'reserved': stats['reserved'],
        'icuTotal': stats['icu_total'],
        'icuOccupied': stats['icu_occupied'],
    }


def availability_by_ward() -> list[dict]:
    rows = (
        Bed.objects.values('ward_type')
        .annotate(
            total=Count('id'),
            available=Count('id', filter=Q(status=BedStatus.AVAILABLE)),
            occupied=Count('id', filter=Q(status=BedStatus.OCCUPIED)),
        )
        .order_by('ward_type')
    )
    return [
        {'wardType': r['ward_type'], 'total': r['total'], 'available': r['available'], 'occupied': r['occupied']}
        for r in rows
    ]
