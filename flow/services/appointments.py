"""
Appointment gate: slot reservation, two-phase payment and video-session
admission.

A slot ``(clinician, date, time)`` is owned by at most one appointment at
a time.  Ownership is taken with a compare-and-swap on the
``AppointmentSlot`` row: the row is created if missing, locked, and only
claimed when nobody holds it.  Completing an appointment keeps the slot;
cancelling or expiring it gives the slot back.
"""
import datetime
import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from flow.errors import (
    AlreadyPaid,
    IllegalAppointmentTransition,
    NotFoundError,
    PaymentAlreadySettled,
    PaymentRequired,
    SessionNotJoinable,
    SlotAlreadyTaken,
    SlotOutsideSession,
    ValidationError,
)
from flow.models import (
    Appointment,
    AppointmentEvent,
    AppointmentEventType,
    AppointmentSlot,
    AppointmentStatus,
    Clinician,
    Modality,
    Patient,
    Payment,
    PaymentState,
    PaymentStatus,
)
from flow.services import registry
from flow.services.audit import history, record_transition
from flow.services.guards import require_known_state

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def compute_tax(amount: Decimal) -> tuple[Decimal, Decimal]:
    """Tax and total for a consultation fee."""
    rate = Decimal(str(settings.FLOW_PAYMENT_TAX_RATE))
    tax = (Decimal(amount) * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    return tax, Decimal(amount) + tax


def _locked(appointment_id: int) -> Appointment:
    appt = Appointment.objects.select_for_update().filter(pk=appointment_id).first()
    if not appt:
        raise NotFoundError(f'appointment {appointment_id} not found')
    require_known_state(appt.status, AppointmentStatus, aggregate='appointment', pk=appt.pk)
    require_known_state(appt.payment_status, PaymentState, aggregate='appointment', pk=appt.pk)
    return appt


def _require_upcoming(appt: Appointment, action: str) -> None:
    if appt.status != AppointmentStatus.UPCOMING:
        raise IllegalAppointmentTransition(
            f'cannot {action} appointment {appt.pk} while it is {appt.status}',
            detail={'from': appt.status, 'action': action},
        )


def _log(appt: Appointment, event: str, *, operator, from_status: Optional[str], from_payment: Optional[str],
         detail: Optional[dict] = None) -> None:
    record_transition(
        AppointmentEvent, operator=operator, event=event,
        from_status=from_status, to_status=appt.status, appointment=appt,
        from_payment=from_payment, to_payment=appt.payment_status, detail=detail,
    )


def _claim_slot(clinician: Clinician, on: datetime.date, at: datetime.time) -> AppointmentSlot:
    try:
        with transaction.atomic():
            AppointmentSlot.objects.get_or_create(clinician=clinician, date=on, time=at)
    except IntegrityError:
        # created concurrently; the locked read below sees it
        pass
    slot = AppointmentSlot.objects.select_for_update().get(clinician=clinician, date=on, time=at)
    if slot.appointment_id is not None:
        raise SlotAlreadyTaken(
            f'{at:%H:%M} on {on} is already booked with clinician {clinician.pk}',
            detail={'clinicianId': clinician.pk, 'date': on.isoformat(), 'time': at.strftime('%H:%M')},
        )
    return slot


def _release_slot(appt: Appointment) -> None:
    released = AppointmentSlot.objects.filter(appointment=appt).update(appointment=None)
    if released:
        logger.info('released slot of appointment %s', appt.pk)


def book(patient: Patient, clinician: Clinician, scheduled_date: datetime.date, scheduled_time: datetime.time,
         modality: str = Modality.IN_PERSON, *, symptoms: str = '', notes: str = '', operator=None) -> Appointment:
    if modality not in Modality.values:
        raise ValidationError(f'unknown modality {modality!r}', detail={'allowed': list(Modality.values)})
    if not clinician.active:
        raise ValidationError(f'clinician {clinician.pk} is not active')
    scheduled_time = scheduled_time.replace(second=0, microsecond=0)
    if not registry.is_session_slot(clinician, scheduled_time):
        raise SlotOutsideSession(
            f'{scheduled_time:%H:%M} is not a session slot of clinician {clinician.pk}',
            detail={'slots': registry.free_slots(clinician, scheduled_date)},
        )
    with transaction.atomic():
        slot = _claim_slot(clinician, scheduled_date, scheduled_time)
        appt = Appointment.objects.create(
            patient=patient,
            clinician=clinician,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            end_time=registry.slot_end(clinician, scheduled_time),
            modality=modality,
            fee=clinician.consultation_fee,
            symptoms=symptoms,
            notes=notes,
        )
        slot.appointment = appt
        slot.save(update_fields=['appointment', 'updated_at'])
        _log(appt, AppointmentEventType.BOOK, operator=operator, from_status=None, from_payment=None,
             detail={'modality': modality, 'slot': f'{scheduled_date.isoformat()} {scheduled_time:%H:%M}'})
    return appt


def initiate_payment(appointment_id: int, *, operator=None) -> Payment:
    with transaction.atomic():
        appt = _locked(appointment_id)
        _require_upcoming(appt, 'pay for')
        if appt.payment_status == PaymentState.PAID:
            raise AlreadyPaid(f'appointment {appointment_id} is already paid')
        tax, total = compute_tax(appt.fee)
        payment = Payment.objects.create(
            appointment=appt,
            amount=appt.fee,
            tax_amount=tax,
            total_amount=total,
            gateway_order_id=f'order_{uuid.uuid4().hex}',
        )
        _log(appt, AppointmentEventType.INITIATE_PAYMENT, operator=operator,
             from_status=appt.status, from_payment=appt.payment_status,
             detail={'paymentId': payment.pk, 'orderId': payment.gateway_order_id, 'total': str(total)})
    return payment


def confirm_payment(appointment_id: int, *, outcome: str, payment_id: Optional[int] = None,
                    gateway_payment_id: str = '', operator=None) -> tuple[Appointment, Payment]:
    """Settle a pending payment with the gateway's verdict."""
    if outcome not in (PaymentStatus.SUCCESS, PaymentStatus.FAILED):
        raise ValidationError(f'payment outcome must be success or failed, got {outcome!r}')
    with transaction.atomic():
        appt = _locked(appointment_id)
        payments = Payment.objects.select_for_update().filter(appointment=appt)
        if payment_id is not None:
            payment = payments.filter(pk=payment_id).first()
        else:
            payment = payments.filter(status=PaymentStatus.PENDING).order_by('-created_at', '-id').first()
        if not payment:
            raise NotFoundError(f'no pending payment for appointment {appointment_id}')
        if payment.status != PaymentStatus.PENDING:
            raise PaymentAlreadySettled(f'payment {payment.pk} is already {payment.status}',
                                        detail={'paymentStatus': payment.status})
        _require_upcoming(appt, 'confirm payment for')
        if outcome == PaymentStatus.SUCCESS and appt.payment_status == PaymentState.PAID:
            raise AlreadyPaid(f'appointment {appointment_id} is already paid')

        before = appt.payment_status
        payment.status = outcome
        payment.gateway_payment_id = gateway_payment_id
        payment.settled_at = timezone.now()
        payment.save(update_fields=['status', 'gateway_payment_id', 'settled_at'])
        if outcome == PaymentStatus.SUCCESS:
            appt.payment_status = PaymentState.PAID
            appt.save(update_fields=['payment_status', 'updated_at'])
        _log(appt, AppointmentEventType.CONFIRM_PAYMENT, operator=operator,
             from_status=appt.status, from_payment=before,
             detail={'paymentId': payment.pk, 'outcome': outcome})
    return appt, payment


def join_video_session(appointment_id: int, *, operator=None) -> Appointment:
    with transaction.atomic():
        appt = _locked(appointment_id)
        if appt.modality != Modality.VIDEO:
            raise SessionNotJoinable(f'appointment {appointment_id} is not a video consultation')
        if appt.status != AppointmentStatus.UPCOMING:
            raise SessionNotJoinable(f'appointment {appointment_id} is {appt.status}',
                                     detail={'status': appt.status})
        if appt.payment_status != PaymentState.PAID:
            raise PaymentRequired(f'appointment {appointment_id} must be paid before joining')
        first_join = not appt.video_room_id
        if first_join:
            appt.video_room_id = f'room_{appt.pk}_{uuid.uuid4().hex[:8]}'
            appt.video_joined_at = timezone.now()
            appt.save(update_fields=['video_room_id', 'video_joined_at', 'updated_at'])
        _log(appt, AppointmentEventType.JOIN_VIDEO, operator=operator,
             from_status=appt.status, from_payment=appt.payment_status,
             detail={'roomId': appt.video_room_id, 'firstJoin': first_join})
    return appt


def complete(appointment_id: int, *, notes: str = '', operator=None) -> Appointment:
    with transaction.atomic():
        appt = _locked(appointment_id)
        _require_upcoming(appt, 'complete')
        appt.status = AppointmentStatus.COMPLETED
        if notes:
            appt.notes = notes
        appt.save(update_fields=['status', 'notes', 'updated_at'])
        _log(appt, AppointmentEventType.COMPLETE, operator=operator,
             from_status=AppointmentStatus.UPCOMING, from_payment=appt.payment_status)
    return appt


def cancel(appointment_id: int, *, reason: str = '', operator=None) -> Appointment:
    with transaction.atomic():
        appt = _locked(appointment_id)
        _require_upcoming(appt, 'cancel')
        appt.status = AppointmentStatus.CANCELLED
        appt.cancellation_reason = reason
        appt.save(update_fields=['status', 'cancellation_reason', 'updated_at'])
        _release_slot(appt)
        _log(appt, AppointmentEventType.CANCEL, operator=operator,
             from_status=AppointmentStatus.UPCOMING, from_payment=appt.payment_status,
             detail={'reason': reason} if reason else None)
    return appt


def expire_unpaid_booking(appointment_id: int, *, operator=None) -> Appointment:
    with transaction.atomic():
        appt = _locked(appointment_id)
        if appt.status != AppointmentStatus.UPCOMING or appt.payment_status != PaymentState.PENDING:
            raise IllegalAppointmentTransition(
                f'appointment {appointment_id} is {appt.status}/{appt.payment_status}, only upcoming unpaid '
                f'bookings expire',
                detail={'from': appt.status, 'payment': appt.payment_status},
            )
        failed = Payment.objects.filter(appointment=appt, status=PaymentStatus.PENDING).update(
            status=PaymentStatus.FAILED, settled_at=timezone.now(),
        )
        appt.status = AppointmentStatus.CANCELLED
        appt.cancellation_reason = 'payment_expired'
        appt.save(update_fields=['status', 'cancellation_reason', 'updated_at'])
        _release_slot(appt)
        _log(appt, AppointmentEventType.EXPIRE_UNPAID, operator=operator,
             from_status=AppointmentStatus.UPCOMING, from_payment=PaymentState.PENDING,
             detail={'failedPayments': failed})
    return appt


def unpaid_booking_candidates(older_than: datetime.datetime) -> list[int]:
    """Ids of upcoming video bookings still unpaid and created before ``older_than``."""
    return list(
        Appointment.objects.filter(
            status=AppointmentStatus.UPCOMING,
            payment_status=PaymentState.PENDING,
            modality=Modality.VIDEO,
            created_at__lt=older_than,
        ).order_by('created_at', 'id').values_list('id', flat=True)
    )


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------

def payment_snapshot(payment: Payment) -> dict:
    return {
        'id': payment.pk,
        'amount': str(payment.amount),
        'taxAmount': str(payment.tax_amount),
        'totalAmount': str(payment.total_amount),
        'status': payment.status,
        'orderId': payment.gateway_order_id,
        'gatewayPaymentId': payment.gateway_payment_id,
        'settledAt': payment.settled_at.isoformat() if payment.settled_at else None,
    }


def appointment_snapshot(appt: Appointment) -> dict:
    return {
        'id': appt.pk,
        'patientId': appt.patient_id,
        'patientName': appt.patient.name,
        'clinicianId': appt.clinician_id,
        'clinicianName': appt.clinician.name,
        'scheduledDate': appt.scheduled_date.isoformat(),
        'scheduledTime': appt.scheduled_time.strftime('%H:%M'),
        'endTime': appt.end_time.strftime('%H:%M'),
        'modality': appt.modality,
        'status': appt.status,
        'paymentStatus': appt.payment_status,
        'paymentRequired': appt.payment_required,
        'fee': str(appt.fee),
        'symptoms': appt.symptoms,
        'notes': appt.notes,
        'cancellationReason': appt.cancellation_reason,
        'videoRoomId': appt.video_room_id or None,
    }


def appointment_detail(appointment_id: int) -> dict:
    appt = Appointment.objects.select_related('patient', 'clinician').filter(pk=appointment_id).first()
    if not appt:
        raise NotFoundError(f'appointment {appointment_id} not found')
    data = appointment_snapshot(appt)
    data['payments'] = [payment_snapshot(p) for p in appt.payments.order_by('created_at', 'id')]
    data['history'] = history(appt.events.select_related('operator').order_by('timestamp', 'id'))
    return data


def patient_appointments(patient_id: int) -> list[dict]:
    registry.get_patient(patient_id)
    qs = (
        Appointment.objects.select_related('patient', 'clinician')
        .filter(patient_id=patient_id)
        .order_by('-scheduled_date', '-scheduled_time', '-id')
    )
    return [appointment_snapshot(a) for a in qs]
