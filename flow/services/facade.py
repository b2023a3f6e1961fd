"""
Single entry point for inbound events and outbound board queries.

``Orchestrator(operator).dispatch(event_type, payload)`` validates the
payload with the event's serializer, hands it to the owning service and
returns a JSON-ready read-model.  Every accepted event also schedules a
``board.changed`` hint for websocket listeners once the transaction
commits.
"""
import datetime
import logging
from typing import Any, Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from flow.errors import FlowError, NotFoundError, UnknownEvent
from flow.models import Appointment, Patient
from flow.permissions import role_of
from flow.serializers import events
from flow.services import appointments, beds, broadcast, registry, tokens, triage

logger = logging.getLogger(__name__)


class Orchestrator:
    EVENTS = {
        'AdmitPatient': ('admit_patient', events.AdmitPatientSerializer),
        'ChangeTriageStatus': ('change_triage_status', events.ChangeTriageStatusSerializer),
        'ReassignClinician': ('reassign_clinician', events.ReassignClinicianSerializer),
        'EnqueueToken': ('enqueue_token', events.EnqueueTokenSerializer),
        'AdvanceQueue': ('advance_queue', events.AdvanceQueueSerializer),
        'AllocateBed': ('allocate_bed', events.AllocateBedSerializer),
        'DischargeBed': ('discharge_bed', events.BedRefSerializer),
        'MarkBedClean': ('mark_bed_clean', events.BedRefSerializer),
        'FlagMaintenance': ('flag_maintenance', events.FlagMaintenanceSerializer),
        'CompleteMaintenance': ('complete_maintenance', events.BedRefSerializer),
        'ReserveBed': ('reserve_bed', events.ReserveBedSerializer),
        'CancelReservation': ('cancel_reservation', events.BedRefSerializer),
        'RegisterBed': ('register_bed', events.RegisterBedSerializer),
        'RegisterClinician': ('register_clinician', events.RegisterClinicianSerializer),
        'BookAppointment': ('book_appointment', events.BookAppointmentSerializer),
        'InitiatePayment': ('initiate_payment', events.AppointmentRefSerializer),
        'ConfirmPayment': ('confirm_payment', events.ConfirmPaymentSerializer),
        'JoinVideoSession': ('join_video_session', events.AppointmentRefSerializer),
        'CompleteAppointment': ('complete_appointment', events.CompleteAppointmentSerializer),
        'CancelAppointment': ('cancel_appointment', events.CancelAppointmentSerializer),
        'ExpireUnpaidBooking': ('expire_unpaid_booking', events.AppointmentRefSerializer),
    }

    def __init__(self, operator=None):
        self.operator = operator

    def _who(self) -> str:
        return getattr(self.operator, 'username', None) or 'system'

    def dispatch(self, event_type: str, payload: Optional[dict] = None) -> dict:
        try:
            handler_name, serializer_class = self.EVENTS[event_type]
        except KeyError:
            raise UnknownEvent(f'unknown event type {event_type!r}', detail={'allowed': sorted(self.EVENTS)}) from None
        serializer = serializer_class(data=payload or {})
        serializer.is_valid(raise_exception=True)
        try:
            result = getattr(self, handler_name)(**serializer.validated_data)
        except FlowError as exc:
            logger.warning('%s from %s rejected: %s [%s]', event_type, self._who(), exc, exc.code)
            raise
        logger.info('%s accepted from %s', event_type, self._who())
        return result

    # -- ownership -----------------------------------------------------------

    def _own_patient(self, patient: Patient) -> None:
        """Patients may only act for their own record."""
        if role_of(self.operator) != 'patient':
            return
        if patient.user_id != self.operator.pk:
            raise PermissionDenied('patients may only act on their own record')

    def _own_appointment(self, appointment_id: int) -> None:
        if role_of(self.operator) != 'patient':
            return
        appt = Appointment.objects.select_related('patient').filter(pk=appointment_id).first()
        if not appt:
            raise NotFoundError(f'appointment {appointment_id} not found')
        self._own_patient(appt.patient)

    # -- triage --------------------------------------------------------------

    def admit_patient(self, triage_level: str, patient_id: Optional[int] = None, patient: Optional[dict] = None,
                      vitals: Optional[dict] = None, facility: Optional[str] = None, chief_complaint: str = '',
                      arrival_time: Optional[datetime.datetime] = None, clinician_id: Optional[int] = None) -> dict:
        clinician = registry.get_clinician(clinician_id) if clinician_id else None
        with transaction.atomic():
            if patient_id:
                record = registry.get_patient(patient_id)
            else:
                record = Patient.objects.create(**patient)
                logger.info('registered walk-in patient %s', record.pk)
            entry = triage.admit(
                record, triage_level, dict(vitals or {}),
                facility=facility, chief_complaint=chief_complaint, arrival_time=arrival_time,
                clinician=clinician, operator=self.operator,
            )
        broadcast.board_changed('triage', facility=entry.facility)
        return {'entry': triage.entry_snapshot(entry), 'board': self.get_triage_board(entry.facility)}

    def change_triage_status(self, entry_id: int, new_status: str, reason: str = '') -> dict:
        entry = triage.change_status(entry_id, new_status, operator=self.operator, reason=reason)
        broadcast.board_changed('triage', facility=entry.facility)
        return {'entry': triage.entry_detail(entry.pk), 'board': self.get_triage_board(entry.facility)}

    def reassign_clinician(self, entry_id: int, clinician_id: int) -> dict:
        entry = triage.reassign(entry_id, clinician_id, operator=self.operator)
        broadcast.board_changed('triage', facility=entry.facility)
        return {'entry': triage.entry_detail(entry.pk)}

    # -- token board ---------------------------------------------------------

    def enqueue_token(self, clinician_id: int, patient_id: int, lane: str = 'regular',
                      service_date: Optional[datetime.date] = None) -> dict:
        clinician = registry.get_clinician(clinician_id)
        patient = registry.get_patient(patient_id)
        token = tokens.enqueue(clinician, patient, lane, service_date=service_date)
        broadcast.board_changed('queue', clinicianId=clinician.pk)
        return {
            'token': tokens.token_snapshot(token),
            'queue': tokens.clinician_board(clinician, token.service_date),
        }

    def advance_queue(self, clinician_id: int, service_date: Optional[datetime.date] = None) -> dict:
        clinician = registry.get_clinician(clinician_id)
        service_date = service_date or timezone.localdate()
        served = tokens.advance(clinician, service_date=service_date)
        broadcast.board_changed('queue', clinicianId=clinician.pk)
        return {
            'served': tokens.token_snapshot(served) if served else None,
            'queue': tokens.clinician_board(clinician, service_date),
        }

    # -- beds ----------------------------------------------------------------

    def _bed_result(self, bed, **extra: Any) -> dict:
        broadcast.board_changed('beds', ward=bed.ward_type)
        return {'bed': beds.bed_snapshot(registry.get_bed(bed.pk)), **extra}

    def allocate_bed(self, bed_id: int, patient_id: int) -> dict:
        return self._bed_result(beds.allocate(bed_id, patient_id, operator=self.operator))

    def discharge_bed(self, bed_id: int) -> dict:
        bed, bill = beds.discharge(bed_id, operator=self.operator)
        return self._bed_result(bed, bill=bill)

    def mark_bed_clean(self, bed_id: int) -> dict:
        return self._bed_result(beds.mark_clean(bed_id, operator=self.operator))

    def flag_maintenance(self, bed_id: int, reason: str = '') -> dict:
        return self._bed_result(beds.flag_maintenance(bed_id, reason, operator=self.operator))

    def complete_maintenance(self, bed_id: int) -> dict:
        return self._bed_result(beds.complete_maintenance(bed_id, operator=self.operator))

    def reserve_bed(self, bed_id: int, reserved_for: datetime.date, patient_id: Optional[int] = None) -> dict:
        return self._bed_result(beds.reserve(bed_id, reserved_for, patient_id, operator=self.operator))

    def cancel_reservation(self, bed_id: int) -> dict:
        return self._bed_result(beds.cancel_reservation(bed_id, operator=self.operator))

    # -- registry ------------------------------------------------------------

    def register_bed(self, **fields: Any) -> dict:
        return self._bed_result(registry.register_bed(operator=self.operator, **fields))

    def register_clinician(self, user_id: Optional[int] = None, **fields: Any) -> dict:
        user = None
        if user_id:
            user = get_user_model().objects.filter(pk=user_id).first()
            if not user:
                raise NotFoundError(f'user {user_id} not found')
        fields = {k: v for k, v in fields.items() if v is not None}
        clinician = registry.register_clinician(user=user, **fields)
        return {
            'clinician': {
                'id': clinician.pk,
                'name': clinician.name,
                'department': clinician.department,
                'slotMinutes': clinician.slot_minutes,
                'sessionStart': clinician.session_start.strftime('%H:%M'),
                'sessionEnd': clinician.session_end.strftime('%H:%M'),
                'consultationFee': str(clinician.consultation_fee),
            },
        }

    # -- appointments --------------------------------------------------------

    def _appointment_result(self, appointment_id: int, **extra: Any) -> dict:
        broadcast.board_changed('appointments', appointmentId=appointment_id)
        return {'appointment': appointments.appointment_detail(appointment_id), **extra}

    def book_appointment(self, patient_id: int, clinician_id: int, scheduled_date: datetime.date,
                         scheduled_time: datetime.time, modality: str = 'in_person', symptoms: str = '',
                         notes: str = '') -> dict:
        patient = registry.get_patient(patient_id)
        self._own_patient(patient)
        clinician = registry.get_clinician(clinician_id)
        appt = appointments.book(
            patient, clinician, scheduled_date, scheduled_time, modality,
            symptoms=symptoms, notes=notes, operator=self.operator,
        )
        return self._appointment_result(appt.pk)

    def initiate_payment(self, appointment_id: int) -> dict:
        self._own_appointment(appointment_id)
        payment = appointments.initiate_payment(appointment_id, operator=self.operator)
        return self._appointment_result(appointment_id, payment=appointments.payment_snapshot(payment))

    def confirm_payment(self, appointment_id: int, outcome: str, payment_id: Optional[int] = None,
                        gateway_payment_id: str = '') -> dict:
        _, payment = appointments.confirm_payment(
            appointment_id, outcome=outcome, payment_id=payment_id,
            gateway_payment_id=gateway_payment_id, operator=self.operator,
        )
        return self._appointment_result(appointment_id, payment=appointments.payment_snapshot(payment))

    def join_video_session(self, appointment_id: int) -> dict:
        self._own_appointment(appointment_id)
        appt = appointments.join_video_session(appointment_id, operator=self.operator)
        return self._appointment_result(appointment_id, roomId=appt.video_room_id)

    def complete_appointment(self, appointment_id: int, notes: str = '') -> dict:
        appointments.complete(appointment_id, notes=notes, operator=self.operator)
        return self._appointment_result(appointment_id)

    def cancel_appointment(self, appointment_id: int, reason: str = '') -> dict:
        self._own_appointment(appointment_id)
        appointments.cancel(appointment_id, reason=reason, operator=self.operator)
        return self._appointment_result(appointment_id)

    def expire_unpaid_booking(self, appointment_id: int) -> dict:
        appointments.expire_unpaid_booking(appointment_id, operator=self.operator)
        return self._appointment_result(appointment_id)

    # -- queries -------------------------------------------------------------

    @staticmethod
    def get_triage_board(facility: Optional[str] = None, **filters: Any) -> dict:
        entries = list(triage.iter_board(facility=facility, **filters))
        return {'facility': facility, 'entries': entries, 'stats': triage.board_stats(entries)}

    @staticmethod
    def get_clinician_queue(clinician_id: int, service_date: Optional[datetime.date] = None,
                            limit: Optional[int] = None) -> dict:
        return tokens.clinician_board(registry.get_clinician(clinician_id), service_date, limit)

    @staticmethod
    def get_bed_board(ward: Optional[str] = None) -> dict:
        return beds.bed_board(ward)

    @staticmethod
    def get_bed_occupancy(start: datetime.datetime, end: datetime.datetime, ward: Optional[str] = None) -> dict:
        return beds.occupancy_report(start, end, ward)

    @staticmethod
    def get_bed_history(bed_id: int) -> list[dict]:
        return beds.bed_history(bed_id)

    @staticmethod
    def get_appointment(appointment_id: int) -> dict:
        return appointments.appointment_detail(appointment_id)

    @staticmethod
    def get_patient_appointments(patient_id: int) -> list[dict]:
        return appointments.patient_appointments(patient_id)

    @staticmethod
    def get_clinician_slots(clinician_id: int, on: datetime.date) -> dict:
        clinician = registry.get_clinician(clinician_id)
        return {
            'clinicianId': clinician.pk,
            'date': on.isoformat(),
            'slotMinutes': clinician.slot_minutes,
            'free': registry.free_slots(clinician, on),
        }
