"""
Database models for the patient-flow core.

Each aggregate (triage entry, bed, appointment) keeps its current state in
one row and appends every accepted transition to its own log table.  All
closed sets of states are ``TextChoices`` so transition tables in
``flow.services`` can be checked against them exhaustively.
"""
from __future__ import annotations

import datetime

from django.contrib.auth.models import AbstractUser
from django.db import models


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TriageLevel(models.TextChoices):
    CRITICAL = 'critical', 'Critical'
    URGENT = 'urgent', 'Urgent'
    MODERATE = 'moderate', 'Moderate'
    MINOR = 'minor', 'Minor'


class TriageStatus(models.TextChoices):
    """
    Triage entry status with allowed transitions:
    - waiting -> in_treatment | under_observation
    - in_treatment -> under_observation | discharged | admitted
    - under_observation -> discharged | admitted | in_treatment
    - discharged, admitted are terminal
    """
    WAITING = 'waiting', 'Waiting'
    IN_TREATMENT = 'in_treatment', 'In treatment'
    UNDER_OBSERVATION = 'under_observation', 'Under observation'
    DISCHARGED = 'discharged', 'Discharged'
    ADMITTED = 'admitted', 'Admitted'


class TriageEventType(models.TextChoices):
    ADMIT = 'admit', 'Admit'
    CHANGE_STATUS = 'change_status', 'Change status'
    REASSIGN = 'reassign', 'Reassign'


class Lane(models.TextChoices):
    EMERGENCY = 'emergency', 'Emergency'
    PRIORITY = 'priority', 'Priority'
    REGULAR = 'regular', 'Regular'


class TokenStatus(models.TextChoices):
    WAITING = 'waiting', 'Waiting'
    WITH_DOCTOR = 'with_doctor', 'With doctor'
    COMPLETED = 'completed', 'Completed'


class WardType(models.TextChoices):
    GENERAL = 'general', 'General'
    SEMI_PRIVATE = 'semi_private', 'Semi-private'
    PRIVATE = 'private', 'Private'
    ICU = 'icu', 'ICU'
    CCU = 'ccu', 'CCU'
    EMERGENCY = 'emergency', 'Emergency'


class BedStatus(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    OCCUPIED = 'occupied', 'Occupied'
    MAINTENANCE = 'maintenance', 'Maintenance'
    CLEANING = 'cleaning', 'Cleaning'
    RESERVED = 'reserved', 'Reserved'


class BedEventType(models.TextChoices):
    REGISTER = 'register', 'Register'
    ALLOCATE = 'allocate', 'Allocate'
    DISCHARGE = 'discharge', 'Discharge'
    MARK_CLEAN = 'mark_clean', 'Mark clean'
    FLAG_MAINTENANCE = 'flag_maintenance', 'Flag maintenance'
    COMPLETE_MAINTENANCE = 'complete_maintenance', 'Complete maintenance'
    RESERVE = 'reserve', 'Reserve'
    CANCEL_RESERVATION = 'cancel_reservation', 'Cancel reservation'


class Modality(models.TextChoices):
    IN_PERSON = 'in_person', 'In person'
    VIDEO = 'video', 'Video'


class AppointmentStatus(models.TextChoices):
    """
    Appointment status with allowed transitions:
    - upcoming -> completed | cancelled
    - completed, cancelled are terminal
    """
    UPCOMING = 'upcoming', 'Upcoming'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class PaymentState(models.TextChoices):
    """Payment sub-state of an appointment."""
    PENDING = 'pending', 'Pending'
    PAID = 'paid', 'Paid'


class PaymentStatus(models.TextChoices):
    """Status of a single payment attempt."""
    PENDING = 'pending', 'Pending'
    SUCCESS = 'success', 'Success'
    FAILED = 'failed', 'Failed'


class AppointmentEventType(models.TextChoices):
    BOOK = 'book', 'Book'
    INITIATE_PAYMENT = 'initiate_payment', 'Initiate payment'
    CONFIRM_PAYMENT = 'confirm_payment', 'Confirm payment'
    JOIN_VIDEO = 'join_video', 'Join video session'
    COMPLETE = 'complete', 'Complete'
    CANCEL = 'cancel', 'Cancel'
    EXPIRE_UNPAID = 'expire_unpaid', 'Expire unpaid booking'


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

class User(AbstractUser):
    """Operator account.  The role decides which events a user may submit."""
    ROLE_CHOICES = [
        ('patient', 'Patient'),
        ('nurse', 'Nurse'),
        ('receptionist', 'Receptionist'),
        ('doctor', 'Doctor'),
        ('admin', 'Administrator'),
        ('service', 'Service account'),
    ]
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default='patient')

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Patient(models.Model):
    name = models.CharField(max_length=255)
    age = models.PositiveIntegerField(null=True, blank=True)
    sex = models.CharField(max_length=10, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    user = models.OneToOneField(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='patient_record'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.name} (#{self.pk})"


class Clinician(models.Model):
    """A clinician whose attention is handed out as session slots and tokens."""
    name = models.CharField(max_length=255)
    department = models.CharField(max_length=255, blank=True)
    user = models.OneToOneField(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='clinician'
    )
    slot_minutes = models.PositiveIntegerField(default=30)
    session_start = models.TimeField(default=datetime.time(9, 0))
    session_end = models.TimeField(default=datetime.time(17, 0))
    consultation_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.department or 'general'})"


class SequenceCounter(models.Model):
    """Named monotonic counter.  Rows are locked while a value is handed out."""
    name = models.CharField(max_length=128, primary_key=True)
    value = models.PositiveBigIntegerField(default=0)

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


# ---------------------------------------------------------------------------
# Triage
# ---------------------------------------------------------------------------

class TriageEntry(models.Model):
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='triage_entries')
    sequence = models.PositiveBigIntegerField(unique=True)
    facility = models.CharField(max_length=64, default='main', db_index=True)
    triage_level = models.CharField(max_length=16, choices=TriageLevel.choices, db_index=True)
    status = models.CharField(
        max_length=20, choices=TriageStatus.choices, default=TriageStatus.WAITING, db_index=True
    )
    arrival_time = models.DateTimeField()
    assigned_clinician = models.ForeignKey(
        Clinician, null=True, blank=True, on_delete=models.SET_NULL, related_name='triage_entries'
    )
    vitals = models.JSONField(default=dict, blank=True)
    chief_complaint = models.TextField(blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['facility', 'status'], name='triage_facility_status_idx'),
        ]

    def __str__(self) -> str:
        return f"#{self.sequence} {self.patient_id} {self.triage_level}/{self.status}"


class TransitionRecord(models.Model):
    """Common columns of the append-only audit logs."""
    from_status = models.CharField(max_length=20, null=True, blank=True)
    to_status = models.CharField(max_length=20)
    operator = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)
    detail = models.JSONField(default=dict, blank=True)

    class Meta:
        abstract = True


class TriageTransition(TransitionRecord):
    entry = models.ForeignKey(TriageEntry, related_name='transitions', on_delete=models.CASCADE)
    event = models.CharField(max_length=20, choices=TriageEventType.choices)

    def __str__(self) -> str:
        return f"{self.entry_id}: {self.from_status} → {self.to_status}"


# ---------------------------------------------------------------------------
# Token board
# ---------------------------------------------------------------------------

class QueueToken(models.Model):
    clinician = models.ForeignKey(Clinician, on_delete=models.CASCADE, related_name='tokens')
    service_date = models.DateField(db_index=True)
    number = models.PositiveIntegerField()
    lane = models.CharField(max_length=16, choices=Lane.choices, default=Lane.REGULAR)
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='tokens')
    status = models.CharField(
        max_length=16, choices=TokenStatus.choices, default=TokenStatus.WAITING, db_index=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    called_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['clinician', 'service_date', 'number'], name='uniq_token_per_clinician_day'
            ),
        ]
        indexes = [
            models.Index(fields=['clinician', 'service_date', 'status'], name='token_board_idx'),
        ]

    def __str__(self) -> str:
        return f"Token {self.number:03d} ({self.lane}) for {self.clinician_id} on {self.service_date}"


# ---------------------------------------------------------------------------
# Beds
# ---------------------------------------------------------------------------

class Bed(models.Model):
    ward_type = models.CharField(max_length=16, choices=WardType.choices, db_index=True)
    floor_number = models.IntegerField(default=0)
    room_number = models.CharField(max_length=32)
    bed_number = models.CharField(max_length=32)
    daily_charge = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    amenities = models.JSONField(default=list, blank=True)
    status = models.CharField(
        max_length=16, choices=BedStatus.choices, default=BedStatus.AVAILABLE, db_index=True
    )
    patient = models.ForeignKey(
        Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='beds'
    )
    assigned_at = models.DateTimeField(null=True, blank=True)
    discharged_at = models.DateTimeField(null=True, blank=True)
    reserved_for = models.DateField(null=True, blank=True)
    reserved_patient = models.ForeignKey(
        Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='bed_reservations'
    )
    maintenance_reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['floor_number', 'room_number', 'bed_number'], name='uniq_bed_location'
            ),
        ]

    def __str__(self) -> str:
        return f"{self.ward_type} F{self.floor_number}-{self.room_number}-{self.bed_number} ({self.status})"


class BedEvent(TransitionRecord):
    bed = models.ForeignKey(Bed, related_name='events', on_delete=models.CASCADE)
    event = models.CharField(max_length=24, choices=BedEventType.choices)
    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')

    class Meta:
        indexes = [
            models.Index(fields=['bed', 'timestamp'], name='bed_event_bed_ts_idx'),
        ]

    def __str__(self) -> str:
        return f"bed {self.bed_id}: {self.event} {self.from_status} → {self.to_status}"


# ---------------------------------------------------------------------------
# Appointments & payments
# ---------------------------------------------------------------------------

class Appointment(models.Model):
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='appointments')
    clinician = models.ForeignKey(Clinician, on_delete=models.PROTECT, related_name='appointments')
    scheduled_date = models.DateField()
    scheduled_time = models.TimeField()
    end_time = models.TimeField()
    modality = models.CharField(max_length=16, choices=Modality.choices, default=Modality.IN_PERSON)
    status = models.CharField(
        max_length=16, choices=AppointmentStatus.choices, default=AppointmentStatus.UPCOMING, db_index=True
    )
    payment_status = models.CharField(
        max_length=16, choices=PaymentState.choices, default=PaymentState.PENDING, db_index=True
    )
    fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    symptoms = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)
    video_room_id = models.CharField(max_length=64, blank=True)
    video_joined_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['clinician', 'scheduled_date'], name='appt_clinician_date_idx'),
            models.Index(fields=['patient', 'scheduled_date'], name='appt_patient_date_idx'),
        ]

    @property
    def payment_required(self) -> bool:
        return self.modality == Modality.VIDEO

    def __str__(self) -> str:
        return f"appt {self.pk} {self.clinician_id}@{self.scheduled_date} {self.scheduled_time:%H:%M}"


class AppointmentSlot(models.Model):
    """Compare-and-swap target for ``(clinician, date, time)``."""
    clinician = models.ForeignKey(Clinician, on_delete=models.CASCADE, related_name='slots')
    date = models.DateField()
    time = models.TimeField()
    appointment = models.OneToOneField(
        Appointment, null=True, blank=True, on_delete=models.SET_NULL, related_name='slot'
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['clinician', 'date', 'time'], name='uniq_clinician_slot'),
        ]

    def __str__(self) -> str:
        return f"slot {self.clinician_id}@{self.date} {self.time:%H:%M} -> {self.appointment_id}"


class Payment(models.Model):
    appointment = models.ForeignKey(Appointment, on_delete=models.PROTECT, related_name='payments')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(
        max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True
    )
    gateway_order_id = models.CharField(max_length=64, unique=True)
    gateway_payment_id = models.CharField(max_length=128, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    settled_at = models.DateTimeField(null=True, blank=True)

    def __str__(self) -> str:
        return f"payment {self.pk} appt={self.appointment_id} {self.status}"


class AppointmentEvent(TransitionRecord):
    appointment = models.ForeignKey(Appointment, related_name='events', on_delete=models.CASCADE)
    event = models.CharField(max_length=24, choices=AppointmentEventType.choices)
    from_payment = models.CharField(max_length=16, null=True, blank=True)
    to_payment = models.CharField(max_length=16, null=True, blank=True)

    def __str__(self) -> str:
        return f"appt {self.appointment_id}: {self.event} {self.from_status} → {self.to_status}"
