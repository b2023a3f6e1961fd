"""
Django admin registrations for the patient-flow models.

Current-state tables are editable for inspection; the transition logs
are read-only since they are append-only by contract.
"""
from django.contrib import admin

from .models import (
    Appointment,
    AppointmentEvent,
    AppointmentSlot,
    Bed,
    BedEvent,
    Clinician,
    Patient,
    Payment,
    QueueToken,
    SequenceCounter,
    TriageEntry,
    TriageTransition,
    User,
)


class ReadOnlyLogAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username',)


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'age', 'sex', 'phone', 'created_at')
    search_fields = ('name', 'phone')


@admin.register(Clinician)
class ClinicianAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'department', 'slot_minutes', 'session_start', 'session_end', 'active')
    list_filter = ('active', 'department')
    search_fields = ('name',)


@admin.register(SequenceCounter)
class SequenceCounterAdmin(ReadOnlyLogAdmin):
    list_display = ('name', 'value')


@admin.register(TriageEntry)
class TriageEntryAdmin(admin.ModelAdmin):
    list_display = ('sequence', 'patient', 'facility', 'triage_level', 'status', 'arrival_time', 'closed_at')
    list_filter = ('facility', 'triage_level', 'status')


@admin.register(TriageTransition)
class TriageTransitionAdmin(ReadOnlyLogAdmin):
    list_display = ('entry', 'event', 'from_status', 'to_status', 'operator', 'timestamp')
    list_filter = ('event',)


@admin.register(QueueToken)
class QueueTokenAdmin(admin.ModelAdmin):
    list_display = ('clinician', 'service_date', 'number', 'lane', 'patient', 'status')
    list_filter = ('service_date', 'lane', 'status')


@admin.register(Bed)
class BedAdmin(admin.ModelAdmin):
    list_display = ('id', 'ward_type', 'floor_number', 'room_number', 'bed_number', 'status', 'patient')
    list_filter = ('ward_type', 'status')


@admin.register(BedEvent)
class BedEventAdmin(ReadOnlyLogAdmin):
    list_display = ('bed', 'event', 'from_status', 'to_status', 'patient', 'operator', 'timestamp')
    list_filter = ('event',)


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'clinician', 'scheduled_date', 'scheduled_time', 'modality', 'status',
                    'payment_status')
    list_filter = ('modality', 'status', 'payment_status')


@admin.register(AppointmentSlot)
class AppointmentSlotAdmin(admin.ModelAdmin):
    list_display = ('clinician', 'date', 'time', 'appointment')


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('id', 'appointment', 'total_amount', 'status', 'gateway_order_id', 'settled_at')
    list_filter = ('status',)


@admin.register(AppointmentEvent)
class AppointmentEventAdmin(ReadOnlyLogAdmin):
    list_display = ('appointment', 'event', 'from_status', 'to_status', 'from_payment', 'to_payment', 'timestamp')
    list_filter = ('event',)
