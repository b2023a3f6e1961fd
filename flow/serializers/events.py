"""
Payload serializers, one per inbound event.

Field names are the camelCase names clients send; ``source`` maps each
onto the keyword the matching facade handler takes, so
``validated_data`` can be passed straight through.  Enumerated values
(triage level, lane, ward, modality, payment outcome) are accepted as
plain strings and checked by the services, which report them with their
own error codes.
"""
import bleach
from rest_framework import serializers


class CleanTextField(serializers.CharField):
    """Free text with any markup stripped."""

    def __init__(self, **kwargs):
        kwargs.setdefault('required', False)
        kwargs.setdefault('allow_blank', True)
        kwargs.setdefault('default', '')
        super().__init__(**kwargs)

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        return bleach.clean(value.strip(), tags=set(), attributes={}, strip=True)


class InlinePatientSerializer(serializers.Serializer):
    name = CleanTextField(max_length=255, required=True, allow_blank=False, default=serializers.empty)
    age = serializers.IntegerField(min_value=0, max_value=150, required=False, allow_null=True)
    sex = serializers.ChoiceField(choices=['M', 'F', 'O'], required=False, allow_blank=True)
    phone = CleanTextField(max_length=32)


class VitalsSerializer(serializers.Serializer):
    heartRate = serializers.IntegerField(min_value=0, max_value=300, required=False)
    bloodPressure = serializers.RegexField(r'^\d{2,3}/\d{2,3}$', required=False)
    temperature = serializers.FloatField(min_value=25, max_value=45, required=False)
    oxygenSaturation = serializers.IntegerField(min_value=0, max_value=100, required=False)
    respiratoryRate = serializers.IntegerField(min_value=0, max_value=80, required=False)


# --- triage ---

class AdmitPatientSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1, required=False, source='patient_id')
    patient = InlinePatientSerializer(required=False)
    triageLevel = serializers.CharField(max_length=16, source='triage_level')
    vitals = VitalsSerializer(required=False)
    facility = serializers.CharField(max_length=64, required=False)
    chiefComplaint = CleanTextField(max_length=2000, source='chief_complaint')
    arrivalTime = serializers.DateTimeField(required=False, source='arrival_time')
    clinicianId = serializers.IntegerField(min_value=1, required=False, source='clinician_id')

    def validate(self, attrs):
        if not attrs.get('patient_id') and not attrs.get('patient'):
            raise serializers.ValidationError('patientId or patient is required')
        if attrs.get('patient_id') and attrs.get('patient'):
            raise serializers.ValidationError('give either patientId or patient, not both')
        return attrs


class ChangeTriageStatusSerializer(serializers.Serializer):
    entryId = serializers.IntegerField(min_value=1, source='entry_id')
    status = serializers.CharField(max_length=20, source='new_status')
    reason = CleanTextField(max_length=255)


class ReassignClinicianSerializer(serializers.Serializer):
    entryId = serializers.IntegerField(min_value=1, source='entry_id')
    clinicianId = serializers.IntegerField(min_value=1, source='clinician_id')


# --- token board ---

class EnqueueTokenSerializer(serializers.Serializer):
    clinicianId = serializers.IntegerField(min_value=1, source='clinician_id')
    patientId = serializers.IntegerField(min_value=1, source='patient_id')
    lane = serializers.CharField(max_length=16, default='regular')
    serviceDate = serializers.DateField(required=False, source='service_date')


class AdvanceQueueSerializer(serializers.Serializer):
    clinicianId = serializers.IntegerField(min_value=1, source='clinician_id')
    serviceDate = serializers.DateField(required=False, source='service_date')


# --- beds ---

class BedRefSerializer(serializers.Serializer):
    bedId = serializers.IntegerField(min_value=1, source='bed_id')


class AllocateBedSerializer(BedRefSerializer):
    patientId = serializers.IntegerField(min_value=1, source='patient_id')


class FlagMaintenanceSerializer(BedRefSerializer):
    reason = CleanTextField(max_length=255)


class ReserveBedSerializer(BedRefSerializer):
    reservedFor = serializers.DateField(source='reserved_for')
    patientId = serializers.IntegerField(min_value=1, required=False, allow_null=True, source='patient_id')


class RegisterBedSerializer(serializers.Serializer):
    wardType = serializers.CharField(max_length=16, source='ward_type')
    floorNumber = serializers.IntegerField(min_value=0, source='floor_number')
    roomNumber = serializers.CharField(max_length=32, source='room_number')
    bedNumber = serializers.CharField(max_length=32, source='bed_number')
    dailyCharge = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0,
                                           source='daily_charge')
    amenities = serializers.ListField(child=serializers.CharField(max_length=64), required=False, default=list)


class RegisterClinicianSerializer(serializers.Serializer):
    name = CleanTextField(max_length=255, required=True, allow_blank=False, default=serializers.empty)
    department = CleanTextField(max_length=255)
    slotMinutes = serializers.IntegerField(min_value=5, max_value=240, default=30, source='slot_minutes')
    sessionStart = serializers.TimeField(required=False, source='session_start')
    sessionEnd = serializers.TimeField(required=False, source='session_end')
    consultationFee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0,
                                               source='consultation_fee')
    userId = serializers.IntegerField(min_value=1, required=False, allow_null=True, source='user_id')


# --- appointments ---

class BookAppointmentSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1, source='patient_id')
    clinicianId = serializers.IntegerField(min_value=1, source='clinician_id')
    date = serializers.DateField(source='scheduled_date')
    time = serializers.TimeField(source='scheduled_time')
    modality = serializers.CharField(max_length=16, default='in_person')
    symptoms = CleanTextField(max_length=2000)
    notes = CleanTextField(max_length=2000)


class AppointmentRefSerializer(serializers.Serializer):
    appointmentId = serializers.IntegerField(min_value=1, source='appointment_id')


class ConfirmPaymentSerializer(AppointmentRefSerializer):
    outcome = serializers.CharField(max_length=16)
    paymentId = serializers.IntegerField(min_value=1, required=False, allow_null=True, source='payment_id')
    gatewayPaymentId = serializers.CharField(max_length=128, required=False, allow_blank=True, default='',
                                             source='gateway_payment_id')


class CompleteAppointmentSerializer(AppointmentRefSerializer):
    notes = CleanTextField(max_length=2000)


class CancelAppointmentSerializer(AppointmentRefSerializer):
    reason = CleanTextField(max_length=255)


class EventEnvelopeSerializer(serializers.Serializer):
    type = serializers.CharField(max_length=64)
    payload = serializers.DictField(required=False, default=dict)
