"""
Appointment lookups.  Patients only ever see their own bookings; staff
and service accounts see everything.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Patient
from ..permissions import role_of
from ..services.facade import Orchestrator


def _check_patient(user, patient_id: int) -> None:
    if role_of(user) != 'patient':
        return
    if not Patient.objects.filter(pk=patient_id, user=user).exists():
        raise PermissionDenied('patients may only view their own appointments')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def appointment_detail(request, appointment_id: int):
    data = Orchestrator.get_appointment(appointment_id)
    _check_patient(request.user, data['patientId'])
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def patient_appointments(request, patient_id: int):
    _check_patient(request.user, patient_id)
    return Response({'patientId': patient_id, 'appointments': Orchestrator.get_patient_appointments(patient_id)})
