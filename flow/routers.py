"""
URL mappings for the patient-flow API.

Trailing slashes are omitted, as in the rest of the API.
"""
from django.urls import include, path

from .views import appointments, boards, events, health

urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),

    path('api/events', events.submit_event),
    path('api/events/types', events.event_types),

    path('api/triage/board', boards.triage_board),
    path('api/triage/entries/<int:entry_id>', boards.triage_entry),
    path('api/clinicians/<int:clinician_id>/queue', boards.clinician_queue),
    path('api/clinicians/<int:clinician_id>/slots', boards.clinician_slots),
    path('api/beds/board', boards.bed_board),
    path('api/beds/occupancy', boards.bed_occupancy),
    path('api/beds/<int:bed_id>/history', boards.bed_history),

    path('api/appointments/<int:appointment_id>', appointments.appointment_detail),
    path('api/patients/<int:patient_id>/appointments', appointments.patient_appointments),
]
