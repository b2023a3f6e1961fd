"""
Role based access control for events and boards.

Patients may only act on their own bookings; ward staff drive triage,
tokens and beds; registering resources is an admin job; payment
confirmation and expiry come from service accounts.
"""
from rest_framework.permissions import BasePermission

STAFF_ROLES = {"nurse", "receptionist", "doctor", "admin"}
SERVICE_ROLES = {"service", "admin"}
ADMIN_ROLES = {"admin"}

PATIENT_EVENTS = {"BookAppointment", "InitiatePayment", "JoinVideoSession", "CancelAppointment"}

EVENT_ROLES = {
    "RegisterBed": ADMIN_ROLES,
    "RegisterClinician": ADMIN_ROLES,
    "ConfirmPayment": SERVICE_ROLES,
    "ExpireUnpaidBooking": SERVICE_ROLES,
}


def role_of(user) -> str | None:
    if not (user and user.is_authenticated):
        return None
    if user.is_superuser:
        return "admin"
    return getattr(user, "role", None)


def may_submit(user, event_type: str) -> bool:
    """Whether ``user`` is allowed to submit ``event_type``."""
    role = role_of(user)
    if role is None:
        return False
    if event_type in EVENT_ROLES:
        return role in EVENT_ROLES[event_type]
    if role in STAFF_ROLES:
        return True
    return role == "patient" and event_type in PATIENT_EVENTS


class IsStaffRole(BasePermission):
    """Allow access only to ward staff."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return role_of(getattr(request, "user", None)) in STAFF_ROLES


class IsAdminRole(BasePermission):
    """Allow access only to administrators."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return role_of(getattr(request, "user", None)) in ADMIN_ROLES
