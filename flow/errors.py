"""
Error taxonomy for the patient-flow core.

Every failure a caller can provoke is a :class:`FlowError` subclass that
carries a stable ``code`` and the HTTP status the API binding uses.  The
five families mirror how a caller should react: fix the input
(:class:`ValidationError`), refresh state and pick another action
(:class:`IllegalTransitionError`, :class:`ConflictError`), satisfy a
precondition first (:class:`GatingError`) or stop asking about an unknown
id (:class:`NotFoundError`).  :class:`CorruptStateError` is reserved for
stored data that no longer matches any known state.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class FlowError(Exception):
    code = 'flow_error'
    status_code = 400

    def __init__(self, message: str = '', *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.__class__.__name__)
        self.detail = detail or {}

    def as_dict(self) -> dict:
        data = {'code': self.code, 'message': str(self)}
        if self.detail:
            data['detail'] = self.detail
        return data


class ValidationError(FlowError):
    code = 'validation_error'
    status_code = 400


class IllegalTransitionError(FlowError):
    code = 'illegal_transition'
    status_code = 409


class ConflictError(FlowError):
    code = 'conflict'
    status_code = 409


class GatingError(FlowError):
    code = 'gating_error'
    status_code = 403


class NotFoundError(FlowError):
    code = 'not_found'
    status_code = 404


class CorruptStateError(FlowError):
    code = 'corrupt_state'
    status_code = 500


# --- validation ---

class InvalidTriageLevel(ValidationError):
    code = 'invalid_triage_level'


class SlotOutsideSession(ValidationError):
    code = 'slot_outside_session'


class UnknownEvent(ValidationError):
    code = 'unknown_event'


# --- illegal transitions ---

class IllegalTriageTransition(IllegalTransitionError):
    code = 'illegal_triage_transition'


class EntryNotWaiting(IllegalTransitionError):
    code = 'entry_not_waiting'


class IllegalBedTransition(IllegalTransitionError):
    code = 'illegal_bed_transition'


class BedNotAvailable(IllegalBedTransition):
    code = 'bed_not_available'


class BedNotOccupied(IllegalBedTransition):
    code = 'bed_not_occupied'


class IllegalAppointmentTransition(IllegalTransitionError):
    code = 'illegal_appointment_transition'


class PaymentAlreadySettled(IllegalTransitionError):
    code = 'payment_already_settled'


# --- conflicts ---

class SlotAlreadyTaken(ConflictError):
    code = 'slot_already_taken'


class PatientAlreadyQueued(ConflictError):
    code = 'patient_already_queued'


class PatientAlreadyBedded(ConflictError):
    code = 'patient_already_bedded'


class AlreadyPaid(ConflictError):
    code = 'already_paid'


class DuplicateBed(ConflictError):
    code = 'duplicate_bed'


# --- gating ---

class PaymentRequired(GatingError):
    code = 'payment_required'
    status_code = 402


class SessionNotJoinable(GatingError):
    code = 'session_not_joinable'


# --- lookups ---

class NoWaitingPatients(NotFoundError):
    code = 'no_waiting_patients'
