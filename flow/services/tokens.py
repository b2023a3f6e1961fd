"""
Per-clinician token board ("now serving").

Token numbers are handed out per clinician per day and never depend on the
lane.  The lane only decides serving order: emergency before priority
before regular, then ascending token number, then insertion order.
"""
import datetime
import logging
from typing import Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from flow.errors import NoWaitingPatients, ValidationError
from flow.models import Clinician, Lane, Patient, QueueToken, TokenStatus
from flow.services.guards import require_known_state
from flow.services.sequences import next_value

logger = logging.getLogger(__name__)

LANE_PRECEDENCE = {
    Lane.EMERGENCY: 0,
    Lane.PRIORITY: 1,
    Lane.REGULAR: 2,
}


def format_token(number: int) -> str:
    return f'{number:03d}'


def token_counter(clinician_id: int, service_date: datetime.date) -> str:
    return f'token:{clinician_id}:{service_date.isoformat()}'


def serving_order_key(token: QueueToken) -> tuple[int, int, int]:
    lane = require_known_state(token.lane, Lane, aggregate='queue token', pk=token.pk)
    return LANE_PRECEDENCE[lane], token.number, token.pk


def order_tokens(tokens: Iterable[QueueToken]) -> list[QueueToken]:
    return sorted(tokens, key=serving_order_key)


def enqueue(clinician: Clinician, patient: Patient, lane: str = Lane.REGULAR, *,
            service_date: Optional[datetime.date] = None) -> QueueToken:
    if lane not in Lane.values:
        raise ValidationError(f'unknown lane {lane!r}', detail={'allowed': list(Lane.values)})
    if not clinician.active:
        raise ValidationError(f'clinician {clinician.pk} is not active')
    service_date = service_date or timezone.localdate()
    with transaction.atomic():
        number = next_value(token_counter(clinician.pk, service_date))
        token = QueueToken.objects.create(
            clinician=clinician,
            service_date=service_date,
            number=number,
            lane=lane,
            patient=patient,
        )
    logger.info('token %s (%s) issued for clinician %s on %s', format_token(number), lane, clinician.pk, service_date)
    return token


def advance(clinician: Clinician, *, service_date: Optional[datetime.date] = None) -> Optional[QueueToken]:
    """Finish whoever is with the doctor and call the next token in.

    Returns the token now with the doctor, or ``None`` once the last
    patient of the day has been finished and nobody else is waiting.
    """
    service_date = service_date or timezone.localdate()
    with transaction.atomic():
        # one advance per clinician at a time
        Clinician.objects.select_for_update().get(pk=clinician.pk)
        open_tokens = list(
            QueueToken.objects.select_for_update()
            .filter(clinician=clinician, service_date=service_date,
                    status__in=[TokenStatus.WAITING, TokenStatus.WITH_DOCTOR])
        )
        if not open_tokens:
            raise NoWaitingPatients(f'no patients waiting for clinician {clinician.pk} on {service_date}')
        waiting = order_tokens(t for t in open_tokens if t.status == TokenStatus.WAITING)
        now = timezone.now()
        for token in open_tokens:
            if token.status == TokenStatus.WITH_DOCTOR:
                token.status = TokenStatus.COMPLETED
                token.completed_at = now
                token.save(update_fields=['status', 'completed_at'])
        if not waiting:
            logger.info('clinician %s finished the last token of %s', clinician.pk, service_date)
            return None
        served = waiting[0]
        served.status = TokenStatus.WITH_DOCTOR
        served.called_at = now
        served.save(update_fields=['status', 'called_at'])
    logger.info('clinician %s now serving token %s', clinician.pk, format_token(served.number))
    return served


def token_snapshot(token: QueueToken) -> dict:
    return {
        'id': token.pk,
        'token': format_token(token.number),
        'number': token.number,
        'lane': token.lane,
        'status': token.status,
        'clinicianId': token.clinician_id,
        'patientId': token.patient_id,
        'patientName': token.patient.name,
        'serviceDate': token.service_date.isoformat(),
        'calledAt': token.called_at.isoformat() if token.called_at else None,
    }


def currently_serving(clinician: Clinician, service_date: Optional[datetime.date] = None) -> Optional[dict]:
    service_date = service_date or timezone.localdate()
    token = (
        QueueToken.objects.select_related('patient')
        .filter(clinician=clinician, service_date=service_date, status=TokenStatus.WITH_DOCTOR)
        .order_by('-called_at', '-id')
        .first()
    )
    return token_snapshot(token) if token else None


def waiting_list(clinician: Clinician, service_date: Optional[datetime.date] = None,
                 limit: Optional[int] = None) -> list[dict]:
    service_date = service_date or timezone.localdate()
    qs = QueueToken.objects.select_related('patient').filter(
        clinician=clinician, service_date=service_date, status=TokenStatus.WAITING,
    )
    ordered = order_tokens(qs)
    if limit:
        ordered = ordered[:limit]
    return [token_snapshot(t) for t in ordered]


def clinician_board(clinician: Clinician, service_date: Optional[datetime.date] = None,
                    limit: Optional[int] = None) -> dict:
    service_date = service_date or timezone.localdate()
    waiting = waiting_list(clinician, service_date)
    return {
        'clinicianId': clinician.pk,
        'clinicianName': clinician.name,
        'serviceDate': service_date.isoformat(),
        'currentlyServing': currently_serving(clinician, service_date),
        'waiting': waiting[:limit] if limit else waiting,
        'waitingCount': len(waiting),
        'estimatedWaitMinutes': len(waiting) * settings.FLOW_TOKEN_MINUTES_PER_PATIENT,
    }
