import logging
from typing import Any, Dict, Optional, Type

from django.contrib.auth import get_user_model
from django.db import models

logger = logging.getLogger(__name__)

User = get_user_model()


def _operator(user) -> Optional[User]:
    return user if isinstance(user, User) and getattr(user, 'pk', None) else None


def record_transition(
    log_model: Type[models.Model],
    *,
    operator,
    event: str,
    from_status: Optional[str],
    to_status: str,
    detail: Optional[Dict[str, Any]] = None,
    **owner: Any,
) -> models.Model:
    """Append one row to an aggregate's transition log.

    ``owner`` names the aggregate foreign key (``entry=``, ``bed=`` or
    ``appointment=``) plus any extra columns the log model defines.
    """
    record = log_model.objects.create(
        operator=_operator(operator),
        event=event,
        from_status=from_status,
        to_status=to_status,
        detail=detail or {},
        **owner,
    )
    logger.info(
        '%s %s: %s -> %s by %s',
        log_model.__name__, event, from_status, to_status,
        getattr(record.operator, 'username', None) or 'system',
    )
    return record


def history(records) -> list[dict]:
    return [
        {
            'event': r.event,
            'from': r.from_status,
            'to': r.to_status,
            'operator': r.operator.username if r.operator else '',
            'timestamp': r.timestamp.isoformat(),
            'detail': r.detail,
        }
        for r in records
    ]
