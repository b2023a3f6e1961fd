import logging
from typing import Optional, Type

from django.db import models

from flow.errors import CorruptStateError

logger = logging.getLogger(__name__)


def require_known_state(value: str, choices: Type[models.TextChoices], *, aggregate: str, pk: Optional[int]) -> str:
    """Return ``value`` if it belongs to ``choices``; otherwise abort the operation.

    A stored state outside its enum means the row was written by something
    other than this service, so the operation stops and operators are told.
    """
    if value in choices.values:
        return value
    logger.error('corrupt %s %s: state %r is not one of %s', aggregate, pk, value, list(choices.values))
    raise CorruptStateError(
        f'{aggregate} {pk} has unknown state {value!r}',
        detail={'aggregate': aggregate, 'id': pk, 'state': value},
    )
