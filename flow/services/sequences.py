from django.db import IntegrityError, transaction

from flow.models import SequenceCounter


def next_value(name: str) -> int:
    """Hand out the next value of the named counter.

    The counter row is locked for the rest of the caller's transaction, so
    values are unique and strictly increasing in the order they are issued.
    """
    with transaction.atomic():
        if not SequenceCounter.objects.filter(name=name).exists():
            try:
                with transaction.atomic():
                    SequenceCounter.objects.create(name=name, value=0)
            except IntegrityError:
                # created by a concurrent writer; the locked read below serialises us
                pass
        counter = SequenceCounter.objects.select_for_update().get(name=name)
        counter.value += 1
        counter.save(update_fields=['value'])
        return counter.value

