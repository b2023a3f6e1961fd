import datetime
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from flow.models import Appointment, AppointmentStatus
from flow.services import appointments

pytestmark = pytest.mark.django_db

DAY = datetime.date(2024, 3, 1)


def _age(appt, minutes):
    Appointment.objects.filter(pk=appt.pk).update(created_at=timezone.now() - datetime.timedelta(minutes=minutes))


def test_expires_only_stale_unpaid_video_bookings(clinician, make_patient, settings):
    settings.FLOW_UNPAID_BOOKING_TTL_MINUTES = 30
    stale = appointments.book(make_patient(), clinician, DAY, datetime.time(9, 0), 'video')
    fresh = appointments.book(make_patient(), clinician, DAY, datetime.time(9, 30), 'video')
    paid = appointments.book(make_patient(), clinician, DAY, datetime.time(10, 0), 'video')
    clinic = appointments.book(make_patient(), clinician, DAY, datetime.time(10, 30), 'in_person')
    appointments.initiate_payment(paid.pk)
    appointments.confirm_payment(paid.pk, outcome='success')
    for appt in (stale, paid, clinic):
        _age(appt, 45)
    _age(fresh, 5)

    out = StringIO()
    call_command('expire_unpaid_bookings', stdout=out, stderr=StringIO())

    statuses = dict(Appointment.objects.values_list('pk', 'status'))
    assert statuses[stale.pk] == AppointmentStatus.CANCELLED
    assert statuses[fresh.pk] == AppointmentStatus.UPCOMING
    assert statuses[paid.pk] == AppointmentStatus.UPCOMING
    assert statuses[clinic.pk] == AppointmentStatus.UPCOMING
    assert 'Expired 1 unpaid bookings' in out.getvalue()


def test_dry_run_changes_nothing(clinician, make_patient):
    appt = appointments.book(make_patient(), clinician, DAY, datetime.time(9, 0), 'video')
    _age(appt, 120)
    out = StringIO()
    call_command('expire_unpaid_bookings', '--dry-run', stdout=out)
    assert Appointment.objects.get(pk=appt.pk).status == AppointmentStatus.UPCOMING
    assert str(appt.pk) in out.getvalue()
