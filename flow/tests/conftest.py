import datetime
import itertools
from decimal import Decimal

import pytest
from django.core.cache import cache

from flow.models import Patient, User
from flow.services import registry


@pytest.fixture(autouse=True)
def _fresh_cache():
    # throttle counters live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role='nurse', username=None):
        return User.objects.create_user(
            username=username or f'{role}{next(counter)}', password='P@ssw0rd1', role=role,
        )
    return _make


@pytest.fixture
def nurse(make_user):
    return make_user('nurse')


@pytest.fixture
def make_patient(db):
    counter = itertools.count(1)

    def _make(name=None, user=None):
        return Patient.objects.create(name=name or f'Patient {next(counter)}', user=user)
    return _make


@pytest.fixture
def clinician(db):
    return registry.register_clinician(
        name='Dr. Rao',
        department='Cardiology',
        slot_minutes=30,
        session_start=datetime.time(9, 0),
        session_end=datetime.time(12, 0),
        consultation_fee=Decimal('500.00'),
    )


@pytest.fixture
def bed(db):
    return registry.register_bed(
        ward_type='general', floor_number=1, room_number='101', bed_number='7',
        daily_charge=Decimal('1200.00'),
    )
