import datetime

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from portal.models import DoctorProfile, User


@pytest.fixture(autouse=True)
def _isolated(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path / 'media'
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    settings.SMS_GATEWAY_URL = ''
    settings.HUGGINGFACE_API_KEY = ''
    settings.OPENAI_API_KEY = ''
    settings.DEMO_MODE = True
    settings.GOOGLE_OAUTH_ENABLE = False
    # directory results and throttle counters live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def client():
    return APIClient()


def make_user(email='pat@example.com', password='secret123', role='patient', **extra):
    return User.objects.create_user(username=email, email=email, password=password, role=role, **extra)


def auth_client(user):
    from portal.services.accounts import session_payload
    c = APIClient()
    c.credentials(HTTP_AUTHORIZATION=f"Token {session_payload(user)['token']}")
    return c


@pytest.fixture
def patient(db):
    return make_user('patient@example.com', display_name='Pat Patient')


@pytest.fixture
def patient_client(patient):
    return auth_client(patient)


@pytest.fixture
def doctor_user(db):
    u = make_user('doc@example.com', role='doctor', display_name='Dr. Who')
    DoctorProfile.objects.create(
        user=u, name='Dr. Who', specialty='Cardiologist', city='Boston', state='MA',
        latitude=42.3601, longitude=-71.0589, rating='4.5', years_of_experience=9, is_verified=True,
    )
    return u


@pytest.fixture
def doctor_client(doctor_user):
    return auth_client(doctor_user)


@pytest.fixture
def directory(db):
    """Three unlinked directory entries in New York, Boston and Chicago."""
    rows = [
        dict(name='Dr. Sarah Johnson', specialty='General Practitioner', city='New York', state='NY',
             latitude=40.7506, longitude=-73.9972, rating='4.8', years_of_experience=12,
             accepting_new_patients=True, is_verified=True),
        dict(name='Dr. Emily Rodriguez', specialty='Dermatologist', city='Boston', state='MA',
             latitude=42.3427, longitude=-71.0922, rating='4.7', years_of_experience=8,
             accepting_new_patients=False, is_verified=True),
        dict(name='Dr. Jessica Taylor', specialty='Pediatrician', city='Chicago', state='IL',
             latitude=41.8858, longitude=-87.6229, rating='4.9', years_of_experience=7,
             accepting_new_patients=True, is_verified=False),
    ]
    return [DoctorProfile.objects.create(**r) for r in rows]


def future(hours=24):
    from django.utils import timezone
    return (timezone.now() + datetime.timedelta(hours=hours)).replace(microsecond=0)
