import pytest
from django.core.cache import cache
from django.core.management import call_command
from django.urls import reverse

from portal.management.commands import refresh_caches
from portal.models import Appointment, DoctorProfile, MedicalRecord, User
from portal.services.doctors import cache_key

pytestmark = pytest.mark.django_db


class FakeLayer:
    def __init__(self):
        self.sent = []

    async def group_send(self, group, message):
        self.sent.append((group, message))


def test_seed_demo_data_is_idempotent():
    call_command('seed_demo_data')
    call_command('seed_demo_data')

    assert DoctorProfile.objects.filter(user=None).count() == 8
    patient = User.objects.get(email='demo-patient@trustrx.local')
    assert patient.is_demo and not patient.has_usable_password()
    doctor = User.objects.get(email='demo-doctor@trustrx.local')
    assert doctor.doctor_profile.is_verified
    assert sorted(Appointment.objects.filter(patient=patient).values_list('status', flat=True)) == \
        ['cancelled', 'completed', 'confirmed', 'requested']
    records = MedicalRecord.objects.filter(owner=patient)
    assert records.count() == 3
    assert all(r.transaction_id and r.verified for r in records)


def test_seed_can_skip_records():
    call_command('seed_demo_data', '--skip-records')
    assert not MedicalRecord.objects.exists()


def test_ensure_demo_users_reactivates():
    call_command('ensure_demo_users')
    User.objects.filter(email='demo-doctor@trustrx.local').update(is_active=False)
    call_command('ensure_demo_users')
    assert User.objects.get(email='demo-doctor@trustrx.local').is_active
    assert User.objects.filter(is_demo=True).count() == 2


def test_refresh_caches_warms_and_broadcasts(monkeypatch, directory):
    layer = FakeLayer()
    monkeypatch.setattr(refresh_caches, 'get_channel_layer', lambda: layer)
    call_command('refresh_caches')

    params = {'q': None, 'specialty': None, 'location': None, 'accepting_only': False, 'verified_only': False,
              'sort': 'rating', 'lat': None, 'lng': None, 'radius_km': None, 'page': None, 'page_size': None}
    warmed = cache.get(cache_key(params))
    assert warmed['total'] == 3
    assert [(g, m['type']) for g, m in layer.sent] == [('updates', 'broadcast.refresh')]
    assert layer.sent[0][1]['keys'] == ['doctors']


def test_healthz(client):
    r = client.get(reverse('healthz'))
    assert r.status_code == 200
    assert r.json() == {'ok': True, 'db': True}
