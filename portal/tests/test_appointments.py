import datetime

import pytest
from django.urls import reverse
from django.utils import timezone

from portal.models import Appointment, AppointmentTransition, AuditEvent
from portal.services import appointments as svc
from portal.tests.conftest import auth_client, future, make_user

pytestmark = pytest.mark.django_db


def book(client, doctor, when=None, **extra):
    payload = {'doctorId': doctor.id, 'dateTime': (when or future()).isoformat(), 'reason': 'Checkup'}
    payload.update(extra)
    return client.post(reverse('request_appointment_view'), payload, format='json')


class FakeLayer:
    def __init__(self):
        self.sent = []

    async def group_send(self, group, message):
        self.sent.append((group, message))


def test_request_appointment(patient_client, patient, doctor_user):
    r = book(patient_client, doctor_user.doctor_profile, reason='<b>Chest</b> pain')
    assert r.status_code == 201
    data = r.data['data']
    assert data['status'] == 'requested'
    assert data['patientId'] == patient.id
    assert data['doctorName'] == 'Dr. Who'
    assert data['duration'] == 30
    assert data['reason'] == 'Chest pain'
    appt = Appointment.objects.get(id=data['id'])
    t = appt.transitions.get()
    assert (t.from_status, t.to_status, t.operator_id) == (None, 'requested', patient.id)
    assert AuditEvent.objects.filter(action='appointment_request', object_id=str(appt.id)).exists()


def test_request_validation(patient_client, doctor_user, directory):
    r = book(patient_client, doctor_user.doctor_profile, when=timezone.now() - datetime.timedelta(hours=1))
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid-time'

    # Dr. Emily Rodriguez is not accepting new patients
    r = book(patient_client, directory[1])
    assert r.data['error']['code'] == 'not-accepting'

    r = patient_client.post(reverse('request_appointment_view'),
                            {'doctorId': 99999, 'dateTime': future().isoformat()}, format='json')
    assert r.status_code == 404

    r = book(patient_client, doctor_user.doctor_profile, duration=5)
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_error'


def test_only_patients_request(doctor_client, directory):
    r = book(doctor_client, directory[0])
    assert r.status_code == 403


def test_overlapping_request_rejected(patient_client, doctor_user):
    doctor = doctor_user.doctor_profile
    when = future(48)
    assert book(patient_client, doctor, when=when, duration=60).status_code == 201

    other = auth_client(make_user('other@example.com'))
    r = book(other, doctor, when=when + datetime.timedelta(minutes=30))
    assert r.status_code == 409
    assert r.data['error']['code'] == 'slot-unavailable'

    # back-to-back is fine
    assert book(other, doctor, when=when + datetime.timedelta(minutes=60)).status_code == 201


def test_cancelled_slot_can_be_rebooked(patient_client, doctor_user):
    doctor = doctor_user.doctor_profile
    when = future(72)
    appt_id = book(patient_client, doctor, when=when).data['data']['id']
    r = patient_client.post(reverse('appointment_status_view', args=[appt_id]), {'status': 'cancelled'}, format='json')
    assert r.status_code == 200
    assert book(patient_client, doctor, when=when).status_code == 201


def test_tabs(patient, patient_client, doctor_user):
    doctor = doctor_user.doctor_profile
    now = timezone.now()
    later = Appointment.objects.create(patient=patient, doctor=doctor, date_time=now + datetime.timedelta(days=3),
                                       status='confirmed')
    sooner = Appointment.objects.create(patient=patient, doctor=doctor, date_time=now + datetime.timedelta(days=1))
    stale_request = Appointment.objects.create(patient=patient, doctor=doctor, date_time=now - datetime.timedelta(days=1))
    done = Appointment.objects.create(patient=patient, doctor=doctor, date_time=now - datetime.timedelta(days=2),
                                      status='completed')
    cancelled = Appointment.objects.create(patient=patient, doctor=doctor, date_time=now + datetime.timedelta(days=5),
                                           status='cancelled')

    r = patient_client.get(reverse('list_appointments_view'))
    assert [a['id'] for a in r.data['data']] == [stale_request.id, sooner.id, later.id]
    assert r.data['total'] == 3

    r = patient_client.get(reverse('list_appointments_view'), {'tab': 'past'})
    assert [a['id'] for a in r.data['data']] == [cancelled.id, stale_request.id, done.id]

    r = patient_client.get(reverse('list_appointments_view'), {'tab': 'later'})
    assert r.status_code == 400


def test_doctor_sees_own_schedule(patient, doctor_user, doctor_client, directory):
    Appointment.objects.create(patient=patient, doctor=doctor_user.doctor_profile, date_time=future())
    Appointment.objects.create(patient=patient, doctor=directory[0], date_time=future())
    r = doctor_client.get(reverse('list_appointments_view'))
    assert [a['doctorId'] for a in r.data['data']] == [doctor_user.doctor_profile.id]


@pytest.mark.parametrize('start,target,actor,expected', [
    ('requested', 'confirmed', 'doctor', 200),
    ('requested', 'confirmed', 'patient', 403),
    ('requested', 'cancelled', 'patient', 200),
    ('requested', 'cancelled', 'doctor', 200),
    ('confirmed', 'completed', 'doctor', 200),
    ('confirmed', 'completed', 'patient', 403),
    ('confirmed', 'cancelled', 'patient', 200),
    ('requested', 'completed', 'doctor', 400),
    ('completed', 'cancelled', 'doctor', 400),
    ('cancelled', 'confirmed', 'doctor', 400),
])
def test_status_transitions(patient, patient_client, doctor_user, doctor_client, start, target, actor, expected):
    appt = Appointment.objects.create(patient=patient, doctor=doctor_user.doctor_profile, date_time=future(),
                                      status=start)
    client = doctor_client if actor == 'doctor' else patient_client
    r = client.post(reverse('appointment_status_view', args=[appt.id]),
                    {'status': target, 'notes': 'Bring results', 'reason': 'ok'}, format='json')
    assert r.status_code == expected
    appt.refresh_from_db()
    if expected == 200:
        assert appt.status == target
        assert appt.notes == 'Bring results'
        t = AppointmentTransition.objects.get(appointment=appt)
        assert (t.from_status, t.to_status, t.reason) == (start, target, 'ok')
    else:
        assert appt.status == start
        assert not AppointmentTransition.objects.filter(appointment=appt).exists()
    if expected == 400:
        assert r.data['error']['code'] == 'invalid-transition'


def test_confirm_rechecks_overlap(patient, doctor_user, doctor_client):
    doctor = doctor_user.doctor_profile
    when = future(30)
    Appointment.objects.create(patient=patient, doctor=doctor, date_time=when, status='confirmed', duration=60)
    pending = Appointment.objects.create(patient=patient, doctor=doctor, date_time=when + datetime.timedelta(minutes=15))
    r = doctor_client.post(reverse('appointment_status_view', args=[pending.id]), {'status': 'confirmed'}, format='json')
    assert r.status_code == 409


def test_detail_hidden_from_strangers(patient, patient_client, doctor_user):
    appt = Appointment.objects.create(patient=patient, doctor=doctor_user.doctor_profile, date_time=future())
    svc.change_status(patient, appt, 'cancelled', reason='travel')

    r = patient_client.get(reverse('appointment_detail_view', args=[appt.id]))
    assert r.status_code == 200
    assert [(t['from'], t['to']) for t in r.data['data']['transitions']] == [('requested', 'cancelled')]

    stranger = auth_client(make_user('stranger@example.com'))
    assert stranger.get(reverse('appointment_detail_view', args=[appt.id])).status_code == 404
    r = stranger.post(reverse('appointment_status_view', args=[appt.id]), {'status': 'cancelled'}, format='json')
    assert r.status_code == 404
    assert patient_client.get(reverse('appointment_detail_view', args=[99999])).status_code == 404

    admin = auth_client(make_user('admin@example.com', role='admin'))
    assert admin.get(reverse('appointment_detail_view', args=[appt.id])).status_code == 200


def test_status_change_pushes_to_both_sides(monkeypatch, patient, doctor_user, django_capture_on_commit_callbacks):
    layer = FakeLayer()
    monkeypatch.setattr(svc, 'get_channel_layer', lambda: layer)
    appt = Appointment.objects.create(patient=patient, doctor=doctor_user.doctor_profile, date_time=future())

    with django_capture_on_commit_callbacks(execute=True):
        svc.change_status(doctor_user, appt, 'confirmed')

    groups = sorted(g for g, _ in layer.sent)
    assert groups == sorted([svc.user_group(patient.id), svc.user_group(doctor_user.id)])
    message = layer.sent[0][1]
    assert message['type'] == 'appointment.update'
    assert message['appointment']['status'] == 'confirmed'


def test_unlinked_doctor_push_goes_to_patient_only(monkeypatch, patient, directory):
    layer = FakeLayer()
    monkeypatch.setattr(svc, 'get_channel_layer', lambda: layer)
    appt = Appointment.objects.create(patient=patient, doctor=directory[0], date_time=future())
    svc.notify(appt)
    assert [g for g, _ in layer.sent] == [svc.user_group(patient.id)]
