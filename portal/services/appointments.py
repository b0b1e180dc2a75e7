from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from portal.exceptions import ForbiddenError, PortalError
from portal.models import Appointment, AppointmentTransition, DoctorProfile
from portal.services.audit import log_action

logger = logging.getLogger(__name__)

TAB_UPCOMING = 'upcoming'
TAB_PAST = 'past'

ACTIVE_STATUSES = (Appointment.STATUS_REQUESTED, Appointment.STATUS_CONFIRMED)

# (from, to) -> roles allowed to make the change
TRANSITIONS = {
    (Appointment.STATUS_REQUESTED, Appointment.STATUS_CONFIRMED): {'doctor'},
    (Appointment.STATUS_REQUESTED, Appointment.STATUS_CANCELLED): {'patient', 'doctor'},
    (Appointment.STATUS_CONFIRMED, Appointment.STATUS_CANCELLED): {'patient', 'doctor'},
    (Appointment.STATUS_CONFIRMED, Appointment.STATUS_COMPLETED): {'doctor'},
}


def user_group(user_id: int) -> str:
    return f"appointments.{user_id}"


def participant_side(user, appt: Appointment) -> Optional[str]:
    if appt.patient_id == user.id:
        return 'patient'
    if appt.doctor.user_id and appt.doctor.user_id == user.id:
        return 'doctor'
    return None


def check_access(user, appt: Appointment) -> bool:
    return getattr(user, 'role', '') == 'admin' or participant_side(user, appt) is not None


def serialize_appointment(a: Appointment) -> dict:
    d = a.doctor
    return {
        'id': a.id,
        'patientId': a.patient_id,
        'patientName': a.patient.name,
        'doctorId': d.id,
        'doctorName': d.name,
        'doctorSpecialty': d.specialty,
        'doctorPhotoUrl': d.photo_url,
        'location': {'address': d.address, 'city': d.city, 'state': d.state, 'zipCode': d.zip_code},
        'status': a.status,
        'dateTime': a.date_time.isoformat(),
        'duration': a.duration,
        'reason': a.reason,
        'notes': a.notes,
        'createdAt': a.created_at.isoformat(),
        'updatedAt': a.updated_at.isoformat(),
    }


def visible_to(user):
    qs = Appointment.objects.select_related('doctor', 'patient')
    role = getattr(user, 'role', '')
    if role == 'admin':
        return qs
    if role == 'doctor':
        return qs.filter(doctor__user=user)
    return qs.filter(patient=user)


def list_appointments(user, *, tab: str = TAB_UPCOMING, now=None) -> list[dict]:
    now = now or timezone.now()
    qs = visible_to(user)
    if tab == TAB_PAST:
        qs = qs.filter(Q(date_time__lt=now) | Q(status__in=Appointment.CLOSED_STATUSES)).order_by('-date_time')
    else:
        qs = (qs.filter(Q(date_time__gt=now) | Q(status=Appointment.STATUS_REQUESTED))
                .exclude(status__in=Appointment.CLOSED_STATUSES)
                .order_by('date_time'))
    return [serialize_appointment(a) for a in qs]


def _overlaps(doctor: DoctorProfile, start, end, *, exclude_id: Optional[int] = None) -> bool:
    # candidates that start before our end; duration is per row so finish the check in python
    qs = Appointment.objects.filter(
        doctor=doctor, status__in=ACTIVE_STATUSES,
        date_time__lt=end, date_time__gte=start - timedelta(days=1),
    )
    if exclude_id:
        qs = qs.exclude(id=exclude_id)
    return any(a.ends_at > start for a in qs)


@transaction.atomic
def request_appointment(patient, *, doctor_id: int, date_time, duration: int = 30, reason: str = '') -> Appointment:
    doctor = DoctorProfile.objects.select_for_update().filter(id=doctor_id).first()
    if doctor is None:
        raise PortalError('doctor-not-found', 'Doctor not found.', status_code=404)
    if doctor.user_id and doctor.user_id == patient.id:
        raise PortalError('invalid-appointment', 'You cannot book an appointment with yourself.')
    if not doctor.accepting_new_patients:
        raise PortalError('not-accepting', 'This doctor is not accepting new patients.')
    if date_time <= timezone.now():
        raise PortalError('invalid-time', 'Appointments must be requested for a future time.')
    end = date_time + timedelta(minutes=duration)
    if _overlaps(doctor, date_time, end):
        raise PortalError('slot-unavailable', 'The doctor already has an appointment at that time.', status_code=409)

    appt = Appointment.objects.create(
        patient=patient, doctor=doctor, date_time=date_time, duration=duration, reason=reason,
    )
    AppointmentTransition.objects.create(appointment=appt, from_status=None, to_status=appt.status, operator=patient)
    log_action(user=patient, action='appointment_request', object_type='appointment', object_id=appt.id,
               detail={'doctorId': doctor.id})
    transaction.on_commit(lambda: notify(appt))
    return appt


@transaction.atomic
def change_status(user, appt: Appointment, to_status: str, *, notes: Optional[str] = None, reason: str = '') -> Appointment:
    appt = Appointment.objects.select_for_update().select_related('doctor', 'patient').get(pk=appt.pk)
    side = participant_side(user, appt)
    if side is None and getattr(user, 'role', '') != 'admin':
        raise ForbiddenError()
    allowed = TRANSITIONS.get((appt.status, to_status))
    if allowed is None:
        raise PortalError('invalid-transition', f"Cannot change an appointment from {appt.status} to {to_status}.")
    if side not in allowed and getattr(user, 'role', '') != 'admin':
        raise ForbiddenError()
    if to_status == Appointment.STATUS_CONFIRMED and _overlaps(appt.doctor, appt.date_time, appt.ends_at, exclude_id=appt.id):
        raise PortalError('slot-unavailable', 'The doctor already has an appointment at that time.', status_code=409)

    from_status = appt.status
    appt.status = to_status
    fields = ['status', 'updated_at']
    if notes is not None:
        appt.notes = notes
        fields.append('notes')
    appt.save(update_fields=fields)
    AppointmentTransition.objects.create(
        appointment=appt, from_status=from_status, to_status=to_status, operator=user, reason=reason,
    )
    log_action(user=user, action='appointment_status', object_type='appointment', object_id=appt.id,
               detail={'from': from_status, 'to': to_status})
    transaction.on_commit(lambda: notify(appt))
    return appt


def notify(appt: Appointment) -> None:
    """Push the appointment to both participants' websocket groups."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    event = {'type': 'appointment.update', 'appointment': serialize_appointment(appt)}
    recipients = {appt.patient_id, appt.doctor.user_id} - {None}
    for uid in recipients:
        try:
            async_to_sync(channel_layer.group_send)(user_group(uid), event)
        except Exception:
            logger.exception('realtime push for appointment %s failed', appt.id)
