from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.exceptions import NotFoundError
from portal.models import Appointment
from portal.permissions import IsPatientRole
from portal.serializers.appointments import (
    AppointmentListQuerySerializer,
    AppointmentRequestSerializer,
    AppointmentStatusSerializer,
)
from portal.services import appointments as svc


def _get_visible(user, pk: int) -> Appointment:
    appt = Appointment.objects.select_related('doctor', 'patient').filter(pk=pk).first()
    # same answer for missing and foreign appointments
    if appt is None or not svc.check_access(user, appt):
        raise NotFoundError('appointment-not-found', 'Appointment not found.')
    return appt


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_appointments_view(request):
    """Query params: tab = upcoming (default) | past"""
    s = AppointmentListQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    data = svc.list_appointments(request.user, tab=s.validated_data['tab'])
    return Response({'ok': True, 'data': data, 'total': len(data)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def appointment_detail_view(request, pk: int):
    appt = _get_visible(request.user, pk)
    data = svc.serialize_appointment(appt)
    data['transitions'] = [
        {'from': t.from_status, 'to': t.to_status, 'at': t.timestamp.isoformat(), 'reason': t.reason}
        for t in appt.transitions.order_by('timestamp', 'id')
    ]
    return Response({'ok': True, 'data': data})


@api_view(['POST'])
@permission_classes([IsPatientRole])
def request_appointment_view(request):
    s = AppointmentRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    appt = svc.request_appointment(
        request.user,
        doctor_id=v['doctorId'],
        date_time=v['dateTime'],
        duration=v['duration'],
        reason=v['reason'],
    )
    return Response({'ok': True, 'data': svc.serialize_appointment(appt)}, status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_status_view(request, pk: int):
    appt = _get_visible(request.user, pk)
    s = AppointmentStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    appt = svc.change_status(request.user, appt, v['status'], notes=v.get('notes'), reason=v['reason'])
    return Response({'ok': True, 'data': svc.serialize_appointment(appt)})
