from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.exceptions import NotFoundError
from portal.models import DoctorProfile
from portal.permissions import IsDoctorRole
from portal.serializers.doctors import DoctorProfileUpdateSerializer, DoctorSearchQuerySerializer
from portal.services.doctors import (
    LOCATIONS,
    SPECIALTIES,
    cached_search,
    serialize_doctor,
    update_doctor_profile,
)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def search_doctors_view(request):
    """Doctor directory search.
    Query params:
      - q: name or specialty contains
      - specialty, location ("City, ST"); the "All ..." options mean no filter
      - accepting, verified: 1|0
      - sort: rating | experience | distance
      - lat, lng, radiusKm: distance annotation and radius filter
      - page, pageSize: pagination (optional)
    """
    s = DoctorSearchQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    return Response(cached_search(s.to_search_params()))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_filters_view(request):
    return Response({'ok': True, 'specialties': SPECIALTIES, 'locations': LOCATIONS})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_detail_view(request, pk: int):
    doctor = DoctorProfile.objects.filter(pk=pk).first()
    if doctor is None:
        raise NotFoundError('doctor-not-found', 'Doctor not found.')
    return Response({'ok': True, 'data': serialize_doctor(doctor, full=True)})


@api_view(['GET', 'POST'])
@permission_classes([IsDoctorRole])
def my_doctor_profile_view(request):
    profile, _ = DoctorProfile.objects.get_or_create(user=request.user, defaults={'name': request.user.name})
    if request.method == 'POST':
        s = DoctorProfileUpdateSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        profile = update_doctor_profile(profile, s.validated_data)
    return Response({'ok': True, 'data': serialize_doctor(profile, full=True)})
