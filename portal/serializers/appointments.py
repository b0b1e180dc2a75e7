import bleach
from rest_framework import serializers

from portal.models import Appointment
from portal.services.appointments import TAB_PAST, TAB_UPCOMING


class AppointmentListQuerySerializer(serializers.Serializer):
    tab = serializers.ChoiceField(choices=[TAB_UPCOMING, TAB_PAST], required=False, default=TAB_UPCOMING)


class AppointmentRequestSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    dateTime = serializers.DateTimeField()
    duration = serializers.IntegerField(required=False, default=30, min_value=10, max_value=240)
    reason = serializers.CharField(required=False, allow_blank=True, default='', max_length=255)

    def validate_reason(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class AppointmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in Appointment.STATUS_CHOICES])
    notes = serializers.CharField(required=False, allow_blank=True, max_length=4000)
    reason = serializers.CharField(required=False, allow_blank=True, default='', max_length=255)

    def validate_notes(self, v):
        return bleach.clean(v.strip(), strip=True)

    def validate_reason(self, v):
        return bleach.clean((v or '').strip(), strip=True)
