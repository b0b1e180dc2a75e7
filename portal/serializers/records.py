import bleach
from rest_framework import serializers

from portal.models import MedicalRecord
from portal.services.records import ALL_CATEGORIES


class RecordUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
    category = serializers.ChoiceField(choices=MedicalRecord.CATEGORY_CHOICES, required=False, default='labResults')
    description = serializers.CharField(required=False, allow_blank=True, default='', max_length=2000)

    def validate_description(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class RecordListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True, max_length=100)
    category = serializers.ChoiceField(
        choices=[ALL_CATEGORIES] + [c for c, _ in MedicalRecord.CATEGORY_CHOICES], required=False,
    )
