import bleach
from rest_framework import serializers

from portal.models import DoctorProfile
from portal.services.doctors import SORT_DISTANCE, SORT_EXPERIENCE, SORT_RATING


class DoctorSearchQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True, max_length=100)
    specialty = serializers.CharField(required=False, allow_blank=True, max_length=64)
    location = serializers.CharField(required=False, allow_blank=True, max_length=100)
    accepting = serializers.BooleanField(required=False, default=False)
    verified = serializers.BooleanField(required=False, default=False)
    sort = serializers.ChoiceField(choices=[SORT_RATING, SORT_EXPERIENCE, SORT_DISTANCE], required=False, default=SORT_RATING)
    lat = serializers.FloatField(required=False, min_value=-90, max_value=90)
    lng = serializers.FloatField(required=False, min_value=-180, max_value=180)
    radiusKm = serializers.FloatField(required=False, min_value=0)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=100)

    def validate(self, attrs):
        has_lat, has_lng = 'lat' in attrs, 'lng' in attrs
        if has_lat != has_lng:
            raise serializers.ValidationError('lat and lng must be given together')
        if attrs.get('sort') == SORT_DISTANCE and not has_lat:
            raise serializers.ValidationError('sort=distance requires lat and lng')
        if 'radiusKm' in attrs and not has_lat:
            raise serializers.ValidationError('radiusKm requires lat and lng')
        return attrs

    def to_search_params(self) -> dict:
        """Normalised keyword arguments for ``search_doctors``; also the cache key source."""
        v = self.validated_data
        return {
            'q': (v.get('q') or '').strip() or None,
            'specialty': v.get('specialty') or None,
            'location': v.get('location') or None,
            'accepting_only': v.get('accepting', False),
            'verified_only': v.get('verified', False),
            'sort': v.get('sort') or SORT_RATING,
            'lat': v.get('lat'),
            'lng': v.get('lng'),
            'radius_km': v.get('radiusKm'),
            'page': v.get('page'),
            'page_size': v.get('pageSize'),
        }


class DoctorProfileUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, max_length=150)
    specialty = serializers.ChoiceField(choices=DoctorProfile.SPECIALTY_CHOICES, required=False)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)
    city = serializers.CharField(required=False, allow_blank=True, max_length=100)
    state = serializers.CharField(required=False, allow_blank=True, max_length=32)
    zipCode = serializers.CharField(required=False, allow_blank=True, max_length=16, source='zip_code')
    lat = serializers.FloatField(required=False, allow_null=True, min_value=-90, max_value=90, source='latitude')
    lng = serializers.FloatField(required=False, allow_null=True, min_value=-180, max_value=180, source='longitude')
    acceptingNewPatients = serializers.BooleanField(required=False, source='accepting_new_patients')
    languages = serializers.ListField(child=serializers.CharField(max_length=40), required=False, max_length=20)
    education = serializers.CharField(required=False, allow_blank=True, max_length=255)
    yearsOfExperience = serializers.IntegerField(required=False, min_value=0, max_value=80, source='years_of_experience')
    photoUrl = serializers.URLField(required=False, allow_blank=True, max_length=500, source='photo_url')
    bio = serializers.CharField(required=False, allow_blank=True, max_length=4000)

    def validate_name(self, v):
        v = bleach.clean(v.strip(), strip=True)
        if len(v) < 2:
            raise serializers.ValidationError('Name must be at least 2 characters')
        return v

    def validate_bio(self, v):
        return bleach.clean(v.strip(), strip=True)
