import bleach
from rest_framework import serializers


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class RegisterSerializer(serializers.Serializer):
    # blank values are allowed through so the service can answer with missing-fields
    name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    email = serializers.CharField(required=False, allow_blank=True, max_length=254)
    password = serializers.CharField(required=False, allow_blank=True, write_only=True)
    confirmPassword = serializers.CharField(required=False, allow_blank=True, write_only=True)
    role = serializers.CharField(required=False, default='patient')

    def validate_name(self, v):
        return _clean(v)


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField(required=False, allow_blank=True, write_only=True)
    otp = serializers.CharField(required=False, allow_blank=True)


class PhoneSerializer(serializers.Serializer):
    countryCode = serializers.CharField(required=False, default='+1', max_length=6)
    phoneNumber = serializers.CharField(required=False, allow_blank=True, max_length=32)


class PhoneVerifySerializer(PhoneSerializer):
    code = serializers.CharField(required=False, allow_blank=True, max_length=12)


class GoogleLoginSerializer(serializers.Serializer):
    idToken = serializers.CharField()


class DemoSessionSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=['patient', 'doctor'], default='patient')


class ProfileUpdateSerializer(serializers.Serializer):
    displayName = serializers.CharField(required=False, allow_blank=True, max_length=150)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    photoURL = serializers.URLField(required=False, allow_blank=True, max_length=500)

    def validate_displayName(self, v):
        return _clean(v)


class RoleSerializer(serializers.Serializer):
    role = serializers.CharField()


class PasswordStrengthSerializer(serializers.Serializer):
    password = serializers.CharField(allow_blank=True, trim_whitespace=False)
    email = serializers.CharField(required=False, allow_blank=True)
    name = serializers.CharField(required=False, allow_blank=True)


class TwoFactorTokenSerializer(serializers.Serializer):
    token = serializers.RegexField(r'^\d{6}$', error_messages={'invalid': 'Enter the 6-digit code.'})
