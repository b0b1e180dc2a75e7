"""
Sign-in, registration and session views.

Every successful sign-in answers with the same session payload (legacy
DRF token plus a JWT pair); see ``portal.services.accounts``.  Failures
propagate as ``AuthError`` and are rendered by the API exception handler.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from portal.exceptions import AuthError
from portal.serializers.auth import (
    DemoSessionSerializer,
    GoogleLoginSerializer,
    LoginSerializer,
    PasswordStrengthSerializer,
    PhoneSerializer,
    PhoneVerifySerializer,
    RegisterSerializer,
)
from portal.services import accounts, otp
from portal.services.audit import client_ip, log_action


# ---------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def register_view(request):
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    user = accounts.register_email(
        name=v.get('name', ''),
        email=v.get('email', ''),
        password=v.get('password', ''),
        confirm_password=v.get('confirmPassword', ''),
        role=v.get('role') or 'patient',
    )
    log_action(user=user, action='register', object_type='user', object_id=user.id,
               detail={'role': user.role}, ip=client_ip(request))
    return Response(accounts.session_payload(user), status=201)

# DRF reads throttle_scope from the view class
register_view.cls.throttle_scope = 'register'


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """
    Email/password sign-in.
    Accepts fields:
      - email
      - password
      - otp (required once two-factor authentication is enabled)
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    ip = client_ip(request)
    try:
        user = accounts.login_email(request, email=v.get('email', ''), password=v.get('password', ''), otp=v.get('otp'))
    except AuthError as e:
        # only the outcome is recorded, never the submitted email
        log_action(user=None, action='login', object_type='user', detail={'result': 'fail', 'code': e.code}, ip=ip)
        raise
    log_action(user=user, action='login', object_type='user', object_id=user.id, detail={'result': 'ok'}, ip=ip)
    return Response(accounts.session_payload(user))

login_view.cls.throttle_scope = 'login'


# ---------------------------------------------------------------------
# Phone OTP
# ---------------------------------------------------------------------
def _otp_request(request, *, resend: bool):
    s = PhoneSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    phone = otp.normalize_phone(s.validated_data.get('countryCode', ''), s.validated_data.get('phoneNumber', ''))
    code = otp.request_code(phone, resend=resend)
    return Response({'ok': True, 'phone': phone, 'expiresAt': code.expires_at.isoformat()})


@api_view(['POST'])
@permission_classes([AllowAny])
def phone_request_otp_view(request):
    return _otp_request(request, resend=False)

phone_request_otp_view.cls.throttle_scope = 'otp'


@api_view(['POST'])
@permission_classes([AllowAny])
def phone_resend_otp_view(request):
    return _otp_request(request, resend=True)

phone_resend_otp_view.cls.throttle_scope = 'otp'


@api_view(['POST'])
@permission_classes([AllowAny])
def phone_verify_view(request):
    s = PhoneVerifySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    phone = otp.normalize_phone(v.get('countryCode', ''), v.get('phoneNumber', ''))
    ip = client_ip(request)
    try:
        user = otp.verify_code(phone, v.get('code', ''))
    except AuthError as e:
        log_action(user=None, action='otp_login', object_type='user', detail={'result': 'fail', 'code': e.code}, ip=ip)
        raise
    log_action(user=user, action='otp_login', object_type='user', object_id=user.id, detail={'result': 'ok'}, ip=ip)
    return Response(accounts.session_payload(user))

phone_verify_view.cls.throttle_scope = 'login'


# ---------------------------------------------------------------------
# Google / demo
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def google_login_view(request):
    s = GoogleLoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user, is_new = accounts.login_google(s.validated_data['idToken'])
    log_action(user=user, action='google_login', object_type='user', object_id=user.id,
               detail={'isNew': is_new}, ip=client_ip(request))
    payload = accounts.session_payload(user)
    payload['isNew'] = is_new
    return Response(payload)

google_login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def demo_session_view(request):
    s = DemoSessionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = accounts.demo_user(s.validated_data['role'])
    return Response(accounts.session_payload(user))

demo_session_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def password_strength_view(request):
    s = PasswordStrengthSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    inputs = [v.get('email'), v.get('name')]
    if request.user and request.user.is_authenticated:
        inputs += [request.user.email, request.user.name]
    return Response({'ok': True, **accounts.password_strength(v['password'], user_inputs=inputs)})


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from refresh token."""
    s = TokenRefreshSerializer(data=request.data)
    try:
        s.is_valid(raise_exception=True)
    except TokenError as e:
        raise InvalidToken(e.args[0])
    data = dict(s.validated_data)
    data['jwt_access'] = data.pop('access')
    if 'refresh' in data:
        data['jwt_refresh'] = data.pop('refresh')
    return Response({'ok': True, **data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist current user's refresh tokens (all or a given one)."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError:
            raise AuthError('invalid-token', 'Token is invalid or expired', status_code=400)
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    return Response({'ok': True, 'blacklisted': count})
