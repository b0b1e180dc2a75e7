"""
Sign-in and account management.

Every sign-in path (email, phone OTP, Google, demo) ends in
:func:`session_payload`, which issues the legacy DRF token and a JWT
pair for the user.  Failures raise :class:`~portal.exceptions.AuthError`
with one of the codes in ``AUTH_ERROR_MESSAGES``.
"""
from __future__ import annotations

import logging
import re
import secrets
from typing import Optional, Tuple

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from rest_framework.authtoken.models import Token
from rest_framework_simplejwt.tokens import RefreshToken
from zxcvbn import zxcvbn

from portal.exceptions import AuthError, FeatureDisabled
from portal.models import DoctorProfile
from portal.services import google, twofa

logger = logging.getLogger(__name__)

User = get_user_model()

MIN_PASSWORD_LENGTH = 6
SELF_SERVICE_ROLES = (User.ROLE_PATIENT, User.ROLE_DOCTOR)


def user_profile(user) -> dict:
    return {
        'id': user.id,
        'email': user.email,
        'displayName': user.name,
        'role': user.role,
        'phone': user.phone,
        'photoURL': user.photo_url or None,
        'subscriptionTier': user.subscription_tier,
        'createdAt': user.created_at.isoformat() if user.created_at else None,
        'isDemo': user.is_demo,
        'twoFactorEnabled': user.totp_enabled,
    }


def session_payload(user) -> dict:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': user_profile(user),
    }


def _unique_username(prefix: str) -> str:
    return f"{prefix}_{secrets.token_hex(6)}"


# ---------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------
@transaction.atomic
def register_email(*, name: str, email: str, password: str, confirm_password: str, role: str):
    name = (name or '').strip()
    email = (email or '').strip().lower()
    if not (name and email and password and confirm_password):
        raise AuthError('missing-fields')
    if password != confirm_password:
        raise AuthError('password-mismatch')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError('weak-password')
    if role not in SELF_SERVICE_ROLES:
        raise AuthError('invalid-role', 'Please choose patient or doctor.')
    try:
        validate_email(email)
    except ValidationError:
        raise AuthError('auth/invalid-email')
    if User.objects.filter(email__iexact=email).exists():
        raise AuthError('auth/email-already-in-use', status_code=409)

    try:
        user = User.objects.create_user(
            username=email, email=email, password=password,
            display_name=name, role=role, auth_provider='email', subscription_tier='free',
        )
    except IntegrityError:
        raise AuthError('auth/email-already-in-use', status_code=409)
    if role == User.ROLE_DOCTOR:
        DoctorProfile.objects.create(user=user, name=name)
    logger.info('registered %s account %s', role, user.id)
    return user


def login_email(request, *, email: str, password: str, otp: Optional[str] = None):
    email = (email or '').strip().lower()
    if not email or not password:
        raise AuthError('missing-fields', 'Please enter both email and password')

    candidate = User.objects.filter(email__iexact=email).first()
    if candidate is not None and not candidate.is_active and candidate.check_password(password):
        raise AuthError('email-not-confirmed', status_code=403)

    user = authenticate(request, username=candidate.username if candidate else email, password=password)
    if not user:
        logger.info('failed email login')
        raise AuthError('invalid-credentials', status_code=401)

    if user.totp_enabled:
        if not otp:
            raise AuthError('2fa-required', status_code=401)
        if not twofa.verify_token(user.totp_secret, otp):
            raise AuthError('invalid-2fa', status_code=401)
    return user


# ---------------------------------------------------------------------
# Google
# ---------------------------------------------------------------------
@transaction.atomic
def login_google(id_token: str) -> Tuple[object, bool]:
    if not settings.GOOGLE_OAUTH_ENABLE:
        raise FeatureDisabled('oauth-disabled')
    try:
        identity = google.verify_id_token(id_token)
    except google.GoogleAuthError as e:
        logger.warning('google sign-in rejected: %s', e)
        raise AuthError('oauth-failed', status_code=401)

    user = User.objects.filter(email__iexact=identity.email).first()
    if user is not None:
        return user, False
    user = User.objects.create_user(
        username=_unique_username('google'),
        email=identity.email.lower(),
        password=None,
        display_name=identity.name or 'User',
        photo_url=identity.picture or '',
        role=User.ROLE_PATIENT,
        subscription_tier='free',
        auth_provider='google',
    )
    return user, True


# ---------------------------------------------------------------------
# Demo
# ---------------------------------------------------------------------
DEMO_ACCOUNTS = {
    User.ROLE_PATIENT: ('demo-patient@trustrx.local', 'Demo Patient'),
    User.ROLE_DOCTOR: ('demo-doctor@trustrx.local', 'Demo Doctor'),
}


def demo_user(role: str):
    if not settings.DEMO_MODE:
        raise FeatureDisabled('demo-disabled')
    if role not in DEMO_ACCOUNTS:
        raise AuthError('invalid-role', 'Please choose patient or doctor.')
    return ensure_demo_account(role)


@transaction.atomic
def ensure_demo_account(role: str):
    """Shared demo account for ``role``, created on first use."""
    email, name = DEMO_ACCOUNTS[role]
    user, created = User.objects.get_or_create(
        username=email,
        defaults={
            'email': email, 'display_name': name, 'role': role,
            'auth_provider': 'demo', 'is_demo': True,
        },
    )
    if created:
        user.set_unusable_password()
        user.save(update_fields=['password'])
        if role == User.ROLE_DOCTOR:
            DoctorProfile.objects.get_or_create(user=user, defaults={'name': name, 'is_verified': True})
    return user


# ---------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------
PHONE_RE = re.compile(r'^\+\d{6,15}$')


def update_profile(user, *, display_name=None, phone=None, photo_url=None):
    fields = []
    if display_name is not None:
        user.display_name = display_name.strip()
        fields.append('display_name')
    if phone is not None:
        phone = phone.strip() or None
        if phone and not PHONE_RE.match(phone):
            raise AuthError('invalid-phone')
        if phone and User.objects.exclude(pk=user.pk).filter(phone=phone).exists():
            raise AuthError('phone-in-use', 'This phone number is already linked to another account.', status_code=409)
        user.phone = phone
        fields.append('phone')
    if photo_url is not None:
        user.photo_url = photo_url
        fields.append('photo_url')
    if fields:
        user.save(update_fields=fields)
    return user


@transaction.atomic
def update_role(user, role: str):
    if role not in SELF_SERVICE_ROLES:
        raise AuthError('invalid-role', 'Please choose patient or doctor.')
    if user.role == User.ROLE_ADMIN:
        raise AuthError('invalid-role', 'Administrators cannot change their own role.', status_code=403)
    user.role = role
    user.save(update_fields=['role'])
    if role == User.ROLE_DOCTOR:
        DoctorProfile.objects.get_or_create(user=user, defaults={'name': user.name})
    return user


# ---------------------------------------------------------------------
# Password strength
# ---------------------------------------------------------------------
def password_strength(password: str, user_inputs=()) -> dict:
    """Score 0-4 with feedback, in the shape the sign-up form expects.

    ``user_inputs`` (email, name) count as guessable words.  Django's
    validators only contribute a warning when zxcvbn has none.
    """
    inputs = [str(i) for i in user_inputs if i]
    # zxcvbn refuses passwords past 72 characters
    result = zxcvbn(password[:72], user_inputs=inputs) if password else {
        'score': 0, 'feedback': {'warning': '', 'suggestions': []}}
    feedback = result['feedback']
    warning = feedback.get('warning') or ''
    if not warning:
        try:
            validate_password(password)
        except ValidationError as e:
            warning = e.messages[0]
    return {
        'score': int(result['score']),
        'feedback': {'warning': warning, 'suggestions': list(feedback.get('suggestions') or [])},
    }


# ---------------------------------------------------------------------
# Two-factor authentication (TOTP)
# ---------------------------------------------------------------------
def setup_2fa(user) -> dict:
    if user.totp_enabled:
        raise AuthError('2fa-already-enabled', 'Two-factor authentication is already enabled.', status_code=409)
    user.totp_secret = twofa.new_secret()
    user.save(update_fields=['totp_secret'])
    uri = twofa.provisioning_uri(user.totp_secret, user.email or user.phone or user.username)
    return {'otpauthUrl': uri, 'qrCode': twofa.qr_data_url(uri), 'secret': user.totp_secret}


def enable_2fa(user, token: str):
    if not user.totp_secret:
        raise AuthError('2fa-not-setup', 'Start two-factor setup first.')
    if not twofa.verify_token(user.totp_secret, token):
        raise AuthError('invalid-2fa')
    user.totp_enabled = True
    user.save(update_fields=['totp_enabled'])
    return user


def disable_2fa(user, token: str):
    if not user.totp_enabled:
        return user
    if not twofa.verify_token(user.totp_secret, token):
        raise AuthError('invalid-2fa')
    user.totp_enabled = False
    user.totp_secret = ''
    user.save(update_fields=['totp_enabled', 'totp_secret'])
    return user
