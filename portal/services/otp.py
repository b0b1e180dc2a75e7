"""
Phone number sign-in with one-time SMS codes.
"""
from __future__ import annotations

import logging
import re
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.hashers import check_password, make_password
from django.db import transaction
from django.utils import timezone

from portal.exceptions import AuthError
from portal.models import PhoneOTP
from portal.services.sms import SmsError, mask_phone, send_sms

logger = logging.getLogger(__name__)

User = get_user_model()

CODE_LENGTH = 6


def normalize_phone(country_code: str, phone_number: str) -> str:
    """``+1`` and ``(555) 123-4567`` become ``+15551234567``."""
    digits = re.sub(r'\D', '', phone_number or '')
    if not digits:
        raise AuthError('invalid-phone', 'Please enter a valid phone number')
    cc = re.sub(r'\D', '', country_code or '')
    if not cc or len(cc) + len(digits) < 7 or len(cc) + len(digits) > 15:
        raise AuthError('invalid-phone')
    return f"+{cc}{digits}"


def _new_code() -> str:
    return ''.join(secrets.choice('0123456789') for _ in range(CODE_LENGTH))


@transaction.atomic
def request_code(phone: str, *, resend: bool = False) -> PhoneOTP:
    if not User.objects.filter(phone=phone, is_active=True).exists():
        raise AuthError('phone-not-registered', status_code=404)

    now = timezone.now()
    last = PhoneOTP.objects.filter(phone=phone).order_by('-created_at').first()
    if last and (now - last.created_at).total_seconds() < settings.OTP_RESEND_SECONDS:
        raise AuthError('otp-rate-limited', status_code=429)

    # only the newest code is ever valid
    PhoneOTP.objects.filter(phone=phone, consumed_at__isnull=True).update(consumed_at=now)
    code = _new_code()
    otp = PhoneOTP.objects.create(
        phone=phone,
        code_hash=make_password(code),
        expires_at=now + timedelta(seconds=settings.OTP_TTL_SECONDS),
    )
    try:
        send_sms(phone, f"Your TrustRx verification code is {code}")
    except SmsError as e:
        logger.error('OTP delivery to %s failed: %s', mask_phone(phone), e)
        raise AuthError('otp-resend-failed' if resend else 'otp-send-failed', status_code=502)
    logger.info('OTP sent to %s', mask_phone(phone))
    return otp


def verify_code(phone: str, code: str):
    code = (code or '').strip()
    if not code:
        raise AuthError('missing-code')

    failure = None
    with transaction.atomic():
        otp = (PhoneOTP.objects.select_for_update()
               .filter(phone=phone, consumed_at__isnull=True)
               .order_by('-created_at').first())
        if otp is None:
            failure = 'invalid-otp'
        elif otp.expires_at <= timezone.now():
            failure = 'otp-expired'
        elif not check_password(code, otp.code_hash):
            otp.attempts += 1
            if otp.attempts >= settings.OTP_MAX_ATTEMPTS:
                otp.consumed_at = timezone.now()
            otp.save(update_fields=['attempts', 'consumed_at'])
            failure = 'invalid-otp'
        else:
            otp.consumed_at = timezone.now()
            otp.save(update_fields=['consumed_at'])
    if failure:
        raise AuthError(failure)

    user = User.objects.filter(phone=phone, is_active=True).first()
    if user is None:
        raise AuthError('phone-not-registered', status_code=404)
    return user
