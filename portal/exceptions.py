"""
Error types and the unified API exception handler.

Services raise :class:`PortalError` subclasses carrying a stable
``code``; the handler renders every failure as
``{"ok": false, "error": {"code": ..., "message": ...}}``.
"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = 'An unexpected error occurred. Please try again.'

# Provider-style error codes mapped to the strings shown to users.
AUTH_ERROR_MESSAGES = {
    'missing-fields': 'Please fill in all fields',
    'password-mismatch': 'Passwords do not match',
    'weak-password': 'Password must be at least 6 characters',
    'auth/api-key-not-valid': 'Authentication service is not properly configured. Please contact support.',
    'auth/email-already-in-use': 'This email is already registered. Please sign in instead.',
    'auth/invalid-email': 'Please enter a valid email address.',
    'invalid-credentials': 'Invalid email or password. Please try again.',
    'email-not-confirmed': 'Please check your email and confirm your account before signing in.',
    'invalid-phone': 'Please enter a valid phone number.',
    'phone-not-registered': 'This phone number is not registered. Please sign up first.',
    'otp-send-failed': 'Error sending verification code. Please try again.',
    'otp-resend-failed': 'Error resending code. Please try again.',
    'otp-rate-limited': 'Please wait before requesting another code.',
    'missing-code': 'Please enter the verification code',
    'invalid-otp': 'Invalid verification code. Please try again.',
    'otp-expired': 'Verification code has expired. Please request a new one.',
    'oauth-failed': 'Error signing in with Google. Please try again.',
    'oauth-disabled': 'Google sign-in is not enabled on this server.',
    'demo-disabled': 'Demo sessions are not available on this server.',
    '2fa-required': 'Please enter your two-factor authentication code.',
    'invalid-2fa': 'Invalid two-factor authentication code.',
}


def message_for(code: str) -> str:
    return AUTH_ERROR_MESSAGES.get(code, GENERIC_MESSAGE)


class PortalError(APIException):
    """Base error with a stable machine-readable code."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'error'
    default_detail = GENERIC_MESSAGE

    def __init__(self, code: str | None = None, message: str | None = None, status_code: int | None = None):
        self.code = code or self.default_code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(detail=message or message_for(self.code), code=self.code)


class AuthError(PortalError):
    default_code = 'auth-error'


class NotFoundError(PortalError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'not-found'
    default_detail = 'Not found.'


class ForbiddenError(PortalError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = 'forbidden'
    default_detail = 'You do not have permission to perform this action.'


class FeatureDisabled(PortalError):
    status_code = status.HTTP_501_NOT_IMPLEMENTED
    default_code = 'disabled'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', context.get('view'))
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': GENERIC_MESSAGE}}, status=500)
    if isinstance(exc, PortalError):
        return Response({'ok': False, 'error': {'code': exc.code, 'message': str(exc.detail)}}, status=resp.status_code)
    # normalize response
    if isinstance(exc, ValidationError):
        code = 'validation_error'
        detail = resp.data
    else:
        code = getattr(exc, 'default_code', 'api_error')
        detail = resp.data.get('detail', resp.data) if isinstance(resp.data, dict) else str(resp.data)
    return Response({'ok': False, 'error': {'code': code, 'message': detail}}, status=resp.status_code, headers=_passthrough_headers(resp))


def _passthrough_headers(resp):
    return {k: v for k, v in resp.items() if k in ('Retry-After', 'WWW-Authenticate')}
