import logging

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class SmsError(RuntimeError):
    pass


def mask_phone(phone: str) -> str:
    """``+15551234567`` becomes ``+1******4567``."""
    if len(phone) <= 6:
        return '*' * len(phone)
    return phone[:2] + '*' * (len(phone) - 6) + phone[-4:]


def send_sms(phone: str, body: str) -> None:
    """Deliver ``body`` through the configured HTTP gateway.

    Without ``SMS_GATEWAY_URL`` nothing is sent: the masked recipient is
    logged, the message body (and so any code) never is.
    """
    if not settings.SMS_GATEWAY_URL:
        logger.info('SMS gateway not configured; message for %s not sent', mask_phone(phone))
        return
    headers = {'Content-Type': 'application/json'}
    if settings.SMS_GATEWAY_TOKEN:
        headers['Authorization'] = f'Bearer {settings.SMS_GATEWAY_TOKEN}'
    try:
        r = requests.post(
            settings.SMS_GATEWAY_URL,
            json={'to': phone, 'body': body},
            headers=headers,
            timeout=settings.SMS_TIMEOUT,
        )
        r.raise_for_status()
    except requests.RequestException as e:
        raise SmsError(str(e)) from e
