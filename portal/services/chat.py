import logging
from typing import Tuple

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

APOLOGY = "I apologize, but I'm having trouble processing your request right now. Please try again."

SYSTEM_PROMPT = (
    "You are the TrustRx support assistant. TrustRx is a patient portal for storing medical records "
    "with blockchain verification, finding doctors and requesting appointments. Answer briefly and "
    "never give medical advice."
)

# checked in order; first group with a matching keyword wins
FALLBACK_RULES = [
    (('password', 'login'),
     'To reset your password, please go to the login page and click "Forgot password?". '
     "You'll receive an email with reset instructions."),
    (('upload', 'record'),
     'To upload medical records, go to your Medical Records page and click "Upload Record". '
     'We support PDF, JPG, and PNG files up to 10MB.'),
    (('doctor', 'appointment'),
     'You can find doctors using our Doctor Search feature. Once you find a doctor, '
     'you can request an appointment directly through their profile.'),
    (('subscription', 'plan'),
     'We offer Free, Basic, Premium, and Unlimited plans. '
     'You can upgrade your subscription in the Subscription section of your dashboard.'),
    (('blockchain', 'verification'),
     'All medical records are automatically verified using blockchain technology '
     'to ensure authenticity and security.'),
    (('storage', 'space'),
     'Your current storage usage is shown in your dashboard. Free accounts get 2GB of secure storage. '
     'Upgrade your plan for more storage.'),
    (('security', 'safe'),
     'TrustRx uses enterprise-grade encryption and blockchain verification '
     'to keep your medical records secure and private.'),
    (('hello', 'hi', 'help'),
     "Hello! I'm here to help you with TrustRx. You can ask me about uploading records, finding doctors, "
     "managing appointments, or any other questions about our platform."),
]

DEFAULT_REPLY = (
    "Thank you for contacting TrustRx support! I'm here to help you with medical records, doctor searches, "
    "appointments, and account management. What can I assist you with today?"
)


class ChatProviderError(Exception):
    pass


def fallback_reply(message: str) -> str:
    lower = (message or '').lower()
    for keywords, reply in FALLBACK_RULES:
        if any(k in lower for k in keywords):
            return reply
    return DEFAULT_REPLY


def _huggingface(message: str) -> str:
    prompt = f"Customer: {message}\nTrustRx Support:"
    try:
        r = requests.post(
            settings.HUGGINGFACE_MODEL_URL,
            headers={'Authorization': f"Bearer {settings.HUGGINGFACE_API_KEY}"},
            json={'inputs': prompt, 'parameters': {'max_length': 150, 'temperature': 0.7, 'do_sample': True}},
            timeout=settings.CHAT_TIMEOUT,
        )
        r.raise_for_status()
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        raise ChatProviderError(f'huggingface: {e}') from e
    text = ''
    if isinstance(data, list) and data and isinstance(data[0], dict):
        text = data[0].get('generated_text') or ''
    text = text.replace(prompt, '').strip()
    return text or APOLOGY


def _openai(message: str) -> str:
    try:
        r = requests.post(
            settings.OPENAI_URL,
            headers={'Authorization': f"Bearer {settings.OPENAI_API_KEY}"},
            json={
                'model': settings.OPENAI_MODEL,
                'messages': [
                    {'role': 'system', 'content': SYSTEM_PROMPT},
                    {'role': 'user', 'content': message},
                ],
                'max_tokens': 300,
                'temperature': 0.7,
            },
            timeout=settings.CHAT_TIMEOUT,
        )
        r.raise_for_status()
        data = r.json()
        text = data['choices'][0]['message']['content']
    except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
        raise ChatProviderError(f'openai: {e}') from e
    return (text or '').strip() or APOLOGY


_PROVIDERS = {
    'huggingface': (_huggingface, 'HUGGINGFACE_API_KEY'),
    'openai': (_openai, 'OPENAI_API_KEY'),
}


def reply(message: str) -> Tuple[str, str]:
    """Return (response text, source).  Never raises for provider failures."""
    provider = _PROVIDERS.get(settings.CHAT_PROVIDER)
    if provider is None:
        return fallback_reply(message), 'fallback'
    call, key_setting = provider
    if not getattr(settings, key_setting, ''):
        return fallback_reply(message), 'fallback'
    try:
        return call(message), settings.CHAT_PROVIDER
    except ChatProviderError as e:
        logger.warning('chat provider failed, using fallback: %s', e)
        return fallback_reply(message), 'fallback'
