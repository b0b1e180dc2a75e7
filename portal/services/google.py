import requests
from dataclasses import dataclass
from typing import Optional
from django.conf import settings

TOKENINFO_URL = 'https://oauth2.googleapis.com/tokeninfo'


class GoogleAuthError(Exception):
    pass


@dataclass
class GoogleIdentity:
    sub: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


def verify_id_token(id_token: str) -> GoogleIdentity:
    if not settings.GOOGLE_CLIENT_ID:
        raise GoogleAuthError('GOOGLE_CLIENT_ID is not configured')
    if not id_token:
        raise GoogleAuthError('missing id_token')
    try:
        r = requests.get(TOKENINFO_URL, params={'id_token': id_token}, timeout=settings.GOOGLE_TIMEOUT)
    except requests.RequestException as e:
        raise GoogleAuthError(f'tokeninfo unreachable: {e}') from e
    if r.status_code != 200:
        raise GoogleAuthError(f'tokeninfo rejected token ({r.status_code})')
    try:
        data = r.json()
    except ValueError as e:
        raise GoogleAuthError('tokeninfo returned a non-JSON body') from e
    if not isinstance(data, dict):
        raise GoogleAuthError('tokeninfo returned an unexpected payload')
    if data.get('aud') != settings.GOOGLE_CLIENT_ID:
        raise GoogleAuthError('token audience mismatch')
    if str(data.get('email_verified', '')).lower() != 'true':
        raise GoogleAuthError('email not verified')
    email = data.get('email')
    sub = data.get('sub')
    if not email or not sub:
        raise GoogleAuthError('Invalid response from Google: missing email/sub')
    return GoogleIdentity(sub=sub, email=email, name=data.get('name'), picture=data.get('picture'))
