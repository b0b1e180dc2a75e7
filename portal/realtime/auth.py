"""
WebSocket authentication.

Browsers cannot set headers on a WebSocket handshake, so the token is
taken from the ``token`` query parameter.  Both the legacy DRF token and
a JWT access token are accepted; the session-based user from
``AuthMiddlewareStack`` is the fallback.
"""
from urllib.parse import parse_qs

from channels.auth import AuthMiddlewareStack
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework.authtoken.models import Token
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError


@database_sync_to_async
def user_for_token(raw: str):
    token = Token.objects.select_related('user').filter(key=raw).first()
    if token is not None:
        return token.user if token.user.is_active else AnonymousUser()
    jwt_auth = JWTAuthentication()
    try:
        validated = jwt_auth.get_validated_token(raw)
        return jwt_auth.get_user(validated)
    except (InvalidToken, TokenError, AuthenticationFailed):
        return AnonymousUser()


class TokenAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        params = parse_qs(scope.get('query_string', b'').decode())
        raw = (params.get('token') or [''])[0]
        if raw:
            scope['user'] = await user_for_token(raw)
        return await super().__call__(scope, receive, send)


def TokenAuthMiddlewareStack(inner):
    return AuthMiddlewareStack(TokenAuthMiddleware(inner))
