"""
ASGI entry point: Django for HTTP, Channels for the WebSocket streams.

Sockets authenticate with ``?token=`` (DRF token or JWT access token),
see ``portal.realtime.auth``.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "trustrx.settings")

# models must be importable before the consumers and auth middleware load
import django  # noqa: E402
django.setup()  # noqa: E402

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from django.core.asgi import get_asgi_application  # noqa: E402
from django.urls import path  # noqa: E402

from portal.realtime.auth import TokenAuthMiddlewareStack  # noqa: E402
from portal.realtime.consumers import AppointmentUpdatesConsumer, DirectoryUpdatesConsumer  # noqa: E402

websocket_urlpatterns = [
    path("ws/updates/", DirectoryUpdatesConsumer.as_asgi()),
    path("ws/appointments/", AppointmentUpdatesConsumer.as_asgi()),
]

application = ProtocolTypeRouter({
    "http": get_asgi_application(),
    "websocket": TokenAuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
})
