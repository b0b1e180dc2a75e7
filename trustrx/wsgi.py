"""WSGI entry point.  HTTP only; WebSocket routes need the ASGI app in ``trustrx.asgi``."""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'trustrx.settings')

application = get_wsgi_application()
