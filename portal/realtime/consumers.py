import json

from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from portal.services.appointments import user_group

DIRECTORY_GROUP = "updates"


class _GroupConsumer(AsyncWebsocketConsumer):
    """Joins one channel-layer group on connect and greets the client."""

    group_name = None

    def resolve_group(self):
        return self.group_name

    async def connect(self):
        group = self.resolve_group()
        if group is None:
            await self.close(code=4001)
            return
        self.group_name = group
        await self.channel_layer.group_add(group, self.channel_name)
        await self.accept()
        await self.send_json_text({"type": "welcome", "message": "connected"})

    async def disconnect(self, close_code):
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def send_json_text(self, payload):
        await self.send(text_data=json.dumps(payload))


class DirectoryUpdatesConsumer(_GroupConsumer):
    """Anyone may listen for directory cache refreshes."""

    group_name = DIRECTORY_GROUP

    async def broadcast_refresh(self, event):
        await self.send_json_text(event)


class AppointmentUpdatesConsumer(_GroupConsumer):
    """Pushes ``appointment.update`` events for the connected user's appointments."""

    def resolve_group(self):
        user = self.scope.get("user") or AnonymousUser()
        return user_group(user.id) if user.is_authenticated else None

    async def receive(self, text_data=None, bytes_data=None):
        # read-only stream; only pings are answered
        try:
            msg = json.loads(text_data or "")
        except ValueError:
            return
        if isinstance(msg, dict) and msg.get("type") == "ping":
            await self.send_json_text({"type": "pong"})

    async def appointment_update(self, event):
        await self.send_json_text({"type": "appointment.update", "appointment": event["appointment"]})
