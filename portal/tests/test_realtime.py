import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from rest_framework_simplejwt.tokens import RefreshToken

from portal.services.accounts import session_payload
from portal.services.appointments import user_group
from portal.tests.conftest import make_user
from trustrx.asgi import application

# consumers reach the database from worker threads
pytestmark = pytest.mark.django_db(transaction=True)


def run(coro_fn):
    return async_to_sync(coro_fn)()


def test_appointment_socket_requires_token():
    async def scenario():
        comm = WebsocketCommunicator(application, '/ws/appointments/')
        connected, code = await comm.connect()
        return connected, code

    assert run(scenario) == (False, 4001)


def test_appointment_socket_rejects_bad_token():
    async def scenario():
        comm = WebsocketCommunicator(application, '/ws/appointments/?token=nope')
        return await comm.connect()

    assert run(scenario) == (False, 4001)


def test_appointment_socket_streams_own_updates():
    user = make_user('ws@example.com')
    token = session_payload(user)['token']

    async def scenario():
        comm = WebsocketCommunicator(application, f'/ws/appointments/?token={token}')
        connected, _ = await comm.connect()
        assert connected
        welcome = await comm.receive_json_from()

        await comm.send_json_to({'type': 'ping'})
        pong = await comm.receive_json_from()

        layer = get_channel_layer()
        await layer.group_send(user_group(user.id), {'type': 'appointment.update', 'appointment': {'id': 7}})
        update = await comm.receive_json_from()

        await layer.group_send(user_group(user.id + 1), {'type': 'appointment.update', 'appointment': {'id': 8}})
        quiet = await comm.receive_nothing()
        await comm.disconnect()
        return welcome, pong, update, quiet

    welcome, pong, update, quiet = run(scenario)
    assert welcome == {'type': 'welcome', 'message': 'connected'}
    assert pong == {'type': 'pong'}
    assert update == {'type': 'appointment.update', 'appointment': {'id': 7}}
    assert quiet is True


def test_appointment_socket_accepts_jwt():
    user = make_user('jwt@example.com')
    access = str(RefreshToken.for_user(user).access_token)

    async def scenario():
        comm = WebsocketCommunicator(application, f'/ws/appointments/?token={access}')
        connected, _ = await comm.connect()
        await comm.disconnect()
        return connected

    assert run(scenario) is True


def test_directory_socket_broadcasts_refresh():
    async def scenario():
        comm = WebsocketCommunicator(application, '/ws/updates/')
        connected, _ = await comm.connect()
        assert connected
        await comm.receive_json_from()
        event = {'type': 'broadcast.refresh', 'version': 1, 'ts': 'now', 'keys': ['doctors']}
        await get_channel_layer().group_send('updates', event)
        msg = await comm.receive_json_from()
        await comm.disconnect()
        return msg

    assert run(scenario)['keys'] == ['doctors']
