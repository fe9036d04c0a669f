import asyncio

import pytest
from conftest import make_token
from starlette.websockets import WebSocketDisconnect, WebSocketState

from app.services.notification_service import ConnectionRegistry


class StubSocket:
    def __init__(self, state=WebSocketState.CONNECTED):
        self.application_state = state
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)


def test_socket_answers_ping(client, fan):
    with client.websocket_connect(f"/ws?token={make_token(fan.id, fan.role)}") as websocket:
        websocket.send_text("ping")
        assert websocket.receive_json() == {"type": "pong"}


def test_socket_rejects_bad_token(client, db):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws?token=garbage") as websocket:
            websocket.receive_text()
    assert exc_info.value.code == 1008


def test_registry_pushes_to_live_connections():
    connections = ConnectionRegistry()
    socket = StubSocket()
    connections.register("user-1", socket)

    assert asyncio.run(connections.push("user-1", {"type": "notification", "data": {}})) is True
    assert socket.sent == [{"type": "notification", "data": {}}]
    assert asyncio.run(connections.push("user-2", {"type": "notification", "data": {}})) is False


def test_registry_drops_closed_connections():
    connections = ConnectionRegistry()
    closed = StubSocket(WebSocketState.DISCONNECTED)
    connections.register("user-1", closed)

    assert asyncio.run(connections.push("user-1", {"type": "message", "data": {}})) is False
    assert closed.sent == []

    live = StubSocket()
    connections.register("user-1", live)
    connections.unregister("user-1", closed)
    assert asyncio.run(connections.push("user-1", {"type": "message", "data": {}})) is True


def test_newer_connection_replaces_older():
    connections = ConnectionRegistry()
    old, new = StubSocket(), StubSocket()
    connections.register("user-1", old)
    connections.register("user-1", new)

    connections.unregister("user-1", old)
    assert asyncio.run(connections.push("user-1", {"type": "message", "data": {}})) is True
    assert (old.sent, len(new.sent)) == ([], 1)

    connections.unregister("user-1", new)
    assert asyncio.run(connections.push("user-1", {"type": "message", "data": {}})) is False
