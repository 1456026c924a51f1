import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import make_token
from floneo.core.websockets import ConnectionManager, app_channel, notify, notify_all, state_channel


class FakeSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(message)


def test_channel_names():
    assert app_channel(7) == "app:7"
    assert state_channel(7) == "canvas-7"


def test_broadcast_reaches_only_channel_subscribers():
    manager = ConnectionManager()
    editor, viewer, outsider = FakeSocket(), FakeSocket(), FakeSocket()

    async def scenario():
        await manager.connect(editor, "app:1", "canvas-1")
        await manager.connect(viewer, "app:1")
        await manager.connect(outsider, "app:2")
        return await manager.broadcast({"event": "element:created"}, "app:1")

    assert asyncio.run(scenario()) == 2
    assert editor.accepted
    assert editor.sent == viewer.sent == [{"event": "element:created"}]
    assert outsider.sent == []


def test_broadcast_drops_dead_sockets():
    manager = ConnectionManager()
    alive, dead = FakeSocket(), FakeSocket(fail=True)

    async def scenario():
        await manager.connect(alive, "app:1")
        await manager.connect(dead, "app:1", "canvas-1")
        return await manager.broadcast({"event": "ping"}, "app:1")

    assert asyncio.run(scenario()) == 1
    assert manager.channel_size("app:1") == 1
    assert manager.channel_size("canvas-1") == 0


def test_broadcast_all_sends_once_per_socket():
    manager = ConnectionManager()
    socket = FakeSocket()

    async def scenario():
        await manager.connect(socket, "app:1", "canvas-1")
        return await manager.broadcast_all({"event": "template:accessed"})

    assert asyncio.run(scenario()) == 1
    assert socket.sent == [{"event": "template:accessed"}]


def test_disconnect_removes_empty_channels():
    manager = ConnectionManager()
    socket = FakeSocket()
    asyncio.run(manager.connect(socket, "app:1", "canvas-1"))

    manager.disconnect(socket, "app:1")
    assert "app:1" not in manager.active_connections
    assert manager.channel_size("canvas-1") == 1

    manager.disconnect(socket)
    assert manager.active_connections == {}


def test_publish_without_loop_is_skipped():
    manager = ConnectionManager()
    assert manager.publish("app:1", "element:created", {"app_id": 1}) is False
    assert manager.publish_all("template:accessed", {}) is False


def test_notify_tolerates_missing_broadcaster():
    assert notify(None, "app:1", "element:created", {}) is False
    assert notify_all(None, "template:accessed", {}) is False


@pytest.fixture()
def ws_client(api):
    """Client backed by the application's real ConnectionManager."""
    return TestClient(api)


def test_websocket_rejects_bad_token(ws_client, owned_app):
    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect(f"/ws/apps/{owned_app.id}?token=garbage"):
            pass
    assert exc.value.code == 4001


def test_websocket_rejects_foreign_app(ws_client, owned_app, other_user):
    token = make_token(other_user.id)
    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect(f"/ws/apps/{owned_app.id}?token={token}"):
            pass
    assert exc.value.code == 4004


def test_websocket_connects_and_answers_ping(ws_client, user, owned_app):
    token = make_token(user.id)
    with ws_client.websocket_connect(f"/ws/apps/{owned_app.id}?token={token}") as websocket:
        hello = websocket.receive_json()
        assert hello["event"] == "connected"
        assert hello["data"]["channels"] == [f"app:{owned_app.id}", f"canvas-{owned_app.id}"]

        websocket.send_text("ping")
        assert websocket.receive_text() == "pong"


def test_websocket_receives_mutation_events(ws_client, user, owned_app, auth_headers):
    token = make_token(user.id)
    with ws_client.websocket_connect(f"/ws/apps/{owned_app.id}?token={token}") as websocket:
        websocket.receive_json()

        response = ws_client.put(f"/api/v1/canvas/{owned_app.id}", json={"name": "Live"}, headers=auth_headers)
        assert response.status_code == 200
        event = websocket.receive_json()
        assert event["event"] == "canvas:updated"
        assert event["channel"] == f"app:{owned_app.id}"
        assert event["data"]["canvas"]["name"] == "Live"

        ws_client.patch(
            f"/api/v1/canvas/{owned_app.id}/state",
            json={"canvas_state": {"elements": []}},
            headers=auth_headers,
        )
        event = websocket.receive_json()
        assert event["event"] == "canvasStateSaved"
        assert event["channel"] == f"canvas-{owned_app.id}"


def test_template_access_reaches_every_socket(ws_client, user, owned_app, auth_headers):
    token = make_token(user.id)
    with ws_client.websocket_connect(f"/ws/apps/{owned_app.id}?token={token}") as websocket:
        websocket.receive_json()

        ws_client.get("/api/v1/templates", headers=auth_headers)
        event = websocket.receive_json()
        assert event["event"] == "template:accessed"
        assert event["data"]["template_count"] == 0


def test_websocket_releases_database_session_while_connected(api, engine, user, owned_app):
    from sqlmodel import Session

    from floneo.db.database import get_session

    opened = []

    def tracking_session():
        with Session(engine) as session:
            opened.append(session)
            yield session

    api.dependency_overrides[get_session] = tracking_session
    client = TestClient(api)

    token = make_token(user.id)
    with client.websocket_connect(f"/ws/apps/{owned_app.id}?token={token}") as websocket:
        websocket.receive_json()
        websocket.send_text("ping")
        assert websocket.receive_text() == "pong"

        assert len(opened) == 1
        assert not opened[0].in_transaction()
