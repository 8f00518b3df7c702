"""
Tests for real-time notifications: the event bus, room fan-out and the
WebSocket endpoint.
"""
import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from src.main import app
from src.infrastructure.database import Database
from src.infrastructure.events import EventBus, RoomConnectionManager, user_room


class FakeWebSocket:
    def __init__(self, fail=False, stall=False):
        self.fail = fail
        self.stall = stall
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("connection reset")
        if self.stall:
            await asyncio.sleep(30)
        self.sent.append(message)


class ExplodingPublisher:
    async def emit(self, room, event, payload):
        raise ConnectionError("broker down")


class StalledPublisher:
    async def emit(self, room, event, payload):
        await asyncio.sleep(30)


@pytest.mark.asyncio
async def test_event_bus_without_publisher():
    assert await EventBus().trip_update(1, "created", tripId=1) is False


@pytest.mark.asyncio
async def test_event_bus_swallows_publisher_errors():
    bus = EventBus(ExplodingPublisher())

    assert await bus.itinerary_update(1, "item-created", 7, item={"id": 3}) is False


@pytest.mark.asyncio
async def test_room_fan_out_and_dead_socket_removal():
    manager = RoomConnectionManager()
    healthy, broken, elsewhere = FakeWebSocket(), FakeWebSocket(fail=True), FakeWebSocket()
    await manager.connect(healthy, user_room(1))
    await manager.connect(broken, user_room(1))
    await manager.connect(elsewhere, user_room(2))

    delivered = await EventBus(manager).trip_update(1, "deleted", tripId=9)

    assert delivered is True
    assert healthy.accepted
    assert healthy.sent == [{"event": "trip-update", "data": {"type": "deleted", "tripId": 9}}]
    assert elsewhere.sent == []
    assert manager.connection_count(user_room(1)) == 1
    assert manager.connection_count() == 2

    manager.disconnect(healthy, user_room(1))
    assert manager.connection_count(user_room(1)) == 0
    assert user_room(1) not in manager.rooms


@pytest.mark.asyncio
async def test_event_bus_gives_up_on_stalled_publisher():
    bus = EventBus(StalledPublisher(), timeout=0.05)

    delivered = await asyncio.wait_for(bus.trip_update(1, "updated", tripId=1), timeout=5)

    assert delivered is False


@pytest.mark.asyncio
async def test_stalled_socket_does_not_hold_up_room():
    manager = RoomConnectionManager(send_timeout=0.05)
    healthy, stalled = FakeWebSocket(), FakeWebSocket(stall=True)
    await manager.connect(healthy, user_room(1))
    await manager.connect(stalled, user_room(1))

    delivered = await asyncio.wait_for(EventBus(manager).trip_update(1, "updated", tripId=3), timeout=5)

    assert delivered is True
    assert healthy.sent == [{"event": "trip-update", "data": {"type": "updated", "tripId": 3}}]
    assert manager.connection_count(user_room(1)) == 1


@pytest.mark.asyncio
async def test_trip_write_not_blocked_by_stalled_publisher(client, signup):
    _, headers = await signup()
    app.state.event_bus = EventBus(StalledPublisher(), timeout=0.05)

    response = await asyncio.wait_for(
        client.post("/api/trips", json={"title": "Japan"}, headers=headers), timeout=5
    )

    assert response.status_code == 201


@pytest.fixture
def live_client(tmp_path):
    """A TestClient running the app lifespan, backed by a fresh SQLite database."""
    with TestClient(app) as client:
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'realtime.db'}")
        client.portal.call(database.create_all)
        app.state.database = database
        yield client
        client.portal.call(database.dispose)


def test_websocket_requires_token(live_client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with live_client.websocket_connect("/ws"):
            pass

    assert excinfo.value.code == 1008


def test_websocket_rejects_bad_token(live_client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with live_client.websocket_connect("/ws?token=not-a-jwt"):
            pass

    assert excinfo.value.code == 1008


def test_websocket_receives_own_trip_events(live_client):
    signup = live_client.post(
        "/api/auth/signup",
        json={"full_name": "Ada", "email": "ada@example.com", "password": "hunter22"},
    )
    token = signup.json()["token"]
    headers = {"Authorization": f"Bearer {token}"}

    with live_client.websocket_connect(f"/ws?token={token}") as websocket:
        created = live_client.post("/api/trips", json={"title": "Japan"}, headers=headers)
        message = websocket.receive_json()

    assert created.status_code == 201
    assert message["event"] == "trip-update"
    assert message["data"]["type"] == "created"
    assert message["data"]["trip"]["id"] == created.json()["trip"]["id"]
