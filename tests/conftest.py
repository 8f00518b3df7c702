"""
Shared fixtures: a fresh SQLite database per test, an HTTP client bound to the
app, a recording event publisher and helpers for creating users.
"""
import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update

from src.main import app
from src.auth.models import UserModel
from src.domain.models import UserRole
from src.infrastructure.database import Database
from src.infrastructure.events import EventBus


class RecordingPublisher:
    """Publisher that keeps every emitted event."""

    def __init__(self):
        self.events = []

    async def emit(self, room, event, payload):
        self.events.append((room, event, payload))

    def of_type(self, event):
        return [(room, payload) for room, name, payload in self.events if name == event]


@pytest.fixture
async def database(tmp_path):
    """Provide a migrated SQLite database for one test."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'globetrotter.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
async def client(database, publisher):
    app.state.database = database
    app.state.event_bus = EventBus(publisher)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def signup(client):
    """Create an account and return ``(user, auth headers)``."""
    async def _signup(email="ada@example.com", full_name="Ada", password="hunter22"):
        response = await client.post(
            "/api/auth/signup",
            json={"full_name": full_name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        data = response.json()
        return data["user"], {"Authorization": f"Bearer {data['token']}"}

    return _signup


@pytest.fixture
def make_admin(database):
    async def _make_admin(user_id):
        async with database.session() as session:
            await session.execute(
                update(UserModel).where(UserModel.id == user_id).values(role=UserRole.ADMIN)
            )
            await session.commit()

    return _make_admin


@pytest.fixture
async def admin_headers(signup, make_admin):
    user, headers = await signup(email="root@example.com", full_name="Root")
    await make_admin(user["id"])
    return headers


@pytest.fixture
def create_trip(client):
    async def _create_trip(headers, **fields):
        body = {"title": "Japan", "start_date": "2025-04-01", "end_date": "2025-04-10"}
        body.update(fields)
        response = await client.post("/api/trips", json=body, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["trip"]

    return _create_trip


@pytest.fixture
def create_city(client, admin_headers):
    async def _create_city(name="Kyoto", country="Japan", **fields):
        response = await client.post(
            "/api/admin/cities",
            json={"name": name, "country": country, **fields},
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["city"]

    return _create_city


@pytest.fixture
def create_activity(client, admin_headers):
    async def _create_activity(city_id, name="Fushimi Inari", **fields):
        response = await client.post(
            "/api/admin/activities",
            json={"city_id": city_id, "name": name, **fields},
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["activity"]

    return _create_activity
