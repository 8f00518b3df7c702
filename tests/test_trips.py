"""
Tests for trip endpoints: CRUD, ownership, status changes, sharing and cascades.
"""
import pytest
from sqlalchemy import func, select

from src.domain.models import TripStatus, can_transition
from src.infrastructure.models import ItineraryItemModel, TripCityModel, TripModel
from src.repositories.trips import generate_public_token


@pytest.mark.asyncio
async def test_create_trip_with_camel_case_dates(client, signup):
    _, headers = await signup()

    response = await client.post(
        "/api/trips",
        json={"title": "Japan", "startDate": "2025-04-01", "endDate": "2025-04-10", "budget": 2500},
        headers=headers,
    )

    assert response.status_code == 201
    trip = response.json()["trip"]
    assert trip["title"] == "Japan"
    assert trip["start_date"] == "2025-04-01"
    assert trip["end_date"] == "2025-04-10"
    assert trip["status"] == "planning"
    assert trip["is_public"] is False
    assert trip["public_url"] is None
    assert trip["budget"] == 2500


@pytest.mark.asyncio
async def test_create_trip_rejects_end_before_start(client, signup):
    _, headers = await signup()

    response = await client.post(
        "/api/trips",
        json={"title": "Japan", "startDate": "2025-04-10", "endDate": "2025-04-01"},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_DATES"


@pytest.mark.asyncio
async def test_create_trip_requires_title(client, signup):
    _, headers = await signup()

    response = await client.post("/api/trips", json={"description": "no title"}, headers=headers)

    assert response.status_code == 400
    assert response.json()["error"] == "MISSING_FIELDS"


@pytest.mark.asyncio
async def test_create_trip_requires_auth(client):
    response = await client.post("/api/trips", json={"title": "Japan"})

    assert response.status_code == 401
    assert response.json()["error"] == "MISSING_TOKEN"


@pytest.mark.asyncio
async def test_list_trips_only_returns_own_trips(client, signup, create_trip):
    _, ada = await signup(email="ada@example.com")
    _, bob = await signup(email="bob@example.com")
    await create_trip(ada, title="Ada's trip")
    await create_trip(bob, title="Bob's trip")

    response = await client.get("/api/trips", headers=ada)

    assert response.status_code == 200
    titles = [trip["title"] for trip in response.json()["trips"]]
    assert titles == ["Ada's trip"]


@pytest.mark.asyncio
async def test_list_trips_reports_total_beyond_page(client, signup, create_trip):
    _, headers = await signup()
    for n in range(3):
        await create_trip(headers, title=f"Trip {n}")
    await create_trip(headers, title="Done", status="cancelled")

    page = await client.get("/api/trips", params={"limit": 2}, headers=headers)
    cancelled = await client.get("/api/trips", params={"status": "cancelled"}, headers=headers)

    assert len(page.json()["trips"]) == 2
    assert page.json()["pagination"] == {"limit": 2, "offset": 0, "total": 4}
    assert cancelled.json()["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_get_trip_includes_cities_stats_and_summary(client, signup, create_trip, create_city):
    _, headers = await signup()
    trip = await create_trip(headers)
    city = await create_city()
    await client.post(f"/api/cities/{city['id']}/add-to-trip", json={"tripId": trip["id"]}, headers=headers)
    await client.post(
        f"/api/trips/{trip['id']}/itinerary",
        json={"title": "Temple visit", "cost": 40, "category": "activity", "cityId": city["id"]},
        headers=headers,
    )

    response = await client.get(f"/api/trips/{trip['id']}", headers=headers)

    assert response.status_code == 200
    data = response.json()["trip"]
    assert data["owner_name"] == "Ada"
    assert [c["city_id"] for c in data["cities"]] == [city["id"]]
    assert data["stats"]["city_count"] == 1
    assert data["stats"]["total_cost"] == 40
    assert data["summary"]["total_items"] == 1
    assert data["summary"]["activity_count"] == 1


@pytest.mark.asyncio
async def test_other_user_cannot_read_or_update_trip(client, signup, create_trip):
    _, ada = await signup(email="ada@example.com")
    _, bob = await signup(email="bob@example.com")
    trip = await create_trip(ada)

    read = await client.get(f"/api/trips/{trip['id']}", headers=bob)
    write = await client.put(f"/api/trips/{trip['id']}", json={"title": "Mine now"}, headers=bob)

    assert read.status_code == 403
    assert read.json()["error"] == "ACCESS_DENIED"
    assert write.status_code == 403


@pytest.mark.asyncio
async def test_admin_can_read_any_trip(client, signup, create_trip, admin_headers):
    _, ada = await signup(email="ada@example.com")
    trip = await create_trip(ada)

    response = await client.get(f"/api/trips/{trip['id']}", headers=admin_headers)

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_missing_trip_is_404(client, signup):
    _, headers = await signup()

    response = await client.get("/api/trips/999", headers=headers)

    assert response.status_code == 404
    assert response.json()["error"] == "TRIP_NOT_FOUND"


@pytest.mark.asyncio
async def test_update_validates_merged_dates(client, signup, create_trip):
    _, headers = await signup()
    trip = await create_trip(headers, start_date="2025-04-01", end_date="2025-04-10")

    response = await client.put(f"/api/trips/{trip['id']}", json={"start_date": "2025-05-01"}, headers=headers)

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_DATES"


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["title", "status", "is_public", "featured"])
async def test_update_rejects_null_for_required_field(client, signup, create_trip, admin_headers, field):
    _, headers = await signup()
    trip = await create_trip(headers, title="Japan", is_public=True)

    response = await client.put(f"/api/trips/{trip['id']}", json={field: None}, headers=admin_headers)
    stored = (await client.get(f"/api/trips/{trip['id']}", headers=headers)).json()["trip"]

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_INPUT"
    assert stored["title"] == "Japan"
    assert stored["status"] == "planning"
    assert stored["is_public"] is True
    assert stored["public_url"] == trip["public_url"]


@pytest.mark.asyncio
async def test_status_transitions(client, signup, create_trip):
    _, headers = await signup()
    trip = await create_trip(headers)
    url = f"/api/trips/{trip['id']}"

    same = await client.put(url, json={"status": "planning"}, headers=headers)
    skip = await client.put(url, json={"status": "completed"}, headers=headers)
    active = await client.put(url, json={"status": "active"}, headers=headers)
    completed = await client.put(url, json={"status": "completed"}, headers=headers)
    reopen = await client.put(url, json={"status": "planning"}, headers=headers)

    assert same.status_code == 200
    assert skip.status_code == 400
    assert skip.json()["error"] == "INVALID_STATUS_TRANSITION"
    assert active.json()["trip"]["status"] == "active"
    assert completed.json()["trip"]["status"] == "completed"
    assert reopen.status_code == 400


def test_status_state_machine():
    assert can_transition(TripStatus.PLANNING, TripStatus.ACTIVE)
    assert can_transition(TripStatus.PLANNING, TripStatus.CANCELLED)
    assert can_transition(TripStatus.ACTIVE, TripStatus.CANCELLED)
    assert can_transition(TripStatus.ACTIVE, TripStatus.ACTIVE)
    assert not can_transition(TripStatus.CANCELLED, TripStatus.PLANNING)
    assert not can_transition(TripStatus.COMPLETED, TripStatus.ACTIVE)


@pytest.mark.asyncio
async def test_owner_cannot_feature_own_trip(client, signup, create_trip):
    _, headers = await signup()
    trip = await create_trip(headers)

    response = await client.put(
        f"/api/trips/{trip['id']}",
        json={"title": "Renamed", "featured": True},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["trip"]["title"] == "Renamed"
    assert response.json()["trip"]["featured"] is False


@pytest.mark.asyncio
async def test_share_and_unshare(client, signup, create_trip):
    _, headers = await signup()
    trip = await create_trip(headers)

    share = await client.post(f"/api/trips/{trip['id']}/share", headers=headers)
    assert share.status_code == 201
    public_url = share.json()["publicUrl"]
    assert len(public_url) >= 20
    assert share.json()["shareUrl"] == f"http://test/shared/{public_url}"

    shared = await client.get(f"/api/trips/shared/{public_url}")
    assert shared.status_code == 200
    body = shared.json()["trip"]
    assert body["id"] == trip["id"]
    assert body["owner_name"] == "Ada"
    assert "itinerary" in body and "summary" in body
    assert body["is_owner"] is False

    unshare = await client.put(f"/api/trips/{trip['id']}", json={"is_public": False}, headers=headers)
    assert unshare.status_code == 200
    assert unshare.json()["trip"]["public_url"] is None

    gone = await client.get(f"/api/trips/shared/{public_url}")
    assert gone.status_code == 404
    assert gone.json()["error"] == "TRIP_NOT_FOUND"


@pytest.mark.asyncio
async def test_shared_trip_recognises_owner(client, signup, create_trip):
    _, headers = await signup()
    trip = await create_trip(headers)
    share = await client.post(f"/api/trips/{trip['id']}/share", headers=headers)

    response = await client.get(f"/api/trips/shared/{share.json()['publicUrl']}", headers=headers)

    assert response.json()["trip"]["is_owner"] is True


@pytest.mark.asyncio
async def test_resharing_issues_a_new_token(client, signup, create_trip):
    _, headers = await signup()
    trip = await create_trip(headers)

    first = (await client.post(f"/api/trips/{trip['id']}/share", headers=headers)).json()["publicUrl"]
    second = (await client.post(f"/api/trips/{trip['id']}/share", headers=headers)).json()["publicUrl"]

    assert first != second
    assert (await client.get(f"/api/trips/shared/{first}")).status_code == 404
    assert (await client.get(f"/api/trips/shared/{second}")).status_code == 200


def test_public_tokens_are_long_and_unique():
    tokens = {generate_public_token() for _ in range(200)}

    assert len(tokens) == 200
    assert all(len(token) >= 20 for token in tokens)


@pytest.mark.asyncio
async def test_delete_trip_cascades(client, database, signup, create_trip, create_city):
    _, ada = await signup(email="ada@example.com")
    _, bob = await signup(email="bob@example.com")
    trip = await create_trip(ada)
    city = await create_city()
    await client.post(f"/api/cities/{city['id']}/add-to-trip", json={"tripId": trip["id"]}, headers=ada)
    for title in ("Flight", "Hotel"):
        await client.post(f"/api/trips/{trip['id']}/itinerary", json={"title": title}, headers=ada)

    denied = await client.delete(f"/api/trips/{trip['id']}", headers=bob)
    assert denied.status_code == 403
    assert denied.json()["error"] == "ACCESS_DENIED"
    assert (await client.get(f"/api/trips/{trip['id']}", headers=ada)).status_code == 200

    deleted = await client.delete(f"/api/trips/{trip['id']}", headers=ada)
    assert deleted.status_code == 200
    assert (await client.get(f"/api/trips/{trip['id']}", headers=ada)).status_code == 404

    async with database.session() as session:
        trips = await session.scalar(select(func.count()).select_from(TripModel).where(TripModel.id == trip["id"]))
        trip_cities = await session.scalar(
            select(func.count()).select_from(TripCityModel).where(TripCityModel.trip_id == trip["id"])
        )
        items = await session.scalar(
            select(func.count()).select_from(ItineraryItemModel).where(ItineraryItemModel.trip_id == trip["id"])
        )
    assert (trips, trip_cities, items) == (0, 0, 0)


@pytest.mark.asyncio
async def test_trip_events_go_to_owner_room(client, signup, create_trip, publisher):
    user, headers = await signup()
    trip = await create_trip(headers)
    await client.put(f"/api/trips/{trip['id']}", json={"title": "Renamed"}, headers=headers)
    await client.delete(f"/api/trips/{trip['id']}", headers=headers)

    events = publisher.of_type("trip-update")
    assert [payload["type"] for _, payload in events] == ["created", "updated", "deleted"]
    assert all(room == f"user-{user['id']}" for room, _ in events)
    assert events[-1][1]["tripId"] == trip["id"]


@pytest.mark.asyncio
async def test_trip_stats_endpoint(client, signup, create_trip):
    _, headers = await signup()
    trip = await create_trip(headers)
    await client.post(
        f"/api/trips/{trip['id']}/itinerary",
        json={"title": "Flight", "category": "flight", "cost": 600},
        headers=headers,
    )

    response = await client.get(f"/api/trips/{trip['id']}/stats", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["stats"]["total_cost"] == 600
    assert data["summary"]["flight_count"] == 1
    assert data["costBreakdown"][0]["category"] == "flight"
