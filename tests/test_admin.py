"""
Tests for the admin API: dashboard, user management, trip moderation,
analytics, catalog curation and system endpoints.
"""
import logging

import pytest

from src.application.admin_service import period_days
from src.domain.errors import InvalidInput
from src.logging_config import RecentLogHandler, recent_logs
from src.repositories import trips as trips_repo


@pytest.mark.asyncio
async def test_admin_routes_require_admin(client, signup):
    _, headers = await signup()

    as_user = await client.get("/api/admin/dashboard", headers=headers)
    anonymous = await client.get("/api/admin/dashboard")

    assert as_user.status_code == 403
    assert as_user.json()["error"] == "INSUFFICIENT_PRIVILEGES"
    assert anonymous.status_code == 401
    assert anonymous.json()["error"] == "MISSING_TOKEN"


@pytest.mark.asyncio
async def test_dashboard(client, signup, create_trip, admin_headers):
    _, headers = await signup()
    await create_trip(headers, budget=1000, is_public=True)

    response = await client.get("/api/admin/dashboard", headers=admin_headers)

    assert response.status_code == 200
    analytics = response.json()["analytics"]
    assert set(analytics) == {
        "user_stats", "trip_stats", "popular_cities", "popular_activities",
        "recent_users", "recent_trips", "system_health",
    }
    assert analytics["user_stats"]["total_users"] == 2
    assert analytics["user_stats"]["admin_users"] == 1
    assert analytics["trip_stats"]["total_trips"] == 1
    assert analytics["trip_stats"]["public_trips"] == 1
    assert analytics["trip_stats"]["trips_by_status"]["planning"] == 1
    assert analytics["trip_stats"]["average_trip_duration"] == 9
    assert analytics["recent_trips"][0]["owner_name"] == "Ada"
    assert analytics["system_health"]["database"] == "connected"


@pytest.mark.asyncio
async def test_dashboard_section_failure_becomes_null(client, admin_headers, monkeypatch):
    async def broken(db):
        raise RuntimeError("boom")

    monkeypatch.setattr(trips_repo, "total_count", broken)

    response = await client.get("/api/admin/dashboard", headers=admin_headers)

    assert response.status_code == 200
    analytics = response.json()["analytics"]
    assert analytics["trip_stats"] is None
    assert analytics["user_stats"]["total_users"] == 1
    assert analytics["system_health"]["status"] == "healthy"


@pytest.mark.asyncio
async def test_list_users_with_search_and_pagination(client, signup, admin_headers):
    await signup(email="ada@example.com", full_name="Ada Lovelace")
    await signup(email="grace@example.com", full_name="Grace Hopper")

    page = await client.get("/api/admin/users", params={"limit": 2, "page": 1}, headers=admin_headers)
    search = await client.get("/api/admin/users", params={"search": "hopper"}, headers=admin_headers)
    admins = await client.get("/api/admin/users", params={"role": "admin"}, headers=admin_headers)

    assert page.status_code == 200
    assert len(page.json()["users"]) == 2
    assert page.json()["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert [user["email"] for user in search.json()["users"]] == ["grace@example.com"]
    assert "password_hash" not in search.json()["users"][0]
    assert [user["email"] for user in admins.json()["users"]] == ["root@example.com"]


@pytest.mark.asyncio
async def test_list_users_rejects_unknown_sort_column(client, admin_headers):
    response = await client.get("/api/admin/users", params={"sortBy": "password_hash"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_update_user(client, signup, admin_headers):
    user, _ = await signup()

    response = await client.put(
        f"/api/admin/users/{user['id']}",
        json={"fullName": "Ada L.", "role": "admin"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["user"]["full_name"] == "Ada L."
    assert response.json()["user"]["role"] == "admin"


@pytest.mark.asyncio
async def test_update_user_email_conflict(client, signup, admin_headers):
    user, _ = await signup(email="ada@example.com")

    response = await client.put(
        f"/api/admin/users/{user['id']}", json={"email": "ROOT@example.com"}, headers=admin_headers
    )

    assert response.status_code == 409
    assert response.json()["error"] == "EMAIL_EXISTS"


@pytest.mark.asyncio
async def test_admin_cannot_demote_or_delete_self(client, admin_headers):
    me = (await client.get("/api/auth/profile", headers=admin_headers)).json()["user"]

    demote = await client.put(f"/api/admin/users/{me['id']}", json={"role": "user"}, headers=admin_headers)
    delete = await client.delete(f"/api/admin/users/{me['id']}", headers=admin_headers)

    assert demote.status_code == 400
    assert demote.json()["error"] == "SELF_DEMOTION_ERROR"
    assert delete.status_code == 400
    assert delete.json()["error"] == "SELF_DELETE_ERROR"


@pytest.mark.asyncio
async def test_delete_unknown_user(client, admin_headers):
    response = await client.delete("/api/admin/users/999", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
async def test_deleting_user_removes_their_trips(client, signup, create_trip, admin_headers):
    user, headers = await signup()
    await create_trip(headers)

    await client.delete(f"/api/admin/users/{user['id']}", headers=admin_headers)
    trips = await client.get("/api/admin/trips", headers=admin_headers)

    assert trips.json()["trips"] == []


@pytest.mark.asyncio
async def test_list_trips_filters(client, signup, create_trip, admin_headers):
    _, headers = await signup()
    await create_trip(headers, title="Japan", is_public=True)
    await create_trip(headers, title="Italy")

    public = await client.get("/api/admin/trips", params={"isPublic": "true"}, headers=admin_headers)
    search = await client.get("/api/admin/trips", params={"search": "ital"}, headers=admin_headers)

    assert [trip["title"] for trip in public.json()["trips"]] == ["Japan"]
    assert [trip["title"] for trip in search.json()["trips"]] == ["Italy"]
    assert search.json()["trips"][0]["owner_email"] == "ada@example.com"
    assert public.json()["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_feature_trip(client, signup, create_trip, admin_headers, publisher):
    user, headers = await signup()
    trip = await create_trip(headers)

    featured = await client.put(f"/api/admin/trips/{trip['id']}/feature", json={"featured": True}, headers=admin_headers)
    unfeatured = await client.put(f"/api/admin/trips/{trip['id']}/feature", json={"featured": False}, headers=admin_headers)
    missing = await client.put("/api/admin/trips/999/feature", json={}, headers=admin_headers)

    assert featured.json()["trip"]["featured"] is True
    assert unfeatured.json()["trip"]["featured"] is False
    assert missing.status_code == 404
    room, _ = publisher.of_type("trip-update")[-1]
    assert room == f"user-{user['id']}"


@pytest.mark.asyncio
async def test_trip_analytics(client, signup, create_trip, create_city, admin_headers):
    _, headers = await signup()
    trip = await create_trip(headers, budget=1200)
    await create_trip(headers, title="Cheap", budget=300)
    city = await create_city()
    await client.post(f"/api/cities/{city['id']}/add-to-trip", json={"tripId": trip["id"]}, headers=headers)

    response = await client.get("/api/admin/trips/analytics", params={"period": "7d"}, headers=admin_headers)

    assert response.status_code == 200
    analytics = response.json()["analytics"]
    assert analytics["period_days"] == 7
    assert sum(day["count"] for day in analytics["trip_creations"]) == 2
    assert analytics["budget_stats"]["trips_with_budget"] == 2
    assert analytics["budget_stats"]["max_budget"] == 1200
    assert analytics["popular_destinations"][0]["name"] == "Kyoto"


@pytest.mark.asyncio
async def test_analytics_rejects_bad_period(client, admin_headers):
    response = await client.get("/api/admin/analytics/users", params={"period": "forever"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_user_analytics(client, signup, admin_headers):
    await signup()
    await client.post("/api/auth/login", json={"email": "ada@example.com", "password": "hunter22"})

    response = await client.get("/api/admin/analytics/users", headers=admin_headers)

    analytics = response.json()["analytics"]
    assert analytics["period_days"] == 30
    assert analytics["new_users"] == 2
    assert analytics["active_users"] == 1
    assert sum(day["count"] for day in analytics["signups"]) == 2


@pytest.mark.parametrize(
    "period, days",
    [(None, 30), ("7d", 7), ("2w", 14), ("3m", 90), ("1y", 365), (" 10D ", 10)],
)
def test_period_days(period, days):
    assert period_days(period) == days


@pytest.mark.parametrize("period", ["0d", "d", "7x", "-1d"])
def test_period_days_rejects(period):
    with pytest.raises(InvalidInput):
        period_days(period)


@pytest.mark.asyncio
async def test_catalog_management(client, admin_headers):
    created = await client.post(
        "/api/admin/cities", json={"name": "Kyoto", "country": "Japan"}, headers=admin_headers
    )
    city_id = created.json()["city"]["id"]
    updated = await client.put(
        f"/api/admin/cities/{city_id}", json={"popularityScore": 42}, headers=admin_headers
    )
    activity = await client.post(
        "/api/admin/activities",
        json={"cityId": city_id, "name": "Tea ceremony", "costMin": 30, "costMax": 60},
        headers=admin_headers,
    )
    cities = await client.get("/api/admin/cities", headers=admin_headers)
    activities = await client.get("/api/admin/activities", params={"cityId": city_id}, headers=admin_headers)

    assert created.status_code == 201
    assert updated.json()["city"]["popularity_score"] == 42
    assert activity.status_code == 201
    assert cities.json()["cities"][0]["activity_count"] == 1
    assert activities.json()["activities"][0]["usage_count"] == 0
    assert activities.json()["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_system_health(client, admin_headers):
    response = await client.get("/api/admin/system/health", headers=admin_headers)

    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["uptime"] >= 0
    assert data["version"] == "0.1.0"


@pytest.mark.asyncio
async def test_system_logs(client, admin_headers):
    recent_logs.emit(logging.makeLogRecord({"name": "test", "levelno": logging.ERROR, "levelname": "ERROR", "msg": "disk full"}))

    response = await client.get("/api/admin/system/logs", params={"level": "error"}, headers=admin_headers)

    logs = response.json()["logs"]
    assert logs[0]["message"] == "disk full"
    assert all(entry["level"] in ("ERROR", "CRITICAL") for entry in logs)


def test_recent_log_handler_is_bounded_and_newest_first():
    handler = RecentLogHandler(capacity=3)
    log = logging.getLogger("test.recent")
    log.addHandler(handler)
    log.setLevel(logging.DEBUG)
    try:
        for n in range(5):
            log.info(f"message {n}")
        log.warning("careful")
    finally:
        log.removeHandler(handler)

    assert [entry["message"] for entry in handler.recent()] == ["careful", "message 4", "message 3"]
    assert [entry["message"] for entry in handler.recent(level="WARNING")] == ["careful"]
    assert len(handler.recent(limit=1)) == 1
