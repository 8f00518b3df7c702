"""
Tests for the activity catalog endpoints.
"""
import pytest


@pytest.mark.asyncio
async def test_get_activity_includes_city(client, create_city, create_activity):
    city = await create_city()
    activity = await create_activity(city["id"], cost_min=0, cost_max=0, rating=4.9)

    response = await client.get(f"/api/activities/{activity['id']}")

    assert response.status_code == 200
    data = response.json()["activity"]
    assert data["name"] == "Fushimi Inari"
    assert data["category"] == "activity"
    assert data["city_name"] == "Kyoto"
    assert data["country"] == "Japan"


@pytest.mark.asyncio
async def test_get_unknown_activity(client):
    response = await client.get("/api/activities/999")

    assert response.status_code == 404
    assert response.json()["error"] == "ACTIVITY_NOT_FOUND"


@pytest.mark.asyncio
async def test_create_activity_validation(client, create_city, admin_headers):
    city = await create_city()

    inverted = await client.post(
        "/api/activities",
        json={"cityId": city["id"], "name": "Odd", "costMin": 50, "costMax": 10},
        headers=admin_headers,
    )
    unknown_city = await client.post(
        "/api/activities", json={"cityId": 999, "name": "Lost"}, headers=admin_headers
    )
    bad_rating = await client.post(
        "/api/activities", json={"cityId": city["id"], "name": "Great", "rating": 7}, headers=admin_headers
    )

    assert inverted.status_code == 400
    assert inverted.json()["error"] == "INVALID_INPUT"
    assert unknown_city.status_code == 404
    assert unknown_city.json()["error"] == "CITY_NOT_FOUND"
    assert bad_rating.json()["error"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_activity_writes_require_admin(client, signup, create_city, create_activity):
    _, headers = await signup()
    city = await create_city()
    activity = await create_activity(city["id"])

    create = await client.post("/api/activities", json={"cityId": city["id"], "name": "Mine"}, headers=headers)
    update = await client.put(f"/api/activities/{activity['id']}", json={"name": "Mine"}, headers=headers)
    delete = await client.delete(f"/api/activities/{activity['id']}", headers=headers)

    assert create.status_code == update.status_code == delete.status_code == 403


@pytest.mark.asyncio
async def test_update_activity_checks_merged_cost_range(client, create_city, create_activity, admin_headers):
    city = await create_city()
    activity = await create_activity(city["id"], cost_min=10, cost_max=20)

    ok = await client.put(f"/api/activities/{activity['id']}", json={"costMax": 25}, headers=admin_headers)
    bad = await client.put(f"/api/activities/{activity['id']}", json={"costMin": 30}, headers=admin_headers)

    assert ok.status_code == 200
    assert ok.json()["activity"]["cost_max"] == 25
    assert bad.status_code == 400
    assert bad.json()["error"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_search_activities(client, create_city, create_activity):
    kyoto = await create_city("Kyoto", "Japan")
    lisbon = await create_city("Lisbon", "Portugal")
    await create_activity(kyoto["id"], name="Tea ceremony", cost_min=30, cost_max=60, rating=4.5)
    await create_activity(kyoto["id"], name="Kaiseki dinner", category="restaurant", cost_min=80, cost_max=200, rating=4.8)
    await create_activity(lisbon["id"], name="Tram 28", description="Historic tram ride", cost_min=3, cost_max=3, rating=4.1)

    by_city = await client.get("/api/activities/search", params={"q": "kyoto"})
    by_description = await client.get("/api/activities/search", params={"q": "historic"})
    by_category = await client.get("/api/activities/search", params={"category": "restaurant"})
    by_cost = await client.get("/api/activities/search", params={"maxCost": 60})
    by_rating = await client.get("/api/activities/search", params={"minRating": 4.6})
    bad_category = await client.get("/api/activities/search", params={"category": "spa"})

    assert [a["name"] for a in by_city.json()["activities"]] == ["Kaiseki dinner", "Tea ceremony"]
    assert [a["name"] for a in by_description.json()["activities"]] == ["Tram 28"]
    assert [a["name"] for a in by_category.json()["activities"]] == ["Kaiseki dinner"]
    assert [a["name"] for a in by_cost.json()["activities"]] == ["Tea ceremony", "Tram 28"]
    assert by_rating.json()["total"] == 1
    assert bad_category.status_code == 400
    assert bad_category.json()["error"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_popular_and_categories(client, create_city, create_activity):
    city = await create_city()
    await create_activity(city["id"], name="Temple", rating=4.2)
    await create_activity(city["id"], name="Garden", rating=4.6)
    await create_activity(city["id"], name="Ramen bar", category="restaurant", rating=4.4)

    popular = await client.get("/api/activities/popular", params={"limit": 2})
    categories = await client.get("/api/activities/categories")

    assert [a["name"] for a in popular.json()["activities"]] == ["Garden", "Ramen bar"]
    assert categories.json()["categories"] == [
        {"category": "activity", "count": 2},
        {"category": "restaurant", "count": 1},
    ]


@pytest.mark.asyncio
async def test_activities_for_cities(client, create_city, create_activity):
    kyoto = await create_city("Kyoto", "Japan")
    lisbon = await create_city("Lisbon", "Portugal")
    empty = await create_city("Reykjavik", "Iceland")
    for n in range(3):
        await create_activity(kyoto["id"], name=f"Kyoto {n}", rating=4.0 + n / 10)
    await create_activity(lisbon["id"], name="Tram 28")

    response = await client.post(
        "/api/activities/for-cities",
        json={"cityIds": [kyoto["id"], lisbon["id"], empty["id"]], "limit": 2},
    )

    assert response.status_code == 200
    grouped = response.json()["activities"]
    assert [a["name"] for a in grouped[str(kyoto["id"])]] == ["Kyoto 2", "Kyoto 1"]
    assert [a["name"] for a in grouped[str(lisbon["id"])]] == ["Tram 28"]
    assert grouped[str(empty["id"])] == []


@pytest.mark.asyncio
async def test_activities_for_cities_requires_ids(client):
    missing = await client.post("/api/activities/for-cities", json={})
    empty = await client.post("/api/activities/for-cities", json={"cityIds": []})

    assert missing.status_code == empty.status_code == 400
    assert missing.json()["error"] == "MISSING_FIELDS"


@pytest.mark.asyncio
async def test_add_activity_to_trip(client, signup, create_trip, create_city, create_activity):
    _, headers = await signup()
    trip = await create_trip(headers)
    city = await create_city()
    activity = await create_activity(city["id"], cost_min=12, cost_max=20)

    response = await client.post(
        f"/api/activities/{activity['id']}/add-to-trip",
        json={"tripId": trip["id"], "notes": "Go at dawn"},
        headers=headers,
    )
    missing_trip = await client.post(f"/api/activities/{activity['id']}/add-to-trip", json={}, headers=headers)

    assert response.status_code == 201
    item = response.json()["itineraryItem"]
    assert item["trip_id"] == trip["id"]
    assert item["cost"] == 12
    assert item["notes"] == "Go at dawn"
    assert missing_trip.status_code == 400
    assert missing_trip.json()["error"] == "MISSING_FIELDS"


@pytest.mark.asyncio
async def test_scheduled_activity_cannot_be_deleted(client, signup, create_trip, create_city, create_activity, admin_headers):
    _, headers = await signup()
    trip = await create_trip(headers)
    city = await create_city()
    activity = await create_activity(city["id"])
    scheduled = await client.post(
        f"/api/activities/{activity['id']}/add-to-trip", json={"tripId": trip["id"]}, headers=headers
    )

    refused = await client.delete(f"/api/activities/{activity['id']}", headers=admin_headers)
    await client.delete(f"/api/itinerary/{scheduled.json()['itineraryItem']['id']}", headers=headers)
    deleted = await client.delete(f"/api/activities/{activity['id']}", headers=admin_headers)

    assert refused.status_code == 409
    assert refused.json()["error"] == "RESOURCE_IN_USE"
    assert deleted.status_code == 200
    assert (await client.get(f"/api/activities/{activity['id']}")).status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["name", "cityId"])
async def test_update_activity_rejects_null_for_required_field(client, create_city, create_activity, admin_headers, field):
    city = await create_city()
    activity = await create_activity(city["id"])

    response = await client.put(f"/api/activities/{activity['id']}", json={field: None}, headers=admin_headers)
    stored = (await client.get(f"/api/activities/{activity['id']}")).json()["activity"]

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_INPUT"
    assert stored["name"] == "Fushimi Inari"
    assert stored["city_id"] == city["id"]
