from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy import func, select

from tripdesk import models

from conftest import TestingSessionLocal, create_agency_user


def create_sample_trip(client: TestClient, headers: dict, **overrides) -> int:
    payload = {"name": "Portugal Highlights", "start_date": "2025-06-01", "currency": "EUR"}
    payload.update(overrides)
    response = client.post("/trips", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()["id"]


def create_sample_itinerary(client: TestClient, headers: dict, trip_id: int) -> int:
    response = client.post(
        f"/trips/{trip_id}/itineraries", json={"name": "Main itinerary"}, headers=headers
    )
    assert response.status_code == 201
    return response.json()["id"]


def add_sample_day(client: TestClient, headers: dict, itinerary_id: int, day: str) -> int:
    response = client.post(f"/itineraries/{itinerary_id}/days", json={"date": day}, headers=headers)
    assert response.status_code == 201
    return response.json()["id"]


def add_sample_activity(client: TestClient, headers: dict, itinerary_id: int, **payload) -> dict:
    response = client.post(f"/itineraries/{itinerary_id}/activities", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_healthcheck(api_client: TestClient) -> None:
    response = api_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_requests_require_a_known_user(api_client: TestClient) -> None:
    assert api_client.post("/trips", json={"name": "Nowhere"}).status_code == 401
    response = api_client.post(
        "/trips", json={"name": "Nowhere"}, headers={"X-User-Email": "ghost@example.com"}
    )
    assert response.status_code == 403


def test_save_and_apply_itinerary_template(api_client: TestClient) -> None:
    headers = create_agency_user()
    trip_id = create_sample_trip(api_client, headers)
    itinerary_id = create_sample_itinerary(api_client, headers, trip_id)
    day_one = add_sample_day(api_client, headers, itinerary_id, "2025-06-01")
    day_two = add_sample_day(api_client, headers, itinerary_id, "2025-06-03")
    add_sample_activity(
        api_client,
        headers,
        itinerary_id,
        itinerary_day_id=day_one,
        component_type="tour",
        name="Old town walk",
        start_datetime="2025-06-01T14:30:00",
        total_price_cents=4500,
        currency="EUR",
    )
    add_sample_activity(
        api_client,
        headers,
        itinerary_id,
        itinerary_day_id=day_two,
        component_type="flight",
        name="Flight to Porto",
        start_datetime="2025-06-03T07:45:00",
        details={"airline": "TAP", "flight_number": "TP1944", "departure_time": "07:45"},
    )

    saved = api_client.post(
        f"/itineraries/{itinerary_id}/save-as-template",
        json={"name": "Portugal in three days", "description": "Lisbon and Porto"},
        headers=headers,
    )
    assert saved.status_code == 201
    template = saved.json()
    assert template["day_count"] == 2
    assert template["activity_count"] == 2
    assert [offset["dayIndex"] for offset in template["payload"]["dayOffsets"]] == [0, 2]
    assert template["payload"]["dayOffsets"][0]["activities"][0]["startTime"] == "14:30"

    new_trip_id = create_sample_trip(api_client, headers, name="Repeat visit", start_date=None)
    applied = api_client.post(
        f"/trips/{new_trip_id}/templates/itineraries/{template['id']}/apply",
        json={"anchor_day": "2025-09-01"},
        headers=headers,
    )
    assert applied.status_code == 201
    assert applied.json()["warnings"] == []

    itinerary = api_client.get(f"/itineraries/{applied.json()['itinerary_id']}", headers=headers)
    assert itinerary.status_code == 200
    body = itinerary.json()
    assert body["status"] == "draft"
    assert [day["date"] for day in body["days"]] == ["2025-09-01", "2025-09-03"]
    walk = body["days"][0]["activities"][0]
    assert walk["name"] == "Old town walk"
    assert walk["start_datetime"] == "2025-09-01T14:30:00"
    assert walk["pricing"]["total_price_cents"] == 4500

    flight = body["days"][1]["activities"][0]
    details = api_client.get(f"/activities/{flight['id']}/details", headers=headers)
    assert details.json()["flight_number"] == "TP1944"

    listing = api_client.get(f"/trips/{new_trip_id}/itineraries", headers=headers)
    assert [item["id"] for item in listing.json()] == [body["id"]]


def test_save_and_apply_package_template(api_client: TestClient) -> None:
    headers = create_agency_user()
    trip_id = create_sample_trip(api_client, headers)
    itinerary_id = create_sample_itinerary(api_client, headers, trip_id)
    day_one = add_sample_day(api_client, headers, itinerary_id, "2025-06-01")
    day_two = add_sample_day(api_client, headers, itinerary_id, "2025-06-02")
    day_four = add_sample_day(api_client, headers, itinerary_id, "2025-06-04")
    package = add_sample_activity(
        api_client,
        headers,
        itinerary_id,
        itinerary_day_id=day_one,
        component_type="package",
        name="Douro wine escape",
        pricing_type="flat_rate",
        total_price_cents=90000,
        currency="EUR",
    )
    assert package["activity_type"] == "package"
    add_sample_activity(
        api_client,
        headers,
        itinerary_id,
        itinerary_day_id=day_two,
        parent_activity_id=package["id"],
        component_type="dining",
        name="Quinta lunch",
        start_datetime="2025-06-02T13:00:00",
        details={"restaurant_name": "Quinta do Crasto", "party_size": 2},
    )
    add_sample_activity(
        api_client,
        headers,
        itinerary_id,
        itinerary_day_id=day_four,
        parent_activity_id=package["id"],
        component_type="transportation",
        name="Train back",
        details={"subtype": "train", "pickup_time": "17:10", "pickup_timezone": "Europe/Lisbon"},
    )

    saved = api_client.post(
        f"/packages/{package['id']}/save-as-template",
        json={"name": "Douro escape"},
        headers=headers,
    )
    assert saved.status_code == 201
    template = saved.json()
    metadata = template["payload"]["packageMetadata"]
    assert metadata["name"] == "Douro wine escape"
    assert metadata["totalPriceCents"] == 90000
    assert metadata["currency"] == "EUR"
    assert [offset["dayIndex"] for offset in template["payload"]["dayOffsets"]] == [0, 2]

    target_trip = create_sample_trip(api_client, headers, name="Autumn trip", start_date="2025-10-01")
    target_itinerary = create_sample_itinerary(api_client, headers, target_trip)
    anchor = add_sample_day(api_client, headers, target_itinerary, "2025-10-01")

    applied = api_client.post(
        f"/itineraries/{target_itinerary}/templates/packages/{template['id']}/apply",
        json={"anchor_day_id": anchor},
        headers=headers,
    )
    assert applied.status_code == 201
    package_id = applied.json()["package_id"]

    days = api_client.get(f"/itineraries/{target_itinerary}/days", headers=headers).json()
    assert [day["date"] for day in days] == ["2025-10-01", "2025-10-02", "2025-10-03"]
    first_day = {activity["name"]: activity for activity in days[0]["activities"]}
    assert set(first_day) == {"Douro wine escape", "Quinta lunch"}
    assert first_day["Quinta lunch"]["start_datetime"] == "2025-10-01T13:00:00"
    assert first_day["Quinta lunch"]["parent_activity_id"] == applied.json()["package_id"]
    assert days[2]["activities"][0]["name"] == "Train back"

    created = api_client.get(f"/activities/{package_id}", headers=headers).json()
    assert created["component_type"] == "package"
    assert created["status"] == "proposed"
    assert created["pricing"]["total_price_cents"] == 90000


def test_package_endpoints_reject_bad_input(api_client: TestClient) -> None:
    headers = create_agency_user()
    trip_id = create_sample_trip(api_client, headers)
    itinerary_id = create_sample_itinerary(api_client, headers, trip_id)
    day_id = add_sample_day(api_client, headers, itinerary_id, "2025-06-01")
    tour = add_sample_activity(
        api_client, headers, itinerary_id, itinerary_day_id=day_id, component_type="tour", name="Walk"
    )

    not_a_package = api_client.post(
        f"/packages/{tour['id']}/save-as-template", json={"name": "Nope"}, headers=headers
    )
    assert not_a_package.status_code == 400

    incomplete = api_client.post(
        "/templates/packages",
        json={"name": "Broken", "payload": {"packageMetadata": {"name": "Broken"}}},
        headers=headers,
    )
    assert incomplete.status_code == 201
    applied = api_client.post(
        f"/itineraries/{itinerary_id}/templates/packages/{incomplete.json()['id']}/apply",
        json={"anchor_day_id": day_id},
        headers=headers,
    )
    assert applied.status_code == 400
    assert applied.json()["detail"] == "Template payload is incomplete"

    missing_day = api_client.post(
        f"/itineraries/{itinerary_id}/templates/packages/{incomplete.json()['id']}/apply",
        json={"anchor_day_id": 4040},
        headers=headers,
    )
    assert missing_day.status_code == 404


def test_activity_validation_errors(api_client: TestClient) -> None:
    headers = create_agency_user()
    trip_id = create_sample_trip(api_client, headers)
    itinerary_id = create_sample_itinerary(api_client, headers, trip_id)
    day_id = add_sample_day(api_client, headers, itinerary_id, "2025-06-01")

    bad_timezone = api_client.post(
        f"/itineraries/{itinerary_id}/activities",
        json={
            "itinerary_day_id": day_id,
            "component_type": "transportation",
            "name": "Transfer",
            "details": {"subtype": "transfer", "pickup_timezone": "Mars/Olympus"},
        },
        headers=headers,
    )
    assert bad_timezone.status_code == 400

    bad_subtype = api_client.post(
        f"/itineraries/{itinerary_id}/activities",
        json={
            "itinerary_day_id": day_id,
            "component_type": "transportation",
            "name": "Transfer",
            "details": {"subtype": "teleport"},
        },
        headers=headers,
    )
    assert bad_subtype.status_code == 400

    bad_party = api_client.post(
        f"/itineraries/{itinerary_id}/activities",
        json={
            "itinerary_day_id": day_id,
            "component_type": "dining",
            "name": "Feast",
            "details": {"party_size": 0},
        },
        headers=headers,
    )
    assert bad_party.status_code == 400


def test_template_registry_ownership_and_soft_delete(api_client: TestClient) -> None:
    owner = create_agency_user("owner@northstar.example")
    colleague = create_agency_user("colleague@northstar.example")
    admin = create_agency_user("admin@northstar.example", is_admin=True)
    outsider = create_agency_user("agent@elsewhere.example", agency_name="Elsewhere Travel")
    payload = {
        "dayOffsets": [
            {
                "dayIndex": 0,
                "activities": [
                    {"componentType": "tour", "activityType": "tour", "name": "Harbour walk"},
                    {"componentType": "tour", "activityType": "tour", "name": "Sunset sail", "sequenceOrder": 1},
                ],
            }
        ]
    }

    created = api_client.post(
        "/templates/itineraries",
        json={"name": "Harbour day", "payload": payload},
        headers=owner,
    )
    assert created.status_code == 201
    template = created.json()
    assert template["day_count"] == 1
    assert template["activity_count"] == 2
    assert template["created_by"] is not None

    forbidden = api_client.post(
        "/templates/itineraries",
        json={"name": "Agency day", "payload": payload, "is_agency_template": True},
        headers=owner,
    )
    assert forbidden.status_code == 403

    agency_template = api_client.post(
        "/templates/itineraries",
        json={"name": "Agency day", "payload": payload, "is_agency_template": True},
        headers=admin,
    )
    assert agency_template.status_code == 201
    assert agency_template.json()["created_by"] is None

    listing = api_client.get("/templates/itineraries", headers=colleague)
    assert listing.json()["total"] == 2
    search = api_client.get("/templates/itineraries?search=HARBOUR", headers=colleague)
    assert [item["name"] for item in search.json()["data"]] == ["Harbour day"]

    not_creator = api_client.patch(
        f"/templates/itineraries/{template['id']}", json={"name": "Mine now"}, headers=colleague
    )
    assert not_creator.status_code == 403
    assert not_creator.json()["detail"] == "You can only modify templates you created"

    agency_locked = api_client.delete(
        f"/templates/itineraries/{agency_template.json()['id']}", headers=owner
    )
    assert agency_locked.status_code == 403
    assert agency_locked.json()["detail"] == "Only admins can delete agency templates"

    renamed = api_client.patch(
        f"/templates/itineraries/{template['id']}", json={"name": "Harbour morning"}, headers=owner
    )
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Harbour morning"

    null_flag = api_client.patch(
        f"/templates/itineraries/{template['id']}", json={"is_active": None}, headers=owner
    )
    assert null_flag.status_code == 200
    assert null_flag.json()["is_active"] is True

    assert api_client.get(f"/templates/itineraries/{template['id']}", headers=outsider).status_code == 404
    assert api_client.get("/templates/itineraries", headers=outsider).json()["total"] == 0

    deleted = api_client.delete(f"/templates/itineraries/{template['id']}", headers=owner)
    assert deleted.status_code == 204
    active = api_client.get("/templates/itineraries", headers=owner).json()
    assert [item["name"] for item in active["data"]] == ["Agency day"]
    inactive = api_client.get("/templates/itineraries?is_active=false", headers=owner).json()
    assert [item["name"] for item in inactive["data"]] == ["Harbour morning"]


def test_package_template_registry_crud(api_client: TestClient) -> None:
    admin = create_agency_user("admin@northstar.example", is_admin=True)
    payload = {
        "packageMetadata": {"name": "Island hopper", "pricingType": "per_person", "totalPriceCents": 50000},
        "dayOffsets": [{"dayIndex": 0, "activities": []}, {"dayIndex": 1, "activities": []}],
    }

    created = api_client.post(
        "/templates/packages", json={"name": "Azores", "payload": payload}, headers=admin
    )
    assert created.status_code == 201
    template_id = created.json()["id"]
    assert created.json()["day_count"] == 2

    fetched = api_client.get(f"/templates/packages/{template_id}", headers=admin)
    assert fetched.json()["payload"]["packageMetadata"]["pricingType"] == "per_person"

    payload["dayOffsets"] = [{"dayIndex": 0, "activities": []}]
    updated = api_client.patch(
        f"/templates/packages/{template_id}", json={"payload": payload}, headers=admin
    )
    assert updated.status_code == 200
    assert updated.json()["day_count"] == 1

    assert api_client.delete(f"/templates/packages/{template_id}", headers=admin).status_code == 204
    assert api_client.get("/templates/packages", headers=admin).json()["total"] == 0
    assert api_client.get(f"/templates/packages/{template_id}", headers=admin).status_code == 200


def test_delete_itinerary_removes_dependent_rows(api_client: TestClient) -> None:
    headers = create_agency_user()
    trip_id = create_sample_trip(api_client, headers)
    itinerary_id = create_sample_itinerary(api_client, headers, trip_id)
    day_id = add_sample_day(api_client, headers, itinerary_id, "2025-06-01")
    add_sample_activity(
        api_client,
        headers,
        itinerary_id,
        itinerary_day_id=day_id,
        component_type="dining",
        name="Cervejaria Ramiro",
        total_price_cents=8000,
        details={"restaurant_name": "Cervejaria Ramiro", "party_size": 2},
    )

    assert api_client.delete(f"/itineraries/{itinerary_id}", headers=headers).status_code == 204
    assert api_client.get(f"/itineraries/{itinerary_id}", headers=headers).status_code == 404

    with TestingSessionLocal() as session:
        for model in (
            models.ItineraryDay,
            models.Activity,
            models.ActivityPricing,
            models.DiningDetails,
        ):
            assert session.scalar(select(func.count()).select_from(model)) == 0
