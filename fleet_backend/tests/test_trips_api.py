"""
Integration tests for the trip endpoints.

Covers creation rules, listings, revision, deletion and tenant isolation.
"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock

from httpx import AsyncClient, ASGITransport
from sqlalchemy.exc import OperationalError

from fleet_backend.app.main import app
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.services import trip_service
from fleet_backend.app.services.audit import get_entity_history, AuditAction


def trip_payload(vehicle_id, departure, arrival, final_odometer, purpose="Client visit"):
    return {
        "vehicle_id": vehicle_id,
        "departure_at": departure,
        "arrival_at": arrival,
        "purpose": purpose,
        "final_odometer": final_odometer,
    }


# TEST 1: Ledger scenario (vehicle with a 15000 km trip departed 2024-01-10 08:00)
@pytest.mark.asyncio
async def test_odometer_below_last_trip_rejected(client, driver_headers, ledger_trip):
    response = await client.post(
        "/v1/trips",
        json=trip_payload(ledger_trip.vehicle_id, "2024-01-11T08:00:00Z", "2024-01-11T09:00:00Z", 14999),
        headers=driver_headers,
    )

    assert response.status_code == 400
    data = response.json()
    assert data["error_code"] == "ERR_TRIP_ODOMETER"
    assert data["details"]["kind"] == "OdometerNotIncreasing"
    assert data["last_odometer"] == 15000
    assert "15000" in data["error"]


@pytest.mark.asyncio
async def test_departure_before_last_trip_rejected(client, driver_headers, ledger_trip):
    response = await client.post(
        "/v1/trips",
        json=trip_payload(ledger_trip.vehicle_id, "2024-01-10T07:00:00Z", "2024-01-11T09:00:00Z", 15500),
        headers=driver_headers,
    )

    assert response.status_code == 400
    data = response.json()
    assert data["details"]["kind"] == "DepartureNotAfterLastTrip"
    assert data["last_departure"].startswith("2024-01-10T08:00:00")


@pytest.mark.asyncio
async def test_valid_next_trip_accepted(client, driver, driver_headers, ledger_trip):
    response = await client.post(
        "/v1/trips",
        json=trip_payload(ledger_trip.vehicle_id, "2024-01-11T08:00:00Z", "2024-01-11T09:00:00Z", 15500),
        headers=driver_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["driver_id"] == driver.id
    assert data["vehicle_id"] == ledger_trip.vehicle_id
    assert data["final_odometer"] == 15500
    assert data["start_odometer"] == 15000
    assert data["distance_km"] == 500
    assert data["purpose"] == "Client visit"


# TEST 2: Time range
@pytest.mark.asyncio
@pytest.mark.parametrize("arrival", ["2024-05-01T10:00:00Z", "2024-05-01T09:00:00Z"])
async def test_arrival_not_after_departure_rejected(client, driver_headers, assigned_vehicle, arrival):
    response = await client.post(
        "/v1/trips",
        json=trip_payload(assigned_vehicle.id, "2024-05-01T10:00:00Z", arrival, 99999),
        headers=driver_headers,
    )

    assert response.status_code == 400
    assert response.json()["details"]["kind"] == "InvalidTimeRange"


# TEST 3: First trip exemption
@pytest.mark.asyncio
async def test_first_trip_accepts_any_reading(client, driver_headers, assigned_vehicle):
    response = await client.post(
        "/v1/trips",
        json=trip_payload(assigned_vehicle.id, "2024-05-01T10:00:00Z", "2024-05-01T11:00:00Z", 0),
        headers=driver_headers,
    )

    assert response.status_code == 201
    # Registered odometer (14000) is above the reading, so no start is inferred
    assert response.json()["start_odometer"] is None


# TEST 4: Authorization gate
@pytest.mark.asyncio
async def test_unassigned_driver_cannot_log_trip(client, other_driver, headers_for, assigned_vehicle):
    response = await client.post(
        "/v1/trips",
        json=trip_payload(assigned_vehicle.id, "2024-05-01T10:00:00Z", "2024-05-01T11:00:00Z", 20000),
        headers=headers_for(other_driver),
    )

    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_002"


@pytest.mark.asyncio
async def test_unknown_vehicle_not_found(client, driver_headers, assigned_vehicle):
    response = await client.post(
        "/v1/trips",
        json=trip_payload(9999, "2024-05-01T10:00:00Z", "2024-05-01T11:00:00Z", 20000),
        headers=driver_headers,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_requires_bearer_token(client, assigned_vehicle):
    response = await client.get("/v1/trips")
    assert response.status_code in (401, 403)


# TEST 5: Malformed requests never reach the rules
@pytest.mark.asyncio
@pytest.mark.parametrize("field, value", [
    ("final_odometer", "fifteen"),
    ("final_odometer", -1),
    ("departure_at", "yesterday"),
    ("vehicle_id", "abc"),
])
async def test_malformed_body_rejected(client, driver_headers, assigned_vehicle, field, value):
    payload = trip_payload(assigned_vehicle.id, "2024-05-01T10:00:00Z", "2024-05-01T11:00:00Z", 20000)
    payload[field] = value

    response = await client.post("/v1/trips", json=payload, headers=driver_headers)

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_MALFORMED_REQUEST"


@pytest.mark.asyncio
async def test_missing_purpose_rejected(client, driver_headers, assigned_vehicle):
    payload = trip_payload(assigned_vehicle.id, "2024-05-01T10:00:00Z", "2024-05-01T11:00:00Z", 20000)
    del payload["purpose"]

    response = await client.post("/v1/trips", json=payload, headers=driver_headers)

    assert response.status_code == 400


# TEST 6: Listings
@pytest.mark.asyncio
async def test_driver_lists_only_own_trips(client, driver, other_driver, driver_headers, assigned_vehicle, trip_factory):
    await trip_factory(driver, assigned_vehicle, datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 9), 100)
    await trip_factory(driver, assigned_vehicle, datetime(2024, 1, 3, 8), datetime(2024, 1, 3, 9), 300)
    await trip_factory(other_driver, assigned_vehicle, datetime(2024, 1, 2, 8), datetime(2024, 1, 2, 9), 200)

    response = await client.get("/v1/trips", headers=driver_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {t["driver_id"] for t in data["trips"]} == {driver.id}
    # Most recent departure first
    assert [t["final_odometer"] for t in data["trips"]] == [300, 100]


@pytest.mark.asyncio
async def test_admin_lists_company_trips(client, driver, other_driver, admin_headers, assigned_vehicle, trip_factory):
    await trip_factory(driver, assigned_vehicle, datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 9), 100)
    await trip_factory(other_driver, assigned_vehicle, datetime(2024, 1, 2, 8), datetime(2024, 1, 2, 9), 200)

    response = await client.get("/v1/trips/admin", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [t["final_odometer"] for t in data["trips"]] == [200, 100]

    filtered = await client.get(f"/v1/trips/admin?driver_id={other_driver.id}", headers=admin_headers)
    assert filtered.json()["total"] == 1


@pytest.mark.asyncio
async def test_admin_listing_forbidden_for_drivers(client, driver_headers):
    response = await client.get("/v1/trips/admin", headers=driver_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_listing_is_tenant_scoped(
    client, driver, assigned_vehicle, trip_factory, other_company, user_factory, headers_for
):
    await trip_factory(driver, assigned_vehicle, datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 9), 100)
    rival_admin = await user_factory(other_company, "rival_admin", role=UserRole.ADMIN)

    response = await client.get("/v1/trips/admin", headers=headers_for(rival_admin))

    assert response.status_code == 200
    assert response.json()["total"] == 0


# TEST 7: Single trip access
@pytest.mark.asyncio
async def test_get_trip_owner_admin_and_stranger(
    client, driver_headers, admin_headers, other_driver, headers_for, ledger_trip
):
    assert (await client.get(f"/v1/trips/{ledger_trip.id}", headers=driver_headers)).status_code == 200
    assert (await client.get(f"/v1/trips/{ledger_trip.id}", headers=admin_headers)).status_code == 200
    assert (await client.get(f"/v1/trips/{ledger_trip.id}", headers=headers_for(other_driver))).status_code == 403
    assert (await client.get("/v1/trips/424242", headers=driver_headers)).status_code == 404


@pytest.mark.asyncio
async def test_trip_of_other_company_is_not_found(client, ledger_trip, other_company, user_factory, headers_for):
    rival_admin = await user_factory(other_company, "rival_admin", role=UserRole.ADMIN)

    response = await client.get(f"/v1/trips/{ledger_trip.id}", headers=headers_for(rival_admin))
    assert response.status_code == 404

    response = await client.delete(f"/v1/trips/{ledger_trip.id}", headers=headers_for(rival_admin))
    assert response.status_code == 404


# TEST 8: Creation is audited and moves the vehicle odometer
@pytest.mark.asyncio
async def test_trip_creation_audited(client, db_session, driver_headers, ledger_trip):
    response = await client.post(
        "/v1/trips",
        json=trip_payload(ledger_trip.vehicle_id, "2024-01-11T08:00:00Z", "2024-01-11T09:00:00Z", 15500),
        headers=driver_headers,
    )
    trip_id = response.json()["id"]

    history = await get_entity_history(db_session, "trip", trip_id)
    assert [h.action for h in history] == [AuditAction.TRIP_CREATED]
    assert history[0].meta_data["final_odometer"] == 15500

    vehicle = await db_session.get(Vehicle, ledger_trip.vehicle_id, populate_existing=True)
    assert vehicle.odometer == 15500


# TEST 9: A 500 means nothing was stored, so the client can retry
@pytest.mark.asyncio
async def test_server_error_on_create_is_safe_to_retry(client, driver_headers, ledger_trip, mocker):
    payload = trip_payload(ledger_trip.vehicle_id, "2024-01-11T08:00:00Z", "2024-01-11T09:00:00Z", 15500)
    mocker.patch.object(
        trip_service, "log_user_action",
        AsyncMock(side_effect=OperationalError("INSERT INTO audit_logs", {}, Exception("disk I/O error")))
    )

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as failing_client:
        response = await failing_client.post("/v1/trips", json=payload, headers=driver_headers)

    assert response.status_code == 500
    assert response.json()["error_code"] == "ERR_INTERNAL_SERVER"

    listing = await client.get("/v1/trips", headers=driver_headers)
    assert listing.json()["total"] == 1

    mocker.stopall()
    response = await client.post("/v1/trips", json=payload, headers=driver_headers)

    assert response.status_code == 201
    assert response.json()["start_odometer"] == 15000
