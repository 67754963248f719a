"""
Integration tests for the REST API endpoints.

Rows are created through the ``factory`` fixture and committed, then the
app is driven over ``httpx`` with bearer session tokens.  Failures are
checked for both the HTTP status and the ``code`` in the error body.
"""

import pytest
from httpx import AsyncClient

from glidee.domain.clock import today
from glidee.domain.enums import TripStatus, UserRole

API = "/api/v1"


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get(f"{API}/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# ── Sessions ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_session_is_null_when_signed_out(client: AsyncClient):
    resp = await client.get(f"{API}/session")
    assert resp.status_code == 200
    assert resp.json() == {"user": None}


@pytest.mark.asyncio
async def test_session_from_bearer_and_cookie(client: AsyncClient, factory):
    parent = await factory.user(name="Sarah Johnson")
    token = await factory.token(parent)

    resp = await client.get(f"{API}/session", headers=_auth(token))
    assert resp.json()["user"]["name"] == "Sarah Johnson"
    assert resp.json()["user"]["role"] == "parent"

    client.cookies.set("glidee_session", token)
    resp = await client.get(f"{API}/session")
    assert resp.json()["user"]["id"] == parent.id


@pytest.mark.asyncio
async def test_unauthenticated_request_is_401(client: AsyncClient):
    resp = await client.get(f"{API}/students")
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Unauthorized: Please sign in", "code": "unauthenticated"}
    assert resp.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_admin_route_rejects_parent(client: AsyncClient, factory):
    token = await factory.token(await factory.user())
    resp = await client.get(f"{API}/admin/vehicles", headers=_auth(token))
    assert resp.status_code == 403
    assert resp.json()["code"] == "admin-required"


# ── Parent flow ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_parent_books_and_cancels(client: AsyncClient, factory):
    parent = await factory.user()
    token = await factory.token(parent)
    route = await factory.route()
    trip = await factory.trip(route, vehicle=await factory.vehicle(capacity=2))

    resp = await client.post(
        f"{API}/students",
        headers=_auth(token),
        json={"name": "Emma Johnson", "school_name": "Lincoln High School", "grade": "10th"},
    )
    assert resp.status_code == 201
    student_id = resp.json()["id"]

    resp = await client.get(f"{API}/routes/available", params={"date": today()}, headers=_auth(token))
    assert resp.status_code == 200
    [availability] = resp.json()
    assert availability["trips"][0]["trip"]["id"] == trip.id
    assert availability["trips"][0]["seats"]["available_seats"] == 2

    resp = await client.post(
        f"{API}/bookings",
        headers=_auth(token),
        json={
            "trip_id": trip.id,
            "student_id": student_id,
            "pickup_stop_id": route.stops[0].id,
            "dropoff_stop_id": route.stops[-1].id,
        },
    )
    assert resp.status_code == 201
    receipt = resp.json()
    assert receipt["seat_number"] == 1
    assert receipt["message"] == "Booking confirmed successfully"

    resp = await client.get(f"{API}/bookings", headers=_auth(token))
    assert [b["booking"]["id"] for b in resp.json()["upcoming"]] == [receipt["booking_id"]]

    resp = await client.patch(f"{API}/bookings/{receipt['booking_id']}/cancel", headers=_auth(token))
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"

    resp = await client.patch(f"{API}/bookings/{receipt['booking_id']}/cancel", headers=_auth(token))
    assert resp.status_code == 409
    assert resp.json()["code"] == "already-cancelled"


@pytest.mark.asyncio
async def test_full_trip_is_409(client: AsyncClient, factory):
    parent = await factory.user()
    token = await factory.token(parent)
    trip = await factory.trip(await factory.route(), vehicle=await factory.vehicle(capacity=1))
    await factory.booking(trip, await factory.student(parent, name="Emma Johnson"))
    student = await factory.student(parent, name="Liam Johnson")

    resp = await client.post(
        f"{API}/bookings",
        headers=_auth(token),
        json={"trip_id": trip.id, "student_id": student.id},
    )
    assert resp.status_code == 409
    assert resp.json() == {"detail": "No seats available on this trip", "code": "trip-full"}


@pytest.mark.asyncio
async def test_booking_someone_elses_student_is_403(client: AsyncClient, factory):
    token = await factory.token(await factory.user())
    student = await factory.student(await factory.user())
    trip = await factory.trip(await factory.route(), vehicle=await factory.vehicle())

    resp = await client.post(
        f"{API}/bookings",
        headers=_auth(token),
        json={"trip_id": trip.id, "student_id": student.id},
    )
    assert resp.status_code == 403
    assert resp.json()["code"] == "student-not-owned"


@pytest.mark.asyncio
async def test_malformed_input_is_422(client: AsyncClient, factory):
    token = await factory.token(await factory.user())

    resp = await client.post(
        f"{API}/bookings", headers=_auth(token), json={"trip_id": "x", "student_id": "y"}
    )
    assert resp.status_code == 422

    resp = await client.get(f"{API}/routes/available", params={"date": "18/10/2026"}, headers=_auth(token))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_profile_update(client: AsyncClient, factory):
    token = await factory.token(await factory.user())

    resp = await client.patch(
        f"{API}/profile",
        headers=_auth(token),
        json={"name": "Sarah J", "image": "https://img.example.com/me.png"},
    )
    assert resp.status_code == 200
    assert resp.json()["image"] == "https://img.example.com/me.png"

    resp = await client.patch(f"{API}/profile", headers=_auth(token), json={"name": "Sarah J", "image": ""})
    assert resp.json()["image"] is None


# ── Driver flow ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_driver_runs_a_trip(client: AsyncClient, factory):
    driver = await factory.user(UserRole.DRIVER)
    token = await factory.token(driver)
    trip = await factory.trip(await factory.route(), driver=driver, vehicle=await factory.vehicle())
    booking = await factory.booking(trip, await factory.student(await factory.user()))

    resp = await client.get(f"{API}/driver/schedule", headers=_auth(token))
    assert [t["trip"]["id"] for t in resp.json()] == [trip.id]

    resp = await client.patch(
        f"{API}/driver/bookings/{booking.id}/passenger", headers=_auth(token), json={"action": "board"}
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "trip-not-active"

    resp = await client.patch(
        f"{API}/driver/trips/{trip.id}/status", headers=_auth(token), json={"status": "active"}
    )
    assert resp.status_code == 200
    assert resp.json()["started_at"] is not None

    resp = await client.patch(
        f"{API}/driver/trips/{trip.id}/location", headers=_auth(token), json={"lat": 39.74, "lng": -104.99}
    )
    assert resp.json()["current_lat"] == 39.74

    resp = await client.patch(
        f"{API}/driver/bookings/{booking.id}/passenger", headers=_auth(token), json={"action": "board"}
    )
    assert resp.status_code == 200
    assert resp.json()["boarded_at"] is not None

    resp = await client.post(
        f"{API}/driver/trips/{trip.id}/incidents",
        headers=_auth(token),
        json={"description": "Traffic jam on Main St", "severity": "low"},
    )
    assert resp.status_code == 201
    assert resp.json()["lat"] == 39.74

    resp = await client.get(f"{API}/driver/trips/{trip.id}", headers=_auth(token))
    detail = resp.json()
    assert detail["bookings"][0]["on_board"] is True
    assert len(detail["incidents"]) == 1

    resp = await client.patch(
        f"{API}/driver/trips/{trip.id}/status", headers=_auth(token), json={"status": "completed"}
    )
    assert resp.json()["status"] == "completed"

    resp = await client.patch(
        f"{API}/driver/trips/{trip.id}/status", headers=_auth(token), json={"status": "active"}
    )
    assert resp.status_code == 409
    assert resp.json() == {
        "detail": "Cannot transition from completed to active",
        "code": "invalid-transition",
    }

    resp = await client.get(f"{API}/driver/incidents", headers=_auth(token))
    assert resp.json()[0]["trip"]["id"] == trip.id


@pytest.mark.asyncio
async def test_driver_cannot_touch_other_trip(client: AsyncClient, factory):
    token = await factory.token(await factory.user(UserRole.DRIVER))
    trip = await factory.trip(await factory.route(), driver=await factory.user(UserRole.DRIVER))

    resp = await client.get(f"{API}/driver/trips/{trip.id}", headers=_auth(token))
    assert resp.status_code == 403
    assert resp.json()["code"] == "trip-not-assigned"

    resp = await client.get(f"{API}/driver/trips/does-not-exist", headers=_auth(token))
    assert resp.status_code == 404


# ── Admin flow ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_admin_sets_up_network(client: AsyncClient, factory):
    token = await factory.token(await factory.user(UserRole.ADMIN))
    driver = await factory.user(UserRole.DRIVER)

    resp = await client.post(
        f"{API}/admin/vehicles",
        headers=_auth(token),
        json={"license_plate": "SCH-001", "bus_number": "Bus 42", "capacity": 30, "year": 2022},
    )
    assert resp.status_code == 201
    vehicle_id = resp.json()["id"]
    assert resp.json()["status"] == "active"

    resp = await client.post(
        f"{API}/admin/vehicles",
        headers=_auth(token),
        json={"license_plate": "SCH-001", "bus_number": "Bus 43", "capacity": 30},
    )
    assert resp.status_code == 409

    resp = await client.post(
        f"{API}/admin/routes",
        headers=_auth(token),
        json={
            "name": "Morning Route A",
            "start_point": "Downtown Terminal",
            "end_point": "Lincoln High School",
            "estimated_duration": 45,
            "stops": [
                {"name": "Downtown Terminal", "lat": 39.7392, "lng": -104.9903, "order_index": 0},
                {"name": "Lincoln High School", "lat": 39.75, "lng": -104.975, "order_index": 1},
            ],
        },
    )
    assert resp.status_code == 201
    route_id = resp.json()["route"]["id"]
    assert len(resp.json()["stops"]) == 2

    resp = await client.post(
        f"{API}/admin/trips",
        headers=_auth(token),
        json={"route_id": route_id, "date": today(), "scheduled_start_time": "07:30"},
    )
    assert resp.status_code == 201
    trip_id = resp.json()["id"]

    resp = await client.patch(
        f"{API}/admin/trips/{trip_id}/assignment",
        headers=_auth(token),
        json={"driver_id": driver.id, "vehicle_id": vehicle_id},
    )
    assert resp.status_code == 200
    assert resp.json()["driver_id"] == driver.id

    resp = await client.get(f"{API}/admin/fleet", headers=_auth(token))
    assert resp.json()["stats"]["scheduled_trips"] == 1
    assert resp.json()["stats"]["total_vehicles"] == 1

    resp = await client.patch(
        f"{API}/admin/vehicles/{vehicle_id}/status", headers=_auth(token), json={"status": "maintenance"}
    )
    assert resp.json()["status"] == "maintenance"

    resp = await client.get(f"{API}/admin/drivers", headers=_auth(token))
    assert [d["id"] for d in resp.json()] == [driver.id]


@pytest.mark.asyncio
async def test_route_with_repeated_stop_order_is_422(client: AsyncClient, factory):
    token = await factory.token(await factory.user(UserRole.ADMIN))
    stop = {"name": "Same Place", "lat": 39.7, "lng": -104.9, "order_index": 0}

    resp = await client.post(
        f"{API}/admin/routes",
        headers=_auth(token),
        json={
            "name": "Broken",
            "start_point": "Here",
            "end_point": "There",
            "estimated_duration": 10,
            "stops": [stop, stop],
        },
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_admin_bookings_and_live_map(client: AsyncClient, factory):
    token = await factory.token(await factory.user(UserRole.ADMIN))
    trip = await factory.trip(
        await factory.route(),
        driver=await factory.user(UserRole.DRIVER, name="Michael Driver"),
        vehicle=await factory.vehicle(),
        status=TripStatus.ACTIVE,
    )
    booking = await factory.booking(trip, await factory.student(await factory.user()))

    resp = await client.get(f"{API}/admin/bookings", params={"status": "confirmed"}, headers=_auth(token))
    assert [b["booking"]["id"] for b in resp.json()] == [booking.id]

    resp = await client.patch(
        f"{API}/admin/bookings/{booking.id}/status", headers=_auth(token), json={"status": "cancelled"}
    )
    assert resp.json()["status"] == "cancelled"

    resp = await client.get(f"{API}/admin/live-map", headers=_auth(token))
    [bus] = resp.json()
    assert bus["driver_name"] == "Michael Driver"
    assert bus["status"] == "active"
    assert bus["total_passengers"] == 1
