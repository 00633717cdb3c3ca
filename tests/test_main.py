import pytest
from fastapi.testclient import TestClient

from fleetlink.config import Settings
from fleetlink.main import create_app
from fleetlink.repository import NewBooking
from fleetlink.rules import parse_start_time


# ------------------ fixtures ------------------
@pytest.fixture
def app():
    return create_app(Settings(DATABASE_URL="sqlite://", _env_file=None))


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def add_vehicle(client, name, capacity, tyres=4):
    response = client.post("/api/vehicles", json={"name": name, "capacityKg": capacity, "tyres": tyres})
    assert response.status_code == 201
    return response.json()


def seed_booking(app, vehicle_id, start, end, hours):
    return app.state.repository.create_booking(NewBooking(
        vehicle_id=vehicle_id,
        customer_id="customer1",
        from_pincode="400001",
        to_pincode="400002",
        start_time=parse_start_time(start),
        end_time=parse_start_time(end),
        estimated_ride_duration_hours=hours,
    ))


# ------------------ vehicles ------------------
def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"


def test_create_vehicle(client):
    response = client.post("/api/vehicles", json={"name": "Truck A", "capacityKg": 1000, "tyres": 6})

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Truck A"
    assert body["capacityKg"] == 1000
    assert body["tyres"] == 6
    assert body["id"] is not None


def test_create_vehicle_trims_name(client):
    body = add_vehicle(client, "  Truck B  ", 800)
    assert body["name"] == "Truck B"


def test_create_vehicle_missing_fields(client):
    response = client.post("/api/vehicles", json={"name": "Incomplete Vehicle"})

    assert response.status_code == 400
    assert "capacityKg" in response.json()["detail"]
    assert "tyres" in response.json()["detail"]


def test_create_vehicle_invalid_capacity(client):
    response = client.post("/api/vehicles", json={"name": "Invalid Vehicle", "capacityKg": -100, "tyres": 4})

    assert response.status_code == 400
    assert "capacityKg must be a positive number" in response.json()["detail"]


@pytest.mark.parametrize("capacity", ["NaN", "Infinity"])
def test_create_vehicle_non_finite_capacity(client, capacity):
    response = client.post(
        "/api/vehicles",
        content=f'{{"name": "Truck", "capacityKg": {capacity}, "tyres": 4}}',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert "capacityKg must be a positive number" in response.json()["detail"]
    assert client.get("/api/vehicles").json() == []


def test_create_vehicle_too_few_tyres(client):
    response = client.post("/api/vehicles", json={"name": "Unicycle", "capacityKg": 50, "tyres": 1})

    assert response.status_code == 400
    assert "tyres" in response.json()["detail"]


def test_create_vehicle_blank_name(client):
    response = client.post("/api/vehicles", json={"name": "   ", "capacityKg": 50, "tyres": 2})

    assert response.status_code == 400
    assert "name" in response.json()["detail"]


def test_get_vehicle(client):
    vehicle = add_vehicle(client, "Truck A", 1000)

    assert client.get(f"/api/vehicles/{vehicle['id']}").json()["name"] == "Truck A"
    assert client.get("/api/vehicles/9999").status_code == 404


def test_list_vehicles_in_insertion_order(client):
    add_vehicle(client, "First", 100)
    add_vehicle(client, "Second", 200)

    names = [v["name"] for v in client.get("/api/vehicles").json()]
    assert names == ["First", "Second"]


# ------------------ availability ------------------
def test_available_by_capacity(client):
    add_vehicle(client, "Small Truck", 500)
    add_vehicle(client, "Large Truck", 1500, tyres=6)

    response = client.get("/api/vehicles/available", params={
        "capacityRequired": 600,
        "fromPincode": "400001",
        "toPincode": "400002",
        "startTime": "2023-12-01T10:00:00Z",
    })

    assert response.status_code == 200
    body = response.json()
    assert len(body) == 1
    assert body[0]["name"] == "Large Truck"
    assert body[0]["estimatedRideDurationHours"] == 1


def test_available_excludes_conflicting_bookings(app, client):
    add_vehicle(client, "Small Truck", 500)
    large = add_vehicle(client, "Large Truck", 1500, tyres=6)
    seed_booking(app, large["id"], "2023-12-01T09:00:00Z", "2023-12-01T12:00:00Z", 3)

    response = client.get("/api/vehicles/available", params={
        "capacityRequired": 600,
        "fromPincode": "400001",
        "toPincode": "400002",
        "startTime": "2023-12-01T10:00:00Z",
    })

    assert response.status_code == 200
    assert response.json() == []


def test_available_includes_vehicle_after_booking_ends(app, client):
    large = add_vehicle(client, "Large Truck", 1500, tyres=6)
    seed_booking(app, large["id"], "2023-12-01T09:00:00Z", "2023-12-01T12:00:00Z", 3)

    response = client.get("/api/vehicles/available", params={
        "capacityRequired": 600,
        "fromPincode": "400001",
        "toPincode": "400002",
        "startTime": "2023-12-01T12:00:00Z",
    })

    assert [v["id"] for v in response.json()] == [large["id"]]


def test_available_missing_query_parameters(client):
    response = client.get("/api/vehicles/available", params={"capacityRequired": 500})

    assert response.status_code == 400
    assert "startTime" in response.json()["detail"]


def test_available_rejects_non_positive_capacity(client):
    response = client.get("/api/vehicles/available", params={
        "capacityRequired": 0,
        "fromPincode": "400001",
        "toPincode": "400002",
        "startTime": "2023-12-01T10:00:00Z",
    })

    assert response.status_code == 400
    assert "capacityRequired" in response.json()["detail"]


@pytest.mark.parametrize("capacity", ["nan", "inf"])
def test_available_rejects_non_finite_capacity(client, capacity):
    add_vehicle(client, "Large Truck", 1500, tyres=6)

    response = client.get("/api/vehicles/available", params={
        "capacityRequired": capacity,
        "fromPincode": "400001",
        "toPincode": "400002",
        "startTime": "2023-12-01T10:00:00Z",
    })

    assert response.status_code == 400
    assert "capacityRequired" in response.json()["detail"]


def test_available_rejects_bad_start_time(client):
    response = client.get("/api/vehicles/available", params={
        "capacityRequired": 10,
        "fromPincode": "400001",
        "toPincode": "400002",
        "startTime": "tomorrow",
    })

    assert response.status_code == 400
    assert "startTime" in response.json()["detail"]


# ------------------ bookings ------------------
def test_create_booking(client):
    vehicle = add_vehicle(client, "Test Truck", 1000)

    response = client.post("/api/bookings", json={
        "vehicleId": vehicle["id"],
        "fromPincode": "400001",
        "toPincode": "400005",
        "startTime": "2023-12-01T10:00:00Z",
        "customerId": "customer123",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["vehicleId"] == vehicle["id"]
    assert body["vehicle"]["name"] == "Test Truck"
    assert body["customerId"] == "customer123"
    assert body["estimatedRideDurationHours"] == 4
    assert body["startTime"] == "2023-12-01T10:00:00+00:00"
    assert body["endTime"] == "2023-12-01T14:00:00+00:00"


def test_booking_conflict(app, client):
    vehicle = add_vehicle(client, "Test Truck", 1000)
    seed_booking(app, vehicle["id"], "2023-12-01T09:00:00Z", "2023-12-01T12:00:00Z", 3)

    response = client.post("/api/bookings", json={
        "vehicleId": vehicle["id"],
        "fromPincode": "400001",
        "toPincode": "400003",
        "startTime": "2023-12-01T10:00:00Z",
        "customerId": "customer2",
    })

    assert response.status_code == 409
    assert "already booked for an overlapping time slot" in response.json()["detail"]


def test_booking_unknown_vehicle(client):
    response = client.post("/api/bookings", json={
        "vehicleId": 424242,
        "fromPincode": "400001",
        "toPincode": "400002",
        "startTime": "2023-12-01T10:00:00Z",
        "customerId": "customer123",
    })

    assert response.status_code == 404
    assert response.json()["detail"] == "Vehicle not found"


def test_booking_missing_fields(client):
    response = client.post("/api/bookings", json={"vehicleId": 1})

    assert response.status_code == 400
    assert "customerId" in response.json()["detail"]


def test_booking_blank_customer(client):
    vehicle = add_vehicle(client, "Test Truck", 1000)

    response = client.post("/api/bookings", json={
        "vehicleId": vehicle["id"],
        "fromPincode": "400001",
        "toPincode": "400002",
        "startTime": "2023-12-01T10:00:00Z",
        "customerId": "  ",
    })

    assert response.status_code == 400


def test_booking_listings(client):
    vehicle = add_vehicle(client, "Test Truck", 1000)
    client.post("/api/bookings", json={
        "vehicleId": vehicle["id"],
        "fromPincode": "400001",
        "toPincode": "400002",
        "startTime": "2023-12-01T10:00:00Z",
        "customerId": "customer123",
    })

    bookings = client.get("/api/bookings").json()
    assert len(bookings) == 1
    assert bookings[0]["vehicle"]["id"] == vehicle["id"]

    per_vehicle = client.get(f"/api/vehicles/{vehicle['id']}/bookings").json()
    assert [b["id"] for b in per_vehicle] == [bookings[0]["id"]]
    assert client.get("/api/vehicles/9999/bookings").status_code == 404
