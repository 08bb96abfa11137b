"""City management, including distributors created alongside a city"""
from conftest import add
from models import City, Distributor, DistributorChannel


def test_city_names_are_unique_ignoring_case(client, admin_headers, city):
    response = client.post(
        "/api/cities",
        json={"name": "  karachi ", "distributor_channel": "pillbox"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "City with this name already exists"


def test_local_city_creates_distributor_inline(client, session, admin_headers, district):
    response = client.post(
        "/api/cities",
        json={
            "name": "Hyderabad",
            "distributor_channel": "local",
            "district_id": district.id,
            "distributor_name": "Sindh Medical Supplies",
            "distributor_email": "Sindh@dasteyaar.com",
            "distributor_phone": "0221234567",
            "distributor_password": "Secret123!",
        },
        headers=admin_headers,
    )

    assert response.status_code == 201
    data = response.json()["data"]
    distributor = session.get(Distributor, data["distributor_id"])
    assert distributor.email == "sindh@dasteyaar.com"
    assert data["distributor"]["name"] == "Sindh Medical Supplies"


def test_all_cities_is_flattened(client, admin_headers, city, district):
    response = client.get("/api/cities/all", headers=admin_headers)

    assert response.status_code == 200
    rows = response.json()["data"]
    assert rows[0]["city_name"] == "Karachi"
    assert rows[0]["district_name"] == district.name


def test_deleting_last_city_removes_its_distributor(client, session, admin_headers, city, distributor):
    distributor_id = distributor.id

    response = client.delete(f"/api/cities/{city.id}", headers=admin_headers)

    assert response.status_code == 200
    assert session.get(Distributor, distributor_id) is None


def test_distributor_serving_other_cities_is_kept(client, session, admin_headers, city, distributor):
    distributor_id = distributor.id
    add(session, City(
        name="Thatta",
        distributor_channel=DistributorChannel.LOCAL.value,
        distributor_id=distributor_id,
    ))

    response = client.delete(f"/api/cities/{city.id}", headers=admin_headers)

    assert response.status_code == 200
    assert session.get(Distributor, distributor_id) is not None


def test_distributor_assigned_to_city_cannot_be_deleted(client, admin_headers, city, distributor):
    response = client.delete(f"/api/distributors/{distributor.id}", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Cannot delete distributor. They are assigned to one or more cities."


def test_create_distributor_requires_all_fields(client, admin_headers):
    response = client.post("/api/distributors", json={"email": "x@dasteyaar.com"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Email, password, name, and phone are required"
