"""Doctor management and KAM data scoping"""
from conftest import make_doctor, add
from models import Doctor, Prescription


def doctor_payload(district, team, email="new.doctor@dasteyaar.com", **overrides):
    payload = {
        "email": email,
        "password": "Secret123!",
        "name": "Dr. Sana Malik",
        "phone": "03211234567",
        "pmdc_number": "PMDC-55821",
        "specialty": "Dermatology",
        "district_id": district.id,
        "team_id": team.id,
    }
    payload.update(overrides)
    return payload


def test_admin_creates_doctor_owned_by_team_kam(client, admin_headers, kam, district, team):
    response = client.post("/api/doctors", json=doctor_payload(district, team), headers=admin_headers)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["kam_id"] == kam.id
    assert data["status"] == "active"


def test_create_doctor_requires_all_fields(client, admin_headers, district, team):
    response = client.post(
        "/api/doctors",
        json=doctor_payload(district, team, pmdc_number=None),
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "All fields are required"


def test_kam_creates_doctor_in_own_team_only(client, kam, kam_headers, district, team, other_team):
    response = client.post(
        "/api/doctors",
        json=doctor_payload(district, other_team),
        headers=kam_headers,
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["team_id"] == team.id
    assert data["kam_id"] == kam.id


def test_kam_lists_only_own_team(client, session, kam_headers, district, team, other_team, doctor):
    make_doctor(session, "elsewhere@dasteyaar.com", district, other_team)

    response = client.get("/api/doctors", headers=kam_headers)

    emails = [d["email"] for d in response.json()["data"]["doctors"]]
    assert emails == [doctor.email]
    assert response.json()["data"]["pagination"]["total"] == 1


def test_kam_cannot_open_other_team_doctor(client, session, kam_headers, district, other_team):
    outsider = make_doctor(session, "elsewhere@dasteyaar.com", district, other_team)

    response = client.get(f"/api/doctors/{outsider.id}", headers=kam_headers)

    assert response.status_code == 403
    assert response.json()["error"]["message"] == "You do not have access to this doctor"


def test_kam_cannot_move_doctor(client, kam_headers, doctor, other_team):
    response = client.put(
        f"/api/doctors/{doctor.id}",
        json={"team_id": other_team.id},
        headers=kam_headers,
    )

    assert response.status_code == 403
    assert response.json()["error"]["message"] == "You cannot change doctor district or team"


def test_status_toggle_round_trips(client, admin_headers, doctor):
    response = client.patch(f"/api/doctors/{doctor.id}/status", json={"status": "inactive"}, headers=admin_headers)
    assert response.json()["message"] == "Doctor deactivated successfully"
    assert response.json()["data"]["status"] == "inactive"

    response = client.patch(f"/api/doctors/{doctor.id}/status", json={"status": "active"}, headers=admin_headers)
    assert response.json()["message"] == "Doctor activated successfully"
    assert response.json()["data"]["status"] == "active"


def test_invalid_status_is_rejected(client, admin_headers, doctor):
    response = client.patch(f"/api/doctors/{doctor.id}/status", json={"status": "suspended"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid status. Must be active or inactive"


def test_doctor_with_prescriptions_cannot_be_deleted(client, session, admin_headers, doctor, patient):
    add(session, Prescription(
        mrn=patient.mrn,
        patient_id=patient.id,
        doctor_id=doctor.id,
        district_id=doctor.district_id,
        prescription_text="Apply twice daily",
        duration_days=14,
    ))

    response = client.delete(f"/api/doctors/{doctor.id}", headers=admin_headers)

    assert response.status_code == 400
    assert session.get(Doctor, doctor.id) is not None


def test_doctor_with_patients_cannot_be_deleted(client, session, admin_headers, doctor, patient):
    response = client.delete(f"/api/doctors/{doctor.id}", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Cannot delete doctor with 1 patient(s). Deactivate the doctor instead."
    assert session.get(Doctor, doctor.id) is not None


def test_unknown_doctor_is_404(client, admin_headers):
    response = client.get("/api/doctors/9999", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"
