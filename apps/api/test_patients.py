"""Patients and the prescriptions written for them"""
from conftest import add
from models import Prescription, Order, Product, RecordStatus


def test_create_patient_normalizes_mrn(client, admin_headers, doctor):
    response = client.post(
        "/api/patients",
        json={"mrn": " mrn-0042 ", "name": "Zara Sheikh", "phone": "03331234567", "gender": "female", "created_by": doctor.id},
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert response.json()["data"]["mrn"] == "MRN-0042"


def test_duplicate_mrn_is_rejected(client, admin_headers, patient, doctor):
    response = client.post(
        "/api/patients",
        json={"mrn": "mrn-0001", "name": "Someone Else", "phone": "0300", "created_by": doctor.id},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Patient with this MRN already exists"


def test_invalid_gender_is_rejected(client, admin_headers, doctor):
    response = client.post(
        "/api/patients",
        json={"mrn": "MRN-7", "name": "Zara", "phone": "0300", "gender": "unknown", "created_by": doctor.id},
        headers=admin_headers,
    )

    assert response.status_code == 400


def test_update_rejects_negative_age(client, session, admin_headers, patient):
    original_age = patient.age

    response = client.put(f"/api/patients/{patient.id}", json={"age": -3}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Age cannot be negative"
    session.refresh(patient)
    assert patient.age == original_age


def test_mrn_change_reaches_prescriptions(client, session, admin_headers, patient, doctor):
    prescription = add(session, Prescription(
        mrn=patient.mrn,
        patient_id=patient.id,
        doctor_id=doctor.id,
        district_id=doctor.district_id,
        prescription_text="Apply twice daily",
        duration_days=14,
    ))

    response = client.put(f"/api/patients/{patient.id}", json={"mrn": "mrn-0100"}, headers=admin_headers)

    assert response.status_code == 200
    session.refresh(prescription)
    assert prescription.mrn == "MRN-0100"


def test_patient_detail_includes_history(client, session, admin_headers, patient, doctor):
    add(session, Prescription(
        mrn=patient.mrn,
        patient_id=patient.id,
        doctor_id=doctor.id,
        district_id=doctor.district_id,
        prescription_text="Apply twice daily",
        duration_days=14,
    ))

    response = client.get(f"/api/patients/{patient.id}", headers=admin_headers)

    data = response.json()["data"]
    assert data["patient"]["mrn"] == "MRN-0001"
    assert data["stats"] == {"total_prescriptions": 1, "total_orders": 0}


def test_prescription_snapshots_selected_product(client, admin_headers, patient, doctor, product):
    response = client.post(
        "/api/prescriptions",
        json={
            "patient_id": patient.id,
            "doctor_id": doctor.id,
            "prescription_text": "Apply a thin layer at night",
            "duration_days": 30,
            "product_id": product.id,
            "quantity": 2,
        },
        headers=admin_headers,
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["mrn"] == patient.mrn
    assert data["district_id"] == doctor.district_id
    assert data["priority"] == "normal"
    assert data["selected_product"] == {
        "product_id": product.id, "name": "Acne Clear Gel", "sku": "ACG-30", "price": 850.0, "quantity": 2,
    }


def test_inactive_product_cannot_be_prescribed(client, session, admin_headers, patient, doctor):
    retired = add(session, Product(name="Old Cream", sku="OC-1", price=100.0, status=RecordStatus.INACTIVE.value))

    response = client.post(
        "/api/prescriptions",
        json={
            "patient_id": patient.id,
            "doctor_id": doctor.id,
            "prescription_text": "Apply daily",
            "duration_days": 7,
            "product_id": retired.id,
        },
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Selected product is not available"


def test_prescription_with_order_cannot_be_deleted(client, session, admin_headers, patient, doctor):
    prescription = add(session, Prescription(
        mrn=patient.mrn,
        patient_id=patient.id,
        doctor_id=doctor.id,
        district_id=doctor.district_id,
        prescription_text="Apply twice daily",
        duration_days=14,
    ))
    add(session, Order(
        prescription_id=prescription.id,
        shopify_order_id="5001",
        patient_mrn=patient.mrn,
        patient_name=patient.name,
        doctor_id=doctor.id,
        doctor_name=doctor.name,
    ))

    response = client.delete(f"/api/prescriptions/{prescription.id}", headers=admin_headers)

    assert response.status_code == 400
