"""Sales reports and the admin dashboard"""
import pytest

from conftest import add, make_doctor
from models import Prescription, Order, OrderStatus


def prescribe(session, patient, doctor):
    return add(session, Prescription(
        mrn=patient.mrn,
        patient_id=patient.id,
        doctor_id=doctor.id,
        district_id=doctor.district_id,
        prescription_text="Apply twice daily",
        duration_days=14,
    ))


def order_for(session, prescription, shopify_order_id, total, status=OrderStatus.PENDING):
    return add(session, Order(
        prescription_id=prescription.id,
        shopify_order_id=shopify_order_id,
        patient_mrn=prescription.mrn,
        patient_name="Bilal Ahmed",
        doctor_id=prescription.doctor_id,
        doctor_name="Dr. Ayesha",
        total_amount=total,
        order_status=status.value,
    ))


@pytest.fixture
def sales(session, patient, doctor, district, other_team):
    outsider = make_doctor(session, "outsider@dasteyaar.com", district, other_team)
    order_for(session, prescribe(session, patient, doctor), "5001", 1000.0, OrderStatus.FULFILLED)
    order_for(session, prescribe(session, patient, doctor), "5002", 500.0)
    prescribe(session, patient, doctor)
    order_for(session, prescribe(session, patient, outsider), "5003", 4000.0, OrderStatus.FULFILLED)
    return outsider


def test_sales_summary_for_super_admin(client, admin_headers, sales):
    response = client.get("/api/reports/sales", headers=admin_headers)

    summary = response.json()["data"]["summary"]
    assert summary["total_revenue"] == 5500.0
    assert summary["total_prescriptions"] == 4
    assert summary["total_orders"] == 3
    assert summary["active_patients"] == 1
    assert summary["average_order_value"] == pytest.approx(1833.33)
    assert summary["fulfillment_rate"] == pytest.approx(66.67)


def test_sales_doctors_sorted_by_revenue(client, admin_headers, sales, doctor):
    response = client.get("/api/reports/sales", headers=admin_headers)

    doctors = response.json()["data"]["doctors"]
    assert [d["doctor"]["id"] for d in doctors] == [sales.id, doctor.id]
    assert doctors[1]["prescriptions"] == 3
    assert doctors[1]["orders"] == 2


def test_kam_sales_are_limited_to_own_team(client, kam, kam_headers, sales, other_team, district):
    response = client.get(f"/api/reports/sales?team_id={other_team.id}", headers=kam_headers)

    data = response.json()["data"]
    assert data["summary"]["total_revenue"] == 1500.0
    assert data["context"]["type"] == "district"
    assert data["context"]["id"] == district.id
    assert data["context"]["kam"]["id"] == kam.id


def test_team_context(client, admin_headers, sales, other_team):
    response = client.get(f"/api/reports/sales?team_id={other_team.id}", headers=admin_headers)

    data = response.json()["data"]
    assert data["context"] == {"type": "team", "id": other_team.id, "name": other_team.name}
    assert data["summary"]["total_revenue"] == 4000.0


def test_team_performance_is_super_admin_only(client, kam_headers):
    response = client.get("/api/reports/team-performance", headers=kam_headers)

    assert response.status_code == 403


def test_team_performance_totals(client, admin_headers, sales):
    response = client.get("/api/reports/team-performance", headers=admin_headers)

    data = response.json()["data"]
    assert [t["team"]["name"] for t in data["teams"]] == ["Derma South", "Derma North"]
    assert data["totals"]["revenue"] == 5500.0
    assert data["totals"]["orders"] == 3


def test_dashboard_stats(client, admin_headers, sales):
    response = client.get("/api/dashboard/stats", headers=admin_headers)

    data = response.json()["data"]
    assert data["total_doctors"] == 2
    assert data["total_orders"] == 3
    assert data["order_stats"]["fulfilled"] == 2
    assert data["order_stats"]["pending"] == 1
    assert data["order_stats"]["fulfillment_rate"] == 66.7
    assert data["doctor_stats"]["active_rate"] == 100.0


def test_dashboard_recent_orders_and_activities(client, admin_headers, sales):
    orders = client.get("/api/dashboard/recent-orders", headers=admin_headers).json()["data"]
    activities = client.get("/api/dashboard/activities", headers=admin_headers).json()["data"]

    assert len(orders) == 3
    assert orders[0]["patient"]["mrn"] == "MRN-0001"
    assert len(activities) == 4
    assert all(a["type"] == "prescription" for a in activities)


def test_dashboard_is_super_admin_only(client, kam_headers):
    response = client.get("/api/dashboard/stats", headers=kam_headers)

    assert response.status_code == 403
