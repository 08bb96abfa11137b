"""Timestamps are stored as naive UTC and survive a round trip through the database"""
from datetime import datetime, timedelta

from sqlmodel import select

from models import District
from services.shopify_service import parse_shopify_timestamp


def test_default_timestamps_are_written(session, district):
    stored = session.exec(select(District).where(District.code == "LHR")).one()

    assert stored.created_at is not None
    assert stored.created_at.tzinfo is None
    assert datetime.utcnow() - stored.created_at < timedelta(minutes=1)


def test_naive_utc_update_is_written(session, district):
    district.updated_at = datetime(2024, 3, 2, 10, 30)
    session.add(district)
    session.commit()
    session.expire_all()

    stored = session.get(District, district.id)
    assert stored.updated_at == datetime(2024, 3, 2, 10, 30)


def test_shopify_timestamp_can_be_stored(session, district):
    district.updated_at = parse_shopify_timestamp("2024-03-02T15:30:00+05:00")
    session.add(district)
    session.commit()
    session.expire_all()

    assert session.get(District, district.id).updated_at == datetime(2024, 3, 2, 10, 30)


def test_api_write_succeeds(client, admin_headers):
    response = client.post("/api/districts", json={"name": "Multan", "code": "mul"}, headers=admin_headers)

    assert response.status_code == 201
