"""
Data scoping rules
A KAM only sees doctors of its own district and team; a distributor only
sees orders of the cities it serves. Super admins see everything.
"""
from typing import List
from fastapi import HTTPException, status
from sqlalchemy import false
from sqlmodel import Session, select

from dependencies import TokenData
from models import City, Doctor, Order


def doctor_scope_conditions(user: TokenData) -> list:
    """WHERE clauses restricting a doctor query to what the caller may see"""
    if not user.is_kam:
        return []
    if user.district_id is None or user.team_id is None:
        return [false()]
    return [Doctor.district_id == user.district_id, Doctor.team_id == user.team_id]


def can_access_doctor(user: TokenData, doctor: Doctor) -> bool:
    if not user.is_kam:
        return True
    return (
        user.district_id is not None
        and user.team_id is not None
        and doctor.district_id == user.district_id
        and doctor.team_id == user.team_id
    )


def ensure_doctor_access(user: TokenData, doctor: Doctor) -> None:
    if not can_access_doctor(user, doctor):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this doctor"
        )


def ensure_district_access(user: TokenData, district_id: int) -> None:
    """KAMs may only look at their own district"""
    if user.is_kam and user.district_id != district_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this district"
        )


def distributor_city_ids(session: Session, user: TokenData) -> List[int]:
    """Cities served by the distributor behind the token"""
    return list(session.exec(select(City.id).where(City.distributor_id == user.user_id)).all())


def order_scope_conditions(session: Session, user: TokenData) -> list:
    if not user.is_distributor:
        return []
    city_ids = distributor_city_ids(session, user)
    if not city_ids:
        return [false()]
    return [Order.patient_city_id.in_(city_ids)]


def ensure_order_access(session: Session, user: TokenData, order: Order, action: str = "view") -> None:
    if not user.is_distributor:
        return
    if order.patient_city_id not in distributor_city_ids(session, user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unauthorized to {action} this order"
        )
