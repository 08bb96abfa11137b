from fastapi import APIRouter, Depends
from sqlmodel import Session, select
from typing import Optional, List
from datetime import date, datetime, time
from database import get_session
from models import Doctor, Prescription, Order, Team, District, User, UserRole, OrderStatus, RecordStatus
from schemas import UserBrief
from dependencies import TokenData, require_staff, require_super_admin
from utils.response import success_response
from validators.assignment_validator import find_active_kam
from sqlalchemy import false
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["Reports"])


def prescriptions_in_range(
    session: Session,
    doctor_ids: List[int],
    date_from: Optional[date],
    date_to: Optional[date]
) -> List[Prescription]:
    """Prescriptions of the given doctors; date_to covers its whole day"""
    if not doctor_ids:
        return []
    query = select(Prescription).where(Prescription.doctor_id.in_(doctor_ids))
    if date_from:
        query = query.where(Prescription.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        query = query.where(Prescription.created_at <= datetime.combine(date_to, time.max))
    return list(session.exec(query).all())

def orders_for(session: Session, prescriptions: List[Prescription]) -> List[Order]:
    if not prescriptions:
        return []
    return list(session.exec(
        select(Order).where(Order.prescription_id.in_([p.id for p in prescriptions]))
    ).all())

def fulfillment_rate(orders: List[Order]) -> float:
    if not orders:
        return 0.0
    fulfilled = sum(1 for o in orders if o.order_status == OrderStatus.FULFILLED.value)
    return fulfilled / len(orders) * 100

def date_range(date_from: Optional[date], date_to: Optional[date]) -> dict:
    return {"from": date_from, "to": date_to}

@router.get("/sales")
def sales_report(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    team_id: Optional[int] = None,
    district_id: Optional[int] = None,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    """Revenue and prescribing activity per doctor.

    A KAM always gets its own district and team, whatever filters it sends.
    A super admin may narrow to one team or, failing that, one district.
    """
    doctor_query = select(Doctor).where(Doctor.status == RecordStatus.ACTIVE.value)
    if current_user.is_kam:
        team_id = None
        district_id = current_user.district_id
        if current_user.district_id and current_user.team_id:
            doctor_query = doctor_query.where(
                Doctor.district_id == current_user.district_id,
                Doctor.team_id == current_user.team_id,
            )
        else:
            doctor_query = doctor_query.where(false())
    elif team_id:
        doctor_query = doctor_query.where(Doctor.team_id == team_id)
    elif district_id:
        doctor_query = doctor_query.where(Doctor.district_id == district_id)

    doctors = session.exec(doctor_query).all()
    prescriptions = prescriptions_in_range(session, [d.id for d in doctors], date_from, date_to)
    orders = orders_for(session, prescriptions)

    orders_by_prescription = {o.prescription_id: o for o in orders}
    total_revenue = sum(o.total_amount or 0 for o in orders)
    average_order_value = total_revenue / len(orders) if orders else 0

    doctor_rows = []
    for doctor in doctors:
        doctor_prescriptions = [p for p in prescriptions if p.doctor_id == doctor.id]
        doctor_orders = [orders_by_prescription[p.id] for p in doctor_prescriptions if p.id in orders_by_prescription]
        doctor_rows.append({
            "doctor": {"id": doctor.id, "name": doctor.name, "specialty": doctor.specialty},
            "prescriptions": len(doctor_prescriptions),
            "orders": len(doctor_orders),
            "revenue": round(sum(o.total_amount or 0 for o in doctor_orders), 2),
            "patients": len({p.patient_id for p in doctor_prescriptions}),
        })
    doctor_rows.sort(key=lambda row: row["revenue"], reverse=True)

    context = None
    if team_id:
        team = session.get(Team, team_id)
        if team:
            context = {"type": "team", "id": team.id, "name": team.name}
    elif district_id:
        district = session.get(District, district_id)
        if district:
            if current_user.is_kam:
                kam = find_active_kam(session, district.id, current_user.team_id)
            else:
                kam = session.exec(
                    select(User).where(
                        User.district_id == district.id,
                        User.role == UserRole.KAM.value,
                        User.status == RecordStatus.ACTIVE.value,
                    ).order_by(User.name)
                ).first()
            context = {
                "type": "district",
                "id": district.id,
                "name": district.name,
                "code": district.code,
                "kam": UserBrief.model_validate(kam) if kam else None,
            }

    return success_response({
        "summary": {
            "total_revenue": round(total_revenue, 2),
            "total_prescriptions": len(prescriptions),
            "total_orders": len(orders),
            "active_patients": len({p.patient_id for p in prescriptions}),
            "average_order_value": round(average_order_value, 2),
            "fulfillment_rate": round(fulfillment_rate(orders), 2),
        },
        "context": context,
        "doctors": doctor_rows,
        "date_range": date_range(date_from, date_to),
    })

@router.get("/team-performance")
def team_performance(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    team_id: Optional[int] = None,
    district_id: Optional[int] = None,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Per-team totals for active teams, best revenue first"""
    team_query = select(Team).where(Team.status == RecordStatus.ACTIVE.value)
    if team_id:
        team_query = team_query.where(Team.id == team_id)
    if district_id:
        team_query = team_query.where(Team.district_id == district_id)
    teams = session.exec(team_query.order_by(Team.name)).all()

    rows = []
    for team in teams:
        doctors = session.exec(
            select(Doctor).where(Doctor.team_id == team.id, Doctor.status == RecordStatus.ACTIVE.value)
        ).all()
        prescriptions = prescriptions_in_range(session, [d.id for d in doctors], date_from, date_to)
        orders = orders_for(session, prescriptions)
        rows.append({
            "team": {
                "id": team.id,
                "name": team.name,
                "district": {"id": team.district.id, "name": team.district.name, "code": team.district.code} if team.district else None,
            },
            "doctors": len(doctors),
            "prescriptions": len(prescriptions),
            "orders": len(orders),
            "revenue": round(sum(o.total_amount or 0 for o in orders), 2),
            "fulfillment_rate": round(fulfillment_rate(orders), 2),
        })
    rows.sort(key=lambda row: row["revenue"], reverse=True)

    return success_response({
        "teams": rows,
        "totals": {
            "teams": len(rows),
            "doctors": sum(r["doctors"] for r in rows),
            "prescriptions": sum(r["prescriptions"] for r in rows),
            "orders": sum(r["orders"] for r in rows),
            "revenue": round(sum(r["revenue"] for r in rows), 2),
        },
        "date_range": date_range(date_from, date_to),
    })
