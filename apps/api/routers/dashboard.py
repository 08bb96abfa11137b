from fastapi import APIRouter, Depends
from sqlmodel import Session, select, func
from database import get_session
from models import (
    User, Doctor, Patient, Prescription, Order, Product, District, Team,
    UserRole, RecordStatus, OrderStatus,
)
from dependencies import TokenData, require_super_admin
from schemas import DoctorBrief, PatientBrief
from utils.response import success_response
from validators.business_rules import get_business_rules

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


def count(session: Session, column, *conditions) -> int:
    return session.exec(select(func.count(column)).where(*conditions)).one()

def percentage(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0

@router.get("/stats")
def get_stats(
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Headline counts for the admin dashboard"""
    total_doctors = count(session, Doctor.id)
    active_doctors = count(session, Doctor.id, Doctor.status == RecordStatus.ACTIVE.value)

    total_orders = count(session, Order.id)
    orders_by_status = dict(session.exec(
        select(Order.order_status, func.count(Order.id)).group_by(Order.order_status)
    ).all())
    fulfilled = orders_by_status.get(OrderStatus.FULFILLED.value, 0)

    return success_response({
        "total_users": count(session, User.id),
        "total_doctors": total_doctors,
        "total_prescriptions": count(session, Prescription.id),
        "total_orders": total_orders,
        "total_patients": count(session, Patient.id),
        "total_products": count(session, Product.id),
        "total_districts": count(session, District.id),
        "total_teams": count(session, Team.id),
        "active_teams": count(session, Team.id, Team.status == RecordStatus.ACTIVE.value),
        "active_kams": count(
            session, User.id,
            User.role == UserRole.KAM.value, User.status == RecordStatus.ACTIVE.value,
        ),
        "order_stats": {
            "total": total_orders,
            "pending": orders_by_status.get(OrderStatus.PENDING.value, 0),
            "processing": orders_by_status.get(OrderStatus.PROCESSING.value, 0),
            "fulfilled": fulfilled,
            "cancelled": orders_by_status.get(OrderStatus.CANCELLED.value, 0),
            "active": orders_by_status.get(OrderStatus.PENDING.value, 0) + orders_by_status.get(OrderStatus.PROCESSING.value, 0),
            "fulfillment_rate": percentage(fulfilled, total_orders),
        },
        "doctor_stats": {
            "total": total_doctors,
            "active": active_doctors,
            "inactive": total_doctors - active_doctors,
            "active_rate": percentage(active_doctors, total_doctors),
        },
    })

@router.get("/recent-orders")
def get_recent_orders(
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    orders = session.exec(
        select(Order)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(get_business_rules().RECENT_ITEMS_LIMIT)
    ).all()

    return success_response([
        {
            "id": order.id,
            "order_number": order.shopify_order_number,
            "shopify_order_id": order.shopify_order_id,
            "patient": {
                "name": order.patient_name,
                "mrn": order.patient_mrn,
                "phone": order.patient_phone,
            },
            "status": order.order_status,
            "total_amount": order.total_amount,
            "currency": order.currency,
            "created_at": order.created_at,
        }
        for order in orders
    ])

@router.get("/activities")
def get_activities(
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Latest prescriptions as an activity feed"""
    prescriptions = session.exec(
        select(Prescription)
        .order_by(Prescription.created_at.desc(), Prescription.id.desc())
        .limit(get_business_rules().RECENT_ITEMS_LIMIT)
    ).all()

    return success_response([
        {
            "id": p.id,
            "type": "prescription",
            "prescription_number": p.mrn,
            "patient": PatientBrief.model_validate(p.patient) if p.patient else None,
            "doctor": DoctorBrief.model_validate(p.doctor) if p.doctor else None,
            "status": p.order_status,
            "medication_count": p.selected_product.get("quantity", 1) if p.selected_product else 0,
            "created_at": p.created_at,
        }
        for p in prescriptions
    ])
