from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlmodel import Session, select, func, or_
from typing import Optional
from datetime import datetime
from database import get_session
from models import (
    Prescription, Patient, Doctor, Product, Order,
    PrescriptionPriority, OrderStatus, RecordStatus, enum_values,
)
from schemas import PrescriptionCreate, PrescriptionUpdate, PrescriptionResponse, OrderResponse
from dependencies import TokenData, require_super_admin
from utils.pagination import paginate, search_term
from utils.response import success_response
from validators.business_rules import get_business_rules
from validators.field_validator import require_fields, validate_choice
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/prescriptions", tags=["Prescriptions"])

PRIORITY_ERROR = "Invalid priority. Must be normal, urgent or emergency"


def get_prescription_or_404(session: Session, prescription_id: int) -> Prescription:
    prescription = session.get(Prescription, prescription_id)
    if not prescription:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Prescription not found"
        )
    return prescription

def product_snapshot(session: Session, product_id: int, quantity: int) -> dict:
    """Freeze the catalog entry as it is at prescribing time"""
    if quantity < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Quantity must be at least 1"
        )
    product = session.get(Product, product_id)
    if not product or product.status != RecordStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Selected product is not available"
        )
    return {
        "product_id": product.id,
        "name": product.name,
        "sku": product.sku,
        "price": product.price,
        "quantity": quantity,
    }

@router.get("")
def list_prescriptions(
    search: Optional[str] = None,
    order_status: Optional[str] = None,
    priority: Optional[str] = None,
    doctor_id: Optional[int] = None,
    district_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(get_business_rules().DEFAULT_PAGE_SIZE, ge=1, le=get_business_rules().MAX_PAGE_SIZE),
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    query = select(Prescription)
    if search:
        term = search_term(search)
        query = query.where(or_(
            func.lower(Prescription.mrn).like(term),
            func.lower(Prescription.diagnosis).like(term),
            func.lower(Prescription.shopify_order_id).like(term),
        ))
    if order_status:
        query = query.where(Prescription.order_status == order_status)
    if priority:
        query = query.where(Prescription.priority == priority)
    if doctor_id:
        query = query.where(Prescription.doctor_id == doctor_id)
    if district_id:
        query = query.where(Prescription.district_id == district_id)
    query = query.order_by(Prescription.created_at.desc(), Prescription.id.desc())

    prescriptions, pagination = paginate(session, query, page, limit)
    return success_response({
        "prescriptions": [PrescriptionResponse.model_validate(p) for p in prescriptions],
        "pagination": pagination,
    })

@router.post("", status_code=status.HTTP_201_CREATED)
def create_prescription(
    payload: PrescriptionCreate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Record a prescription; MRN and district are taken from the patient and doctor"""
    require_fields(
        "Patient, doctor, prescription text and duration are required",
        payload.patient_id, payload.doctor_id, payload.prescription_text, payload.duration_days,
    )
    if payload.duration_days < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Duration must be at least 1 day"
        )
    priority = validate_choice(payload.priority, enum_values(PrescriptionPriority), PRIORITY_ERROR) or PrescriptionPriority.NORMAL.value

    patient = session.get(Patient, payload.patient_id)
    if not patient:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Patient not found"
        )
    doctor = session.get(Doctor, payload.doctor_id)
    if not doctor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Doctor not found"
        )

    prescription = Prescription(
        mrn=patient.mrn,
        patient_id=patient.id,
        doctor_id=doctor.id,
        district_id=doctor.district_id,
        prescription_text=payload.prescription_text.strip(),
        prescription_files=payload.prescription_files,
        duration_days=payload.duration_days,
        priority=priority,
        selected_product=product_snapshot(session, payload.product_id, payload.quantity) if payload.product_id else None,
        diagnosis=payload.diagnosis,
        notes=payload.notes,
    )
    session.add(prescription)
    session.commit()
    session.refresh(prescription)

    logger.info(f"Prescription {prescription.id} created for patient {patient.mrn}")
    return success_response(PrescriptionResponse.model_validate(prescription), message="Prescription created successfully", status_code=status.HTTP_201_CREATED)

@router.get("/{prescription_id}")
def get_prescription(
    prescription_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Prescription with its order, if one has been placed"""
    prescription = get_prescription_or_404(session, prescription_id)
    order = session.exec(select(Order).where(Order.prescription_id == prescription_id)).first()

    return success_response({
        "prescription": PrescriptionResponse.model_validate(prescription),
        "order": OrderResponse.from_order(order) if order else None,
    })

@router.put("/{prescription_id}")
def update_prescription(
    prescription_id: int,
    payload: PrescriptionUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    prescription = get_prescription_or_404(session, prescription_id)
    update_data = payload.model_dump(exclude_unset=True)

    validate_choice(update_data.get("priority"), enum_values(PrescriptionPriority), PRIORITY_ERROR)
    validate_choice(update_data.get("order_status"), enum_values(OrderStatus), "Invalid order status")
    if "prescription_text" in update_data:
        require_fields("Prescription text is required", update_data["prescription_text"])
    if update_data.get("duration_days") is not None and update_data["duration_days"] < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Duration must be at least 1 day"
        )

    for key, value in update_data.items():
        if value is not None:
            setattr(prescription, key, value)
    prescription.updated_at = datetime.utcnow()

    session.add(prescription)
    session.commit()
    session.refresh(prescription)
    return success_response(PrescriptionResponse.model_validate(prescription), message="Prescription updated successfully")

@router.delete("/{prescription_id}")
def delete_prescription(
    prescription_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    prescription = get_prescription_or_404(session, prescription_id)

    if session.exec(select(Order).where(Order.prescription_id == prescription_id)).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete a prescription that has an order"
        )

    session.delete(prescription)
    session.commit()
    logger.info(f"Prescription {prescription_id} deleted by user {current_user.user_id}")
    return success_response(None, message="Prescription deleted successfully")
