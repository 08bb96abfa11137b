from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlmodel import Session, select, func, or_
from typing import Optional
from datetime import datetime
from database import get_session
from models import Patient, Doctor, Prescription, Order, Gender, enum_values
from schemas import PatientCreate, PatientUpdate, PatientResponse, PrescriptionResponse, OrderResponse
from dependencies import TokenData, require_super_admin
from utils.pagination import paginate, search_term
from utils.response import success_response
from validators.business_rules import get_business_rules
from validators.field_validator import require_fields, validate_choice
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["Patients"])

GENDER_ERROR = "Invalid gender. Must be male, female or other"


def get_patient_or_404(session: Session, patient_id: int) -> Patient:
    patient = session.get(Patient, patient_id)
    if not patient:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Patient not found"
        )
    return patient

def validate_mrn_available(session: Session, mrn: str, exclude_id: Optional[int] = None) -> None:
    existing = session.exec(select(Patient).where(Patient.mrn == mrn)).first()
    if existing and existing.id != exclude_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Patient with this MRN already exists"
        )

@router.get("")
def list_patients(
    search: Optional[str] = None,
    gender: Optional[str] = None,
    city: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(get_business_rules().DEFAULT_PAGE_SIZE, ge=1, le=get_business_rules().MAX_PAGE_SIZE),
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    query = select(Patient)
    if search:
        term = search_term(search)
        query = query.where(or_(
            func.lower(Patient.name).like(term),
            func.lower(Patient.mrn).like(term),
            func.lower(Patient.phone).like(term),
        ))
    if gender:
        query = query.where(Patient.gender == gender)
    if city:
        query = query.where(func.lower(Patient.city).like(search_term(city)))
    query = query.order_by(Patient.mrn.desc())

    patients, pagination = paginate(session, query, page, limit)
    return success_response({
        "patients": [PatientResponse.model_validate(p) for p in patients],
        "pagination": pagination,
    })

@router.post("", status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    require_fields("MRN, name, phone and creating doctor are required", payload.mrn, payload.name, payload.phone, payload.created_by)
    validate_choice(payload.gender, enum_values(Gender), GENDER_ERROR)
    if payload.age is not None and payload.age < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Age cannot be negative"
        )
    if not session.get(Doctor, payload.created_by):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Doctor not found"
        )

    mrn = payload.mrn.strip().upper()
    validate_mrn_available(session, mrn)

    patient = Patient(**payload.model_dump(exclude={"mrn"}), mrn=mrn)
    session.add(patient)
    session.commit()
    session.refresh(patient)

    logger.info(f"Patient {patient.mrn} registered")
    return success_response(PatientResponse.model_validate(patient), message="Patient created successfully", status_code=status.HTTP_201_CREATED)

@router.get("/{patient_id}")
def get_patient(
    patient_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Patient with recent prescriptions and orders"""
    patient = get_patient_or_404(session, patient_id)
    recent_limit = get_business_rules().RECENT_ITEMS_LIMIT

    prescriptions = session.exec(
        select(Prescription)
        .where(Prescription.patient_id == patient_id)
        .order_by(Prescription.created_at.desc(), Prescription.id.desc())
        .limit(recent_limit)
    ).all()
    orders = session.exec(
        select(Order)
        .where(Order.patient_mrn == patient.mrn)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(recent_limit)
    ).all()

    total_prescriptions = session.exec(
        select(func.count(Prescription.id)).where(Prescription.patient_id == patient_id)
    ).one()
    total_orders = session.exec(
        select(func.count(Order.id)).where(Order.patient_mrn == patient.mrn)
    ).one()

    return success_response({
        "patient": PatientResponse.model_validate(patient),
        "prescriptions": [PrescriptionResponse.model_validate(p) for p in prescriptions],
        "orders": [OrderResponse.from_order(o) for o in orders],
        "stats": {
            "total_prescriptions": total_prescriptions,
            "total_orders": total_orders,
        },
    })

@router.put("/{patient_id}")
def update_patient(
    patient_id: int,
    payload: PatientUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    patient = get_patient_or_404(session, patient_id)
    update_data = payload.model_dump(exclude_unset=True)

    if update_data.get("mrn"):
        update_data["mrn"] = update_data["mrn"].strip().upper()
        validate_mrn_available(session, update_data["mrn"], exclude_id=patient_id)
    if update_data.get("age") is not None and update_data["age"] < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Age cannot be negative"
        )
    validate_choice(update_data.get("gender"), enum_values(Gender), GENDER_ERROR)
    for key in ("name", "phone"):
        if key in update_data:
            require_fields(f"{key.capitalize()} is required", update_data[key])

    # Prescriptions and orders carry a copy of the MRN
    new_mrn = update_data.get("mrn")
    if new_mrn and new_mrn != patient.mrn:
        for prescription in session.exec(select(Prescription).where(Prescription.patient_id == patient_id)).all():
            prescription.mrn = new_mrn
            session.add(prescription)
        for order in session.exec(select(Order).where(Order.patient_mrn == patient.mrn)).all():
            order.patient_mrn = new_mrn
            session.add(order)

    for key, value in update_data.items():
        if value is not None:
            setattr(patient, key, value)
    patient.updated_at = datetime.utcnow()

    session.add(patient)
    session.commit()
    session.refresh(patient)
    return success_response(PatientResponse.model_validate(patient), message="Patient updated successfully")

@router.delete("/{patient_id}")
def delete_patient(
    patient_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    patient = get_patient_or_404(session, patient_id)

    prescription_count = session.exec(
        select(func.count(Prescription.id)).where(Prescription.patient_id == patient_id)
    ).one()
    if prescription_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete patient with {prescription_count} prescription(s)"
        )

    session.delete(patient)
    session.commit()
    logger.info(f"Patient {patient_id} deleted by user {current_user.user_id}")
    return success_response(None, message="Patient deleted successfully")
