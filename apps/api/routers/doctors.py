from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlmodel import Session, select, func, or_
from typing import Optional
from datetime import datetime
from database import get_session
from models import Doctor, Patient, Prescription, Order, RecordStatus
from schemas import DoctorCreate, DoctorUpdate, DoctorResponse, StatusUpdate, PatientBrief
from auth import get_password_hash
from dependencies import TokenData, require_staff
from services.scoping import doctor_scope_conditions, ensure_doctor_access
from utils.pagination import paginate, search_term
from utils.response import success_response
from validators.business_rules import get_business_rules
from validators.field_validator import require_fields, validate_record_status, normalize_email
from validators.assignment_validator import (
    get_district_or_404, validate_team_in_district, validate_email_available, find_active_kam,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/doctors", tags=["Doctors"])


def get_doctor_or_404(session: Session, doctor_id: int) -> Doctor:
    doctor = session.get(Doctor, doctor_id)
    if not doctor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Doctor not found"
        )
    return doctor

def resolve_kam_id(session: Session, current_user: TokenData, district_id: int, team_id: int) -> Optional[int]:
    """The doctor belongs to the active KAM of its district+team"""
    if current_user.is_kam:
        return current_user.user_id
    kam = find_active_kam(session, district_id, team_id)
    return kam.id if kam else None

@router.get("")
def list_doctors(
    search: Optional[str] = None,
    district_id: Optional[int] = None,
    team_id: Optional[int] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    specialty: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(get_business_rules().DOCTORS_PAGE_SIZE, ge=1, le=get_business_rules().MAX_PAGE_SIZE),
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    """List doctors; a KAM only sees its own district and team"""
    query = select(Doctor).where(*doctor_scope_conditions(current_user))
    if search:
        term = search_term(search)
        query = query.where(or_(
            func.lower(Doctor.name).like(term),
            func.lower(Doctor.email).like(term),
            func.lower(Doctor.phone).like(term),
            func.lower(Doctor.pmdc_number).like(term),
        ))
    if district_id:
        query = query.where(Doctor.district_id == district_id)
    if team_id:
        query = query.where(Doctor.team_id == team_id)
    if status_filter:
        query = query.where(Doctor.status == status_filter)
    if specialty:
        query = query.where(func.lower(Doctor.specialty).like(search_term(specialty)))
    query = query.order_by(Doctor.created_at.desc(), Doctor.id.desc())

    doctors, pagination = paginate(session, query, page, limit)
    return success_response({
        "doctors": [DoctorResponse.model_validate(d) for d in doctors],
        "pagination": pagination,
    })

@router.post("", status_code=status.HTTP_201_CREATED)
def create_doctor(
    payload: DoctorCreate,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    """Create a doctor; a KAM can only create doctors in its own district and team"""
    district_id = payload.district_id
    team_id = payload.team_id
    if current_user.is_kam:
        if not current_user.district_id or not current_user.team_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You are not assigned to any district"
            )
        district_id = current_user.district_id
        team_id = current_user.team_id

    require_fields(
        "All fields are required",
        payload.email, payload.password, payload.name, payload.phone,
        district_id, team_id, payload.pmdc_number, payload.specialty,
    )
    get_district_or_404(session, district_id)
    validate_team_in_district(session, team_id, district_id)
    email = normalize_email(payload.email)
    validate_email_available(session, Doctor, email)

    doctor = Doctor(
        email=email,
        password_hash=get_password_hash(payload.password),
        name=payload.name.strip(),
        phone=payload.phone.strip(),
        pmdc_number=payload.pmdc_number.strip(),
        specialty=payload.specialty.strip(),
        district_id=district_id,
        team_id=team_id,
        kam_id=resolve_kam_id(session, current_user, district_id, team_id),
        status=validate_record_status(payload.status) if payload.status else RecordStatus.ACTIVE.value,
    )
    session.add(doctor)
    session.commit()
    session.refresh(doctor)

    logger.info(f"Doctor {doctor.id} created by {current_user.role.value} {current_user.user_id}")
    return success_response(DoctorResponse.model_validate(doctor), message="Doctor created successfully", status_code=status.HTTP_201_CREATED)

@router.get("/{doctor_id}")
def get_doctor(
    doctor_id: int,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    doctor = get_doctor_or_404(session, doctor_id)
    ensure_doctor_access(current_user, doctor)
    return success_response(DoctorResponse.model_validate(doctor))

@router.put("/{doctor_id}")
def update_doctor(
    doctor_id: int,
    payload: DoctorUpdate,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    doctor = get_doctor_or_404(session, doctor_id)
    ensure_doctor_access(current_user, doctor)
    update_data = payload.model_dump(exclude_unset=True)

    district_id = update_data.get("district_id") or doctor.district_id
    team_id = update_data.get("team_id") or doctor.team_id
    moved = (district_id, team_id) != (doctor.district_id, doctor.team_id)

    if moved:
        if current_user.is_kam:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You cannot change doctor district or team"
            )
        get_district_or_404(session, district_id)
        validate_team_in_district(session, team_id, district_id)

    if update_data.get("email"):
        update_data["email"] = normalize_email(update_data["email"])
        validate_email_available(session, Doctor, update_data["email"], exclude_id=doctor_id)
    if update_data.get("status"):
        validate_record_status(update_data["status"])
    for key in ("name", "phone", "pmdc_number", "specialty"):
        if key in update_data:
            require_fields("All fields are required", update_data[key])

    password = update_data.pop("password", None)
    if password:
        doctor.password_hash = get_password_hash(password)
    update_data.pop("district_id", None)
    update_data.pop("team_id", None)

    for key, value in update_data.items():
        if value is not None:
            setattr(doctor, key, value.strip() if isinstance(value, str) else value)
    if moved:
        doctor.district_id = district_id
        doctor.team_id = team_id
        doctor.kam_id = resolve_kam_id(session, current_user, district_id, team_id)
    doctor.updated_at = datetime.utcnow()

    session.add(doctor)
    session.commit()
    session.refresh(doctor)
    return success_response(DoctorResponse.model_validate(doctor), message="Doctor updated successfully")

@router.delete("/{doctor_id}")
def delete_doctor(
    doctor_id: int,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    doctor = get_doctor_or_404(session, doctor_id)
    ensure_doctor_access(current_user, doctor)

    prescription_count = session.exec(
        select(func.count(Prescription.id)).where(Prescription.doctor_id == doctor_id)
    ).one()
    if prescription_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete doctor with {prescription_count} prescription(s). Deactivate the doctor instead."
        )

    patient_count = session.exec(
        select(func.count(Patient.id)).where(Patient.created_by == doctor_id)
    ).one()
    if patient_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete doctor with {patient_count} patient(s). Deactivate the doctor instead."
        )

    session.delete(doctor)
    session.commit()
    logger.info(f"Doctor {doctor_id} deleted by {current_user.role.value} {current_user.user_id}")
    return success_response(None, message="Doctor deleted successfully")

@router.patch("/{doctor_id}/status")
def update_doctor_status(
    doctor_id: int,
    payload: StatusUpdate,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    doctor = get_doctor_or_404(session, doctor_id)
    ensure_doctor_access(current_user, doctor)

    doctor.status = validate_record_status(payload.status, "Invalid status. Must be active or inactive")
    doctor.updated_at = datetime.utcnow()
    session.add(doctor)
    session.commit()
    session.refresh(doctor)

    action = "activated" if doctor.status == RecordStatus.ACTIVE.value else "deactivated"
    return success_response(DoctorResponse.model_validate(doctor), message=f"Doctor {action} successfully")

@router.get("/{doctor_id}/stats")
def get_doctor_stats(
    doctor_id: int,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    """Prescription and order activity of one doctor"""
    doctor = get_doctor_or_404(session, doctor_id)
    ensure_doctor_access(current_user, doctor)

    prescriptions_by_status = session.exec(
        select(Prescription.order_status, func.count(Prescription.id))
        .where(Prescription.doctor_id == doctor_id)
        .group_by(Prescription.order_status)
    ).all()
    orders_by_status = session.exec(
        select(Order.order_status, func.count(Order.id))
        .where(Order.doctor_id == doctor_id)
        .group_by(Order.order_status)
    ).all()
    recent = session.exec(
        select(Prescription)
        .where(Prescription.doctor_id == doctor_id)
        .order_by(Prescription.created_at.desc(), Prescription.id.desc())
        .limit(get_business_rules().RECENT_ITEMS_LIMIT)
    ).all()

    return success_response({
        "doctor": DoctorResponse.model_validate(doctor),
        "total_prescriptions": sum(count for _, count in prescriptions_by_status),
        "total_orders": sum(count for _, count in orders_by_status),
        "prescriptions_by_status": [{"status": s, "count": c} for s, c in prescriptions_by_status],
        "orders_by_status": [{"status": s, "count": c} for s, c in orders_by_status],
        "recent_prescriptions": [
            {
                "id": p.id,
                "mrn": p.mrn,
                "patient": PatientBrief.model_validate(p.patient) if p.patient else None,
                "diagnosis": p.diagnosis,
                "priority": p.priority,
                "order_status": p.order_status,
                "created_at": p.created_at,
            }
            for p in recent
        ],
    })
