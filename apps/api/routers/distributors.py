from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlmodel import Session, select, func, or_
from typing import Optional
from datetime import datetime
from database import get_session
from models import Distributor, City, RecordStatus
from schemas import DistributorCreate, DistributorUpdate, DistributorResponse, StatusUpdate
from auth import get_password_hash
from dependencies import TokenData, require_super_admin
from utils.pagination import paginate, search_term
from utils.response import success_response
from validators.business_rules import get_business_rules
from validators.field_validator import require_fields, validate_record_status, normalize_email
from validators.assignment_validator import validate_email_available
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/distributors", tags=["Distributors"])


def get_distributor_or_404(session: Session, distributor_id: int) -> Distributor:
    distributor = session.get(Distributor, distributor_id)
    if not distributor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Distributor not found"
        )
    return distributor

def serialize_distributor(distributor: Distributor) -> dict:
    data = DistributorResponse.model_validate(distributor).model_dump()
    data["assigned_cities"] = [
        {
            "id": city.id,
            "name": city.name,
            "district_id": city.district_id,
            "district_name": city.district.name if city.district else None,
        }
        for city in distributor.cities
    ]
    return data

@router.get("")
def list_distributors(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(get_business_rules().DISTRIBUTORS_PAGE_SIZE, ge=1, le=get_business_rules().MAX_PAGE_SIZE),
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    query = select(Distributor)
    if search:
        term = search_term(search)
        query = query.where(or_(
            func.lower(Distributor.name).like(term),
            func.lower(Distributor.email).like(term),
            func.lower(Distributor.phone).like(term),
        ))
    if status_filter:
        query = query.where(Distributor.status == status_filter)
    query = query.order_by(Distributor.created_at.desc(), Distributor.id.desc())

    distributors, pagination = paginate(session, query, page, limit)
    return success_response({
        "distributors": [serialize_distributor(d) for d in distributors],
        "pagination": pagination,
    })

@router.post("", status_code=status.HTTP_201_CREATED)
def create_distributor(
    payload: DistributorCreate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    require_fields(
        "Email, password, name, and phone are required",
        payload.email, payload.password, payload.name, payload.phone,
    )
    email = normalize_email(payload.email)
    validate_email_available(session, Distributor, email)

    distributor = Distributor(
        email=email,
        password_hash=get_password_hash(payload.password),
        name=payload.name.strip(),
        phone=payload.phone.strip(),
        status=validate_record_status(payload.status) if payload.status else RecordStatus.ACTIVE.value,
    )
    session.add(distributor)
    session.commit()
    session.refresh(distributor)

    logger.info(f"Distributor {distributor.id} created by user {current_user.user_id}")
    return success_response(serialize_distributor(distributor), message="Distributor created successfully", status_code=status.HTTP_201_CREATED)

@router.get("/{distributor_id}")
def get_distributor(
    distributor_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    return success_response(serialize_distributor(get_distributor_or_404(session, distributor_id)))

@router.put("/{distributor_id}")
def update_distributor(
    distributor_id: int,
    payload: DistributorUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    distributor = get_distributor_or_404(session, distributor_id)
    update_data = payload.model_dump(exclude_unset=True)

    if update_data.get("email"):
        update_data["email"] = normalize_email(update_data["email"])
        validate_email_available(session, Distributor, update_data["email"], exclude_id=distributor_id)
    if update_data.get("status"):
        validate_record_status(update_data["status"])
    password = update_data.pop("password", None)
    if password:
        distributor.password_hash = get_password_hash(password)

    for key, value in update_data.items():
        if value is not None:
            setattr(distributor, key, value)
    distributor.updated_at = datetime.utcnow()

    session.add(distributor)
    session.commit()
    session.refresh(distributor)
    return success_response(serialize_distributor(distributor), message="Distributor updated successfully")

@router.delete("/{distributor_id}")
def delete_distributor(
    distributor_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    distributor = get_distributor_or_404(session, distributor_id)

    city_count = session.exec(select(func.count(City.id)).where(City.distributor_id == distributor_id)).one()
    if city_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete distributor. They are assigned to one or more cities."
        )

    session.delete(distributor)
    session.commit()
    logger.info(f"Distributor {distributor_id} deleted by user {current_user.user_id}")
    return success_response(None, message="Distributor deleted successfully")

@router.patch("/{distributor_id}/status")
def update_distributor_status(
    distributor_id: int,
    payload: StatusUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    distributor = get_distributor_or_404(session, distributor_id)
    distributor.status = validate_record_status(payload.status)
    distributor.updated_at = datetime.utcnow()
    session.add(distributor)
    session.commit()
    session.refresh(distributor)

    action = "activated" if distributor.status == RecordStatus.ACTIVE.value else "deactivated"
    return success_response(serialize_distributor(distributor), message=f"Distributor {action} successfully")
