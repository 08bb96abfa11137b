from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlmodel import Session, select, func
from typing import Optional
from datetime import datetime
from database import get_session
from models import City, District, Distributor, Order, RecordStatus, DistributorChannel
from schemas import CityCreate, CityUpdate, CityResponse
from auth import get_password_hash
from dependencies import TokenData, require_super_admin, require_staff
from utils.pagination import paginate, search_term
from utils.response import success_response
from validators.business_rules import get_business_rules
from validators.field_validator import require_fields, validate_record_status, normalize_email
from validators.assignment_validator import (
    get_district_or_404, validate_city_name_available, validate_email_available, get_assignable_distributor,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cities", tags=["Cities"])


def get_city_or_404(session: Session, city_id: int) -> City:
    city = session.get(City, city_id)
    if not city:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="City not found"
        )
    return city

@router.get("")
def list_cities(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    distributor_channel: Optional[str] = None,
    district_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(get_business_rules().CITIES_PAGE_SIZE, ge=1, le=get_business_rules().MAX_PAGE_SIZE),
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    query = select(City)
    if search:
        query = query.where(func.lower(City.name).like(search_term(search)))
    if status_filter:
        query = query.where(City.status == status_filter)
    if distributor_channel:
        query = query.where(City.distributor_channel == distributor_channel)
    if district_id:
        query = query.where(City.district_id == district_id)
    query = query.order_by(City.created_at.desc(), City.id.desc())

    cities, pagination = paginate(session, query, page, limit)
    return success_response({
        "cities": [CityResponse.model_validate(c) for c in cities],
        "pagination": pagination,
    })

@router.get("/all")
def list_all_cities(
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    """Every city of every active district, flattened for pickers"""
    rows = session.exec(
        select(City, District)
        .join(District, City.district_id == District.id)
        .where(District.status == RecordStatus.ACTIVE.value)
        .order_by(District.name, City.name)
    ).all()

    return success_response([
        {
            "id": city.id,
            "city_name": city.name,
            "district_id": district.id,
            "district_name": district.name,
            "district_code": district.code,
            "distributor_channel": city.distributor_channel,
            "distributor_id": city.distributor_id,
            "status": city.status,
        }
        for city, district in rows
    ])

@router.post("", status_code=status.HTTP_201_CREATED)
def create_city(
    payload: CityCreate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Create a city; a local-channel city may create its distributor inline"""
    require_fields("Name and distributor channel are required", payload.name, payload.distributor_channel)
    if payload.distributor_channel not in (DistributorChannel.PILLBOX.value, DistributorChannel.LOCAL.value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='distributor_channel must be either "pillbox" or "local"'
        )

    validate_city_name_available(session, payload.name)
    if payload.district_id:
        get_district_or_404(session, payload.district_id)

    distributor = None
    if payload.distributor_channel == DistributorChannel.LOCAL.value:
        if payload.distributor_id:
            distributor = get_assignable_distributor(session, payload.distributor_id)
        else:
            require_fields(
                "Distributor details are required for local distributor channel",
                payload.distributor_name, payload.distributor_email,
                payload.distributor_phone, payload.distributor_password,
            )
            email = normalize_email(payload.distributor_email)
            validate_email_available(session, Distributor, email)
            distributor = Distributor(
                email=email,
                password_hash=get_password_hash(payload.distributor_password),
                name=payload.distributor_name.strip(),
                phone=payload.distributor_phone.strip(),
            )
            session.add(distributor)
            session.flush()
            logger.info(f"Distributor {distributor.id} created inline for city {payload.name}")

    city = City(
        name=payload.name.strip(),
        district_id=payload.district_id,
        distributor_channel=payload.distributor_channel,
        distributor_id=distributor.id if distributor else None,
        status=validate_record_status(payload.status) if payload.status else RecordStatus.ACTIVE.value,
    )
    session.add(city)
    session.commit()
    session.refresh(city)

    return success_response(CityResponse.model_validate(city), message="City created successfully", status_code=status.HTTP_201_CREATED)

@router.get("/{city_id}")
def get_city(
    city_id: int,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    return success_response(CityResponse.model_validate(get_city_or_404(session, city_id)))

@router.put("/{city_id}")
def update_city(
    city_id: int,
    payload: CityUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    city = get_city_or_404(session, city_id)
    require_fields("Name is required", payload.name)
    validate_city_name_available(session, payload.name, exclude_id=city_id)

    city.name = payload.name.strip()
    if payload.status is not None:
        city.status = validate_record_status(payload.status)
    city.updated_at = datetime.utcnow()

    session.add(city)
    session.commit()
    session.refresh(city)
    return success_response(CityResponse.model_validate(city), message="City updated successfully")

@router.delete("/{city_id}")
def delete_city(
    city_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Delete a city together with a distributor that served only this city"""
    city = get_city_or_404(session, city_id)

    order_count = session.exec(select(func.count(Order.id)).where(Order.patient_city_id == city_id)).one()
    if order_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete city. It is referenced by {order_count} order(s)."
        )

    distributor = city.distributor
    session.delete(city)
    session.flush()

    if distributor:
        remaining = session.exec(
            select(func.count(City.id)).where(City.distributor_id == distributor.id)
        ).one()
        if remaining == 0:
            session.delete(distributor)
            logger.info(f"Distributor {distributor.id} deleted with city {city_id}")

    session.commit()
    return success_response(None, message="City deleted successfully")
