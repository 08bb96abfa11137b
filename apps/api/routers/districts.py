from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlmodel import Session, select, func, or_
from typing import Optional, List, Dict
from datetime import datetime
from database import get_session
from models import District, City, Team, User, Doctor, Order, UserRole, RecordStatus, DistributorChannel
from schemas import (
    DistrictCreate, DistrictUpdate, StatusUpdate, DistrictResponse, UserBrief,
    DistrictCityCreate, DistrictCityUpdate, CityResponse,
)
from dependencies import TokenData, require_super_admin, require_staff
from services.scoping import ensure_district_access
from utils.pagination import paginate, search_term
from utils.response import success_response
from validators.business_rules import get_business_rules
from validators.field_validator import require_fields, validate_record_status
from validators.assignment_validator import (
    get_district_or_404, validate_city_name_available, get_assignable_distributor,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/districts", tags=["Districts"])

CHANNEL_ERROR = 'distributor_channel must be either "pillbox" or "local"'


def active_kams_by_district(session: Session, district_ids: List[int]) -> Dict[int, List[UserBrief]]:
    if not district_ids:
        return {}
    kams = session.exec(
        select(User).where(
            User.role == UserRole.KAM.value,
            User.status == RecordStatus.ACTIVE.value,
            User.district_id.in_(district_ids),
        ).order_by(User.name)
    ).all()
    grouped: Dict[int, List[UserBrief]] = {}
    for kam in kams:
        grouped.setdefault(kam.district_id, []).append(UserBrief.model_validate(kam))
    return grouped


def serialize_district(district: District, kams: List[UserBrief]) -> dict:
    data = DistrictResponse.model_validate(district).model_dump()
    data["kams"] = kams
    return data


def validate_code_available(session: Session, code: str, exclude_id: Optional[int] = None) -> None:
    existing = session.exec(select(District).where(District.code == code)).first()
    if existing and existing.id != exclude_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="District code already exists"
        )


@router.get("")
def list_districts(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(get_business_rules().DISTRICTS_PAGE_SIZE, ge=1, le=get_business_rules().MAX_PAGE_SIZE),
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    """List districts; a KAM only sees its own"""
    query = select(District)
    if current_user.is_kam:
        query = query.where(District.id == current_user.district_id)
    if search:
        term = search_term(search)
        query = query.where(or_(func.lower(District.name).like(term), func.lower(District.code).like(term)))
    if status_filter:
        query = query.where(District.status == status_filter)
    query = query.order_by(District.name)

    districts, pagination = paginate(session, query, page, limit)
    kams = active_kams_by_district(session, [d.id for d in districts])

    return success_response({
        "districts": [serialize_district(d, kams.get(d.id, [])) for d in districts],
        "pagination": pagination,
    })

@router.post("", status_code=status.HTTP_201_CREATED)
def create_district(
    payload: DistrictCreate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Create a district (super admin only)"""
    require_fields("Name and code are required", payload.name, payload.code)
    code = payload.code.strip().upper()
    validate_code_available(session, code)

    district = District(
        name=payload.name.strip(),
        code=code,
        status=validate_record_status(payload.status) if payload.status else RecordStatus.ACTIVE.value,
    )
    session.add(district)
    session.commit()
    session.refresh(district)

    logger.info(f"District {district.code} created by user {current_user.user_id}")
    return success_response(serialize_district(district, []), message="District created successfully", status_code=status.HTTP_201_CREATED)

@router.get("/{district_id}")
def get_district(
    district_id: int,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    district = get_district_or_404(session, district_id)
    ensure_district_access(current_user, district_id)
    kams = active_kams_by_district(session, [district_id])
    return success_response(serialize_district(district, kams.get(district_id, [])))

@router.put("/{district_id}")
def update_district(
    district_id: int,
    payload: DistrictUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Update district name, code or status"""
    district = get_district_or_404(session, district_id)

    update_data = payload.model_dump(exclude_unset=True)
    if update_data.get("code"):
        update_data["code"] = update_data["code"].strip().upper()
        validate_code_available(session, update_data["code"], exclude_id=district_id)
    if update_data.get("status"):
        validate_record_status(update_data["status"])
    if "name" in update_data:
        require_fields("Name is required", update_data["name"])

    for key, value in update_data.items():
        if value is not None:
            setattr(district, key, value)
    district.updated_at = datetime.utcnow()

    session.add(district)
    session.commit()
    session.refresh(district)

    kams = active_kams_by_district(session, [district_id])
    return success_response(serialize_district(district, kams.get(district_id, [])), message="District updated successfully")

@router.delete("/{district_id}")
def delete_district(
    district_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Delete a district that nothing references any more"""
    district = get_district_or_404(session, district_id)

    blockers = [
        (session.exec(select(func.count(Team.id)).where(Team.district_id == district_id)).one(), "team(s)"),
        (session.exec(select(func.count(User.id)).where(
            User.district_id == district_id, User.role == UserRole.KAM.value
        )).one(), "KAM(s)"),
        (session.exec(select(func.count(Doctor.id)).where(Doctor.district_id == district_id)).one(), "doctor(s)"),
        (session.exec(select(func.count(City.id)).where(City.district_id == district_id)).one(), "city(ies)"),
    ]
    for count, label in blockers:
        if count > 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot delete district. Please delete all {count} assigned {label} first."
            )

    session.delete(district)
    session.commit()

    logger.info(f"District {district_id} deleted by user {current_user.user_id}")
    return success_response(None, message="District deleted successfully")

@router.patch("/{district_id}/status")
def update_district_status(
    district_id: int,
    payload: StatusUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    district = get_district_or_404(session, district_id)
    district.status = validate_record_status(payload.status, "Invalid status. Must be active or inactive")
    district.updated_at = datetime.utcnow()
    session.add(district)
    session.commit()
    session.refresh(district)

    action = "activated" if district.status == RecordStatus.ACTIVE.value else "deactivated"
    return success_response(serialize_district(district, []), message=f"District {action} successfully")


# ==================== DISTRICT CITIES ====================

def get_district_city_or_404(session: Session, district_id: int, city_id: int) -> City:
    city = session.get(City, city_id)
    if not city or city.district_id != district_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="City not found"
        )
    return city

@router.get("/{district_id}/cities")
def list_district_cities(
    district_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    district = get_district_or_404(session, district_id)
    cities = session.exec(select(City).where(City.district_id == district_id).order_by(City.name)).all()
    return success_response({
        "district_id": district.id,
        "district_name": district.name,
        "cities": [CityResponse.model_validate(c) for c in cities],
    })

@router.post("/{district_id}/cities", status_code=status.HTTP_201_CREATED)
def add_district_city(
    district_id: int,
    payload: DistrictCityCreate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Add a city to a district, optionally served by a local distributor"""
    get_district_or_404(session, district_id)
    require_fields("City name and distributor channel are required", payload.name, payload.distributor_channel)

    if payload.distributor_channel not in (DistributorChannel.PILLBOX.value, DistributorChannel.LOCAL.value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=CHANNEL_ERROR
        )

    distributor_id = None
    if payload.distributor_channel == DistributorChannel.LOCAL.value:
        if not payload.distributor_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="distributor_id is required for local distributor channel"
            )
        distributor_id = get_assignable_distributor(session, payload.distributor_id).id

    validate_city_name_available(session, payload.name)

    city = City(
        name=payload.name.strip(),
        district_id=district_id,
        distributor_channel=payload.distributor_channel,
        distributor_id=distributor_id,
    )
    session.add(city)
    session.commit()
    session.refresh(city)

    logger.info(f"City {city.name} added to district {district_id}")
    return success_response(CityResponse.model_validate(city), message="City added successfully", status_code=status.HTTP_201_CREATED)

@router.put("/{district_id}/cities/{city_id}")
def update_district_city(
    district_id: int,
    city_id: int,
    payload: DistrictCityUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Rename a city or switch its distributor channel"""
    city = get_district_city_or_404(session, district_id, city_id)

    if payload.name is not None:
        require_fields("City name is required", payload.name)
        validate_city_name_available(session, payload.name, exclude_id=city_id)
        city.name = payload.name.strip()

    channel = payload.distributor_channel or city.distributor_channel
    if channel not in (DistributorChannel.PILLBOX.value, DistributorChannel.LOCAL.value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=CHANNEL_ERROR
        )

    if channel == DistributorChannel.PILLBOX.value:
        city.distributor_id = None
    else:
        distributor_id = payload.distributor_id or city.distributor_id
        if not distributor_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="distributor_id is required for local distributor channel"
            )
        if distributor_id != city.distributor_id:
            distributor_id = get_assignable_distributor(session, distributor_id).id
        city.distributor_id = distributor_id
    city.distributor_channel = channel

    if payload.status is not None:
        city.status = validate_record_status(payload.status)
    city.updated_at = datetime.utcnow()

    session.add(city)
    session.commit()
    session.refresh(city)
    return success_response(CityResponse.model_validate(city), message="City updated successfully")

@router.delete("/{district_id}/cities/{city_id}")
def remove_district_city(
    district_id: int,
    city_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    city = get_district_city_or_404(session, district_id, city_id)

    order_count = session.exec(select(func.count(Order.id)).where(Order.patient_city_id == city_id)).one()
    if order_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete city. It is referenced by {order_count} order(s)."
        )

    session.delete(city)
    session.commit()
    return success_response(None, message="City removed successfully")
