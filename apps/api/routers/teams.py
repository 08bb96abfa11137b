from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlmodel import Session, select, func, or_
from typing import Optional, List, Dict
from datetime import datetime
from database import get_session
from models import Team, Doctor, User, Prescription, Product, TeamProduct, UserRole, RecordStatus
from schemas import TeamCreate, TeamUpdate, TeamResponse, TeamProductsUpdate, DoctorBrief, ProductResponse
from dependencies import TokenData, require_super_admin, require_staff
from services.scoping import ensure_district_access
from utils.pagination import paginate, search_term
from utils.response import success_response
from validators.business_rules import get_business_rules
from validators.field_validator import require_fields, validate_record_status
from validators.assignment_validator import get_district_or_404
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/teams", tags=["Teams"])


def get_team_or_404(session: Session, team_id: int) -> Team:
    team = session.get(Team, team_id)
    if not team:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Team not found"
        )
    return team

def team_stats(session: Session, team_ids: List[int]) -> Dict[int, dict]:
    """Active doctor and prescription counts per team"""
    stats = {team_id: {"doctors": 0, "prescriptions": 0} for team_id in team_ids}
    if not team_ids:
        return stats

    doctor_counts = session.exec(
        select(Doctor.team_id, func.count(Doctor.id))
        .where(Doctor.team_id.in_(team_ids), Doctor.status == RecordStatus.ACTIVE.value)
        .group_by(Doctor.team_id)
    ).all()
    for team_id, count in doctor_counts:
        stats[team_id]["doctors"] = count

    prescription_counts = session.exec(
        select(Doctor.team_id, func.count(Prescription.id))
        .select_from(Prescription)
        .join(Doctor, Prescription.doctor_id == Doctor.id)
        .where(Doctor.team_id.in_(team_ids))
        .group_by(Doctor.team_id)
    ).all()
    for team_id, count in prescription_counts:
        stats[team_id]["prescriptions"] = count

    return stats

def serialize_team(team: Team, stats: Optional[dict] = None) -> dict:
    data = TeamResponse.model_validate(team).model_dump()
    data["stats"] = stats or {"doctors": 0, "prescriptions": 0}
    return data

def clear_team_products(session: Session, team_id: int) -> None:
    for assignment in session.exec(select(TeamProduct).where(TeamProduct.team_id == team_id)).all():
        session.delete(assignment)

def ensure_team_access(current_user: TokenData, team: Team) -> None:
    ensure_district_access(current_user, team.district_id)
    if current_user.is_kam and current_user.team_id != team.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this team"
        )

@router.get("")
def list_teams(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    district_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(get_business_rules().TEAMS_PAGE_SIZE, ge=1, le=get_business_rules().MAX_PAGE_SIZE),
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    """List teams with doctor and prescription counts"""
    query = select(Team)
    if current_user.is_kam:
        query = query.where(Team.district_id == current_user.district_id)
    if search:
        term = search_term(search)
        query = query.where(or_(func.lower(Team.name).like(term), func.lower(Team.description).like(term)))
    if status_filter:
        query = query.where(Team.status == status_filter)
    if district_id:
        query = query.where(Team.district_id == district_id)
    query = query.order_by(Team.name)

    teams, pagination = paginate(session, query, page, limit)
    stats = team_stats(session, [t.id for t in teams])

    return success_response({
        "teams": [serialize_team(t, stats[t.id]) for t in teams],
        "pagination": pagination,
    })

@router.get("/by-district/{district_id}")
def list_teams_by_district(
    district_id: int,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    """Active teams of one district, for assignment pickers"""
    get_district_or_404(session, district_id)
    ensure_district_access(current_user, district_id)
    teams = session.exec(
        select(Team).where(Team.district_id == district_id, Team.status == RecordStatus.ACTIVE.value).order_by(Team.name)
    ).all()
    return success_response([TeamResponse.model_validate(t) for t in teams])

@router.post("", status_code=status.HTTP_201_CREATED)
def create_team(
    payload: TeamCreate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    require_fields("Name is required", payload.name)
    require_fields("District is required", payload.district_id)
    get_district_or_404(session, payload.district_id)

    team = Team(
        name=payload.name.strip(),
        description=payload.description,
        district_id=payload.district_id,
        status=validate_record_status(payload.status) if payload.status else RecordStatus.ACTIVE.value,
    )
    session.add(team)
    session.commit()
    session.refresh(team)

    logger.info(f"Team {team.id} created in district {team.district_id}")
    return success_response(serialize_team(team), message="Team created successfully", status_code=status.HTTP_201_CREATED)

@router.get("/{team_id}")
def get_team(
    team_id: int,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    """Team with stats and its active doctors"""
    team = get_team_or_404(session, team_id)
    ensure_district_access(current_user, team.district_id)

    doctors = session.exec(
        select(Doctor).where(Doctor.team_id == team_id, Doctor.status == RecordStatus.ACTIVE.value).order_by(Doctor.name)
    ).all()

    data = serialize_team(team, team_stats(session, [team_id])[team_id])
    data["doctors"] = [DoctorBrief.model_validate(d) for d in doctors]
    return success_response(data)

@router.put("/{team_id}")
def update_team(
    team_id: int,
    payload: TeamUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    team = get_team_or_404(session, team_id)
    update_data = payload.model_dump(exclude_unset=True)

    if "name" in update_data:
        require_fields("Name is required", update_data["name"])
    if update_data.get("status"):
        validate_record_status(update_data["status"])
    new_district_id = update_data.get("district_id")
    if new_district_id and new_district_id != team.district_id:
        get_district_or_404(session, new_district_id)
        assigned = session.exec(
            select(func.count(Doctor.id)).where(Doctor.team_id == team_id)
        ).one() + session.exec(
            select(func.count(User.id)).where(User.team_id == team_id)
        ).one()
        if assigned > 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot move a team with assigned doctors or KAMs to another district"
            )

    for key, value in update_data.items():
        if value is not None:
            setattr(team, key, value)
    team.updated_at = datetime.utcnow()

    session.add(team)
    session.commit()
    session.refresh(team)
    return success_response(serialize_team(team, team_stats(session, [team_id])[team_id]), message="Team updated successfully")

@router.delete("/{team_id}")
def delete_team(
    team_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    team = get_team_or_404(session, team_id)

    doctor_count = session.exec(select(func.count(Doctor.id)).where(Doctor.team_id == team_id)).one()
    if doctor_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete team. Please reassign or delete all {doctor_count} assigned doctor(s) first."
        )
    kam_count = session.exec(
        select(func.count(User.id)).where(User.team_id == team_id, User.role == UserRole.KAM.value)
    ).one()
    if kam_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete team. Please reassign or delete all {kam_count} assigned KAM(s) first."
        )

    clear_team_products(session, team_id)
    session.delete(team)
    session.commit()

    logger.info(f"Team {team_id} deleted by user {current_user.user_id}")
    return success_response(None, message="Team deleted successfully")


# ==================== TEAM PRODUCTS ====================

@router.get("/{team_id}/products")
def get_team_products(
    team_id: int,
    current_user: TokenData = Depends(require_staff),
    session: Session = Depends(get_session)
):
    """All active products, flagged with whether the team carries them"""
    team = get_team_or_404(session, team_id)
    ensure_team_access(current_user, team)

    products = session.exec(
        select(Product).where(Product.status == RecordStatus.ACTIVE.value).order_by(Product.name)
    ).all()
    assigned_ids = set(session.exec(
        select(TeamProduct.product_id).where(
            TeamProduct.team_id == team_id, TeamProduct.status == RecordStatus.ACTIVE.value
        )
    ).all())

    items = []
    for product in products:
        item = ProductResponse.model_validate(product).model_dump()
        item["is_assigned"] = product.id in assigned_ids
        items.append(item)

    return success_response({
        "team": {"id": team.id, "name": team.name, "district_id": team.district_id},
        "products": items,
        "total_products": len(items),
        "assigned_count": sum(1 for item in items if item["is_assigned"]),
    })

@router.post("/{team_id}/products")
def set_team_products(
    team_id: int,
    payload: TeamProductsUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Replace the team's product assignments"""
    team = get_team_or_404(session, team_id)

    if not isinstance(payload.product_ids, list) or not all(isinstance(p, int) for p in payload.product_ids):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="product_ids must be an array"
        )
    product_ids = list(dict.fromkeys(payload.product_ids))

    if product_ids:
        found = set(session.exec(select(Product.id).where(Product.id.in_(product_ids))).all())
        missing = [p for p in product_ids if p not in found]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown product IDs: {', '.join(str(p) for p in missing)}"
            )

    clear_team_products(session, team_id)
    session.flush()
    for product_id in product_ids:
        session.add(TeamProduct(team_id=team_id, product_id=product_id, assigned_by=current_user.user_id))
    session.commit()

    logger.info(f"Team {team.id} now carries {len(product_ids)} product(s)")
    return success_response(
        {"team_id": team.id, "product_ids": product_ids, "assigned_count": len(product_ids)},
        message="Team products updated successfully"
    )
