from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlmodel import Session, select, func, or_
from typing import Optional
from datetime import datetime
from database import get_session
from models import User, Doctor, TeamProduct, UserRole, RecordStatus, STAFF_ROLES
from schemas import UserCreate, UserUpdate, UserResponse, StatusUpdate
from auth import get_password_hash
from dependencies import TokenData, require_super_admin
from utils.pagination import paginate, search_term
from utils.response import success_response
from validators.business_rules import get_business_rules
from validators.field_validator import require_fields, validate_record_status, normalize_email
from validators.assignment_validator import (
    get_district_or_404, validate_team_in_district, validate_single_active_kam,
    validate_email_available, assign_kam_to_unowned_doctors,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


def get_user_or_404(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user

def validate_role(role: Optional[str]) -> str:
    if role not in STAFF_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid role. Must be super_admin or kam"
        )
    return role

def validate_kam_assignment(
    session: Session,
    district_id: Optional[int],
    team_id: Optional[int],
    user_status: str,
    exclude_user_id: Optional[int] = None
) -> None:
    """A KAM needs a district and a team of that district, and must be the only active one there"""
    if not district_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="District is required for KAM role"
        )
    if not team_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Team is required for KAM role"
        )
    get_district_or_404(session, district_id)
    validate_team_in_district(session, team_id, district_id)
    if user_status == RecordStatus.ACTIVE.value:
        validate_single_active_kam(session, district_id, team_id, exclude_user_id=exclude_user_id)

def release_kam_doctors(session: Session, user: User) -> None:
    """Doctors owned by a KAM that is leaving its post become unowned"""
    for doctor in session.exec(select(Doctor).where(Doctor.kam_id == user.id)).all():
        doctor.kam_id = None
        session.add(doctor)

@router.get("")
def list_users(
    search: Optional[str] = None,
    role: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(get_business_rules().USERS_PAGE_SIZE, ge=1, le=get_business_rules().MAX_PAGE_SIZE),
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """List staff users (super admin only)"""
    query = select(User)
    if search:
        term = search_term(search)
        query = query.where(or_(func.lower(User.name).like(term), func.lower(User.email).like(term)))
    if role:
        query = query.where(User.role == role)
    if status_filter:
        query = query.where(User.status == status_filter)
    query = query.order_by(User.created_at.desc(), User.id.desc())

    users, pagination = paginate(session, query, page, limit)
    return success_response({
        "users": [UserResponse.model_validate(u) for u in users],
        "pagination": pagination,
    })

@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Create a super admin or KAM"""
    require_fields(
        "Email, password, name, and role are required",
        payload.email, payload.password, payload.name, payload.role,
    )
    role = validate_role(payload.role)
    user_status = validate_record_status(payload.status) if payload.status else RecordStatus.ACTIVE.value
    email = normalize_email(payload.email)
    validate_email_available(session, User, email)

    district_id = payload.district_id
    team_id = payload.team_id
    if role == UserRole.KAM.value:
        validate_kam_assignment(session, district_id, team_id, user_status)
    else:
        district_id = None
        team_id = None

    user = User(
        email=email,
        password_hash=get_password_hash(payload.password),
        name=payload.name.strip(),
        role=role,
        district_id=district_id,
        team_id=team_id,
        status=user_status,
    )
    session.add(user)
    session.flush()

    if role == UserRole.KAM.value and user_status == RecordStatus.ACTIVE.value:
        assigned = assign_kam_to_unowned_doctors(session, user)
        if assigned:
            logger.info(f"KAM {user.id} took over {assigned} unowned doctor(s)")

    session.commit()
    session.refresh(user)

    logger.info(f"User {user.id} ({role}) created by user {current_user.user_id}")
    return success_response(UserResponse.model_validate(user), message="User created successfully", status_code=status.HTTP_201_CREATED)

@router.get("/{user_id}")
def get_user(
    user_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    return success_response(UserResponse.model_validate(get_user_or_404(session, user_id)))

@router.put("/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    """Update a user; KAM assignment rules are re-checked against the result"""
    user = get_user_or_404(session, user_id)
    update_data = payload.model_dump(exclude_unset=True)

    if update_data.get("email"):
        update_data["email"] = normalize_email(update_data["email"])
        validate_email_available(session, User, update_data["email"], exclude_id=user_id)
    if "name" in update_data:
        require_fields("Name is required", update_data["name"])

    role = validate_role(update_data["role"]) if update_data.get("role") else user.role
    user_status = validate_record_status(update_data["status"]) if update_data.get("status") else user.status
    district_id = update_data["district_id"] if "district_id" in update_data else user.district_id
    team_id = update_data["team_id"] if "team_id" in update_data else user.team_id

    was_active_kam = user.role == UserRole.KAM.value and user.status == RecordStatus.ACTIVE.value
    previous_post = (user.district_id, user.team_id)

    if role == UserRole.KAM.value:
        validate_kam_assignment(session, district_id, team_id, user_status, exclude_user_id=user_id)
    else:
        district_id = None
        team_id = None

    password = update_data.pop("password", None)
    if password:
        user.password_hash = get_password_hash(password)
    for key in ("email", "name"):
        if update_data.get(key) is not None:
            setattr(user, key, update_data[key])
    user.role = role
    user.status = user_status
    user.district_id = district_id
    user.team_id = team_id
    user.updated_at = datetime.utcnow()

    is_active_kam = role == UserRole.KAM.value and user_status == RecordStatus.ACTIVE.value
    if was_active_kam and (not is_active_kam or previous_post != (district_id, team_id)):
        release_kam_doctors(session, user)
    session.add(user)
    session.flush()
    if is_active_kam:
        assign_kam_to_unowned_doctors(session, user)

    session.commit()
    session.refresh(user)
    return success_response(UserResponse.model_validate(user), message="User updated successfully")

@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    user = get_user_or_404(session, user_id)
    if user.id == current_user.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account"
        )

    release_kam_doctors(session, user)
    for assignment in session.exec(select(TeamProduct).where(TeamProduct.assigned_by == user_id)).all():
        assignment.assigned_by = None
        session.add(assignment)
    session.delete(user)
    session.commit()

    logger.info(f"User {user_id} deleted by user {current_user.user_id}")
    return success_response(None, message="User deleted successfully")

@router.patch("/{user_id}/status")
def update_user_status(
    user_id: int,
    payload: StatusUpdate,
    current_user: TokenData = Depends(require_super_admin),
    session: Session = Depends(get_session)
):
    user = get_user_or_404(session, user_id)
    new_status = validate_record_status(payload.status)

    if user.role == UserRole.KAM.value:
        if new_status == RecordStatus.ACTIVE.value:
            validate_single_active_kam(session, user.district_id, user.team_id, exclude_user_id=user_id)
        else:
            release_kam_doctors(session, user)

    user.status = new_status
    user.updated_at = datetime.utcnow()
    session.add(user)
    session.flush()
    if user.role == UserRole.KAM.value and new_status == RecordStatus.ACTIVE.value:
        assign_kam_to_unowned_doctors(session, user)

    session.commit()
    session.refresh(user)

    action = "activated" if user.status == RecordStatus.ACTIVE.value else "deactivated"
    return success_response(UserResponse.model_validate(user), message=f"User {action} successfully")
