from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlmodel import Session, select, func
from database import get_session
from models import User, Distributor, City, UserRole, RecordStatus
from schemas import LoginRequest, DistrictBrief, TeamBrief
from auth import verify_password, create_access_token, build_token_claims
from dependencies import get_current_user, TokenData
from utils.response import success_response
from validators.business_rules import get_business_rules
from validators.field_validator import require_fields, normalize_email
from slowapi import Limiter
from slowapi.util import get_remote_address
import logging
import os

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])
limiter = Limiter(
    key_func=get_remote_address,
    enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true",
)

LOGIN_RATE_LIMIT = get_business_rules().LOGIN_RATE_LIMIT

@router.post("/login")
@limiter.limit(LOGIN_RATE_LIMIT)
def login(request: Request, credentials: LoginRequest, session: Session = Depends(get_session)):
    """Login a super admin or KAM"""
    require_fields("Email and password are required", credentials.email, credentials.password)

    email = normalize_email(credentials.email)
    user = session.exec(select(User).where(func.lower(User.email) == email)).first()
    if not user or not verify_password(credentials.password, user.password_hash):
        logger.warning(f"Failed login attempt for {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if user.status != RecordStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been deactivated"
        )

    token = create_access_token(build_token_claims(user, user.role))
    logger.info(f"User {user.id} ({user.role}) logged in")

    return success_response({
        "user": {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role,
            "team_id": user.team_id,
            "district_id": user.district_id,
        },
        "token": token,
    }, message="Login successful")

@router.post("/distributor-login")
@limiter.limit(LOGIN_RATE_LIMIT)
def distributor_login(request: Request, credentials: LoginRequest, session: Session = Depends(get_session)):
    """Login a distributor; the token is scoped to the distributor's city"""
    require_fields("Email and password are required", credentials.email, credentials.password)

    email = normalize_email(credentials.email)
    distributor = session.exec(select(Distributor).where(func.lower(Distributor.email) == email)).first()
    if not distributor or not verify_password(credentials.password, distributor.password_hash):
        logger.warning(f"Failed distributor login attempt for {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if distributor.status != RecordStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account is inactive. Please contact support."
        )

    city = session.exec(
        select(City).where(City.distributor_id == distributor.id).order_by(City.id)
    ).first()
    city_id = city.id if city else None

    token = create_access_token(build_token_claims(distributor, UserRole.DISTRIBUTOR.value, city_id=city_id))
    logger.info(f"Distributor {distributor.id} logged in")

    return success_response({
        "user": {
            "id": distributor.id,
            "email": distributor.email,
            "name": distributor.name,
            "phone": distributor.phone,
            "role": UserRole.DISTRIBUTOR.value,
            "city_id": city_id,
            "city_name": city.name if city else None,
        },
        "token": token,
    }, message="Login successful")

@router.get("/me")
def get_me(
    current_user: TokenData = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Get the account behind the current token"""
    if current_user.is_distributor:
        distributor = session.get(Distributor, current_user.user_id)
        if not distributor:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )
        return success_response({
            "id": distributor.id,
            "email": distributor.email,
            "name": distributor.name,
            "phone": distributor.phone,
            "role": UserRole.DISTRIBUTOR.value,
            "status": distributor.status,
            "cities": [{"id": c.id, "name": c.name} for c in distributor.cities],
        })

    user = session.get(User, current_user.user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return success_response({
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "status": user.status,
        "district_id": user.district_id,
        "team_id": user.team_id,
        "district": DistrictBrief.model_validate(user.district) if user.district else None,
        "team": TeamBrief.model_validate(user.team) if user.team else None,
    })
