from typing import List, Optional
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, ValidationError
from models import UserRole
from auth import decode_token

security = HTTPBearer(auto_error=False)

class TokenData(BaseModel):
    """Identity and scope carried by a verified access token"""
    user_id: int
    email: str
    role: UserRole
    team_id: Optional[int] = None
    district_id: Optional[int] = None
    city_id: Optional[int] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN

    @property
    def is_kam(self) -> bool:
        return self.role == UserRole.KAM

    @property
    def is_distributor(self) -> bool:
        return self.role == UserRole.DISTRIBUTOR

def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> TokenData:
    """Verify the bearer token and return its claims.

    Authorisation is stateless: the database is not consulted, so a
    deactivated account keeps working until its token is discarded.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided"
        )

    payload = decode_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    try:
        user = TokenData(
            user_id=payload.get("userId"),
            email=payload.get("email"),
            role=payload.get("role"),
            team_id=payload.get("team_id"),
            district_id=payload.get("district_id"),
            city_id=payload.get("city_id"),
        )
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    # Store user in request state for request logging middleware
    request.state.user = user

    return user

def require_roles(allowed_roles: List[UserRole]):
    """Dependency factory for role-based access control"""
    def role_checker(current_user: TokenData = Depends(get_current_user)) -> TokenData:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return current_user
    return role_checker

# Convenience dependencies for common role checks
require_super_admin = require_roles([UserRole.SUPER_ADMIN])
require_staff = require_roles([UserRole.SUPER_ADMIN, UserRole.KAM])
require_order_access = require_roles([UserRole.SUPER_ADMIN, UserRole.DISTRIBUTOR])
