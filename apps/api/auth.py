from typing import Optional
from jose import JWTError, jwt
import bcrypt
import os

# Security configuration
SECRET_KEY = os.getenv("JWT_SECRET")
if not SECRET_KEY:
    raise ValueError(
        "JWT_SECRET environment variable must be set. "
        "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
    )
ALGORITHM = "HS256"
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash using bcrypt directly"""
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Malformed hash stored for the account
        return False

def get_password_hash(password: str) -> str:
    """Generate password hash using bcrypt directly"""
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    ).decode('utf-8')

def create_access_token(data: dict) -> str:
    """Create a signed JWT carrying the identity and scope claims.

    Tokens have no expiry; they stay valid until the signing secret rotates.
    """
    to_encode = data.copy()
    if "userId" in to_encode:
        to_encode["userId"] = str(to_encode["userId"])
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def build_token_claims(account, role: str, city_id: Optional[int] = None) -> dict:
    """Claims for a staff user or distributor account"""
    claims = {
        "userId": str(account.id),
        "email": account.email,
        "role": role,
        "team_id": getattr(account, "team_id", None),
        "district_id": getattr(account, "district_id", None),
    }
    if city_id is not None:
        claims["city_id"] = city_id
    return claims

def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
