# ============================================================================
# FILE: app/api/dependencies.py
# Authentication and shared service dependencies
# ============================================================================
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from uuid import UUID

from app.config.database import get_db
from app.config.settings import settings
from app.core.exceptions import UnauthorizedError
from app.models.user import User
from app.services.availability.availability_cache import AvailabilityCache, get_availability_cache
from app.utils.clock import Clock, get_clock

__all__ = [
    "create_access_token",
    "verify_access_token",
    "get_current_user",
    "optional_current_user",
    "get_availability_cache",
    "get_clock",
    "AvailabilityCache",
    "Clock",
]

# ============================================================================
# Security Schemes
# ============================================================================

# Missing credentials are reported as 401 by get_current_user itself
jwt_security = HTTPBearer(
    scheme_name="JWT Bearer Token",
    description="Enter your JWT access token",
    auto_error=False,
)


# ============================================================================
# JWT Token Functions
# ============================================================================

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary with claims (should include 'sub' with the owner's user id)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode.update({
        "exp": expire,
        "iat": now,
        "type": "access"
    })

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def verify_access_token(token: str) -> dict:
    """
    Verify and decode a JWT access token.

    Raises:
        UnauthorizedError: If token is invalid, expired or not an access token
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        raise UnauthorizedError("Could not validate credentials", context={"reason": str(e)})

    if payload.get("type") != "access":
        raise UnauthorizedError("Invalid token type")

    return payload


def _user_from_token(db: Session, token: str) -> User:
    payload = verify_access_token(token)

    user_id_str: Optional[str] = payload.get("sub")
    if user_id_str is None:
        raise UnauthorizedError("Could not validate credentials")

    try:
        user_id = UUID(user_id_str)
    except ValueError:
        raise UnauthorizedError("Invalid user ID in token")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        raise UnauthorizedError("User not found")

    return user


# ============================================================================
# JWT Authentication Dependencies
# ============================================================================

def get_current_user(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(jwt_security),
        db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get the current owner from a JWT access token.

    Raises:
        UnauthorizedError: If no token is supplied, it is invalid, or the user is unknown
    """
    if not credentials:
        raise UnauthorizedError("Authentication required")
    return _user_from_token(db, credentials.credentials)


def optional_current_user(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(jwt_security),
        db: Session = Depends(get_db)
) -> Optional[User]:
    """
    Optional JWT authentication dependency.
    Returns the owner when a token is supplied, None when it is absent.
    A supplied but invalid token is still rejected.
    """
    if not credentials:
        return None
    return _user_from_token(db, credentials.credentials)
