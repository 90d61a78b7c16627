"""
Password hashing and JWT helpers for the dashboard's session tokens
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import ExpiredSignatureError, JWTError
from jose import jwt as jose_jwt
from passlib.context import CryptContext

from .config import (
    ACCESS_TOKEN_EXPIRE_HOURS,
    JWT_ALGORITHM,
    JWT_SECRET,
    REFRESH_TOKEN_EXPIRE_DAYS,
)

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class TokenError(Exception):
    """Raised when a token cannot be decoded or verified"""


class TokenExpiredError(TokenError):
    pass


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against bcrypt hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# TOKEN GENERATION & VALIDATION
# ============================================================================


def _encode(payload: dict[str, Any], expires_delta: timedelta) -> str:
    to_encode = payload.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({"iat": now, "exp": now + expires_delta})
    return jose_jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_access_token(user, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create the dashboard access token for a user.

    Claims: userId, email, role, firstName, lastName.
    """
    payload = {
        "userId": str(user.id),
        "email": user.email,
        "role": user.role,
        "firstName": user.first_name,
        "lastName": user.last_name,
    }
    return _encode(payload, expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))


def create_refresh_token(user, expires_delta: Optional[timedelta] = None) -> str:
    payload = {"userId": str(user.id), "tokenType": "refresh"}
    return _encode(payload, expires_delta or timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))


def decode_token(token: str) -> dict[str, Any]:
    """
    Verify and decode a JWT token

    Raises:
        TokenExpiredError: token signature valid but expired
        TokenError: any other verification failure
    """
    try:
        return jose_jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenExpiredError("Token expired") from e
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise TokenError("Invalid token") from e


def has_role(claims: dict[str, Any], allowed_roles) -> bool:
    """True when no roles are required or the claims' role is one of them"""
    if not allowed_roles:
        return True
    return claims.get("role") in allowed_roles
