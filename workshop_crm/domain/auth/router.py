"""Auth router - password login and refresh-token exchange"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...errors import AuthenticationError, ValidationError
from ...models import User
from ...security_utils import (
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_token,
    verify_password,
)
from .schemas import LoginRequest, RefreshRequest, TokenResponse, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        token=create_access_token(user),
        refreshToken=create_refresh_token(user),
        user=UserResponse(
            id=str(user.id),
            email=user.email,
            role=user.role,
            firstName=user.first_name,
            lastName=user.last_name,
            phone=user.phone,
        ),
    )


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: Session = Depends(get_db)):
    """Exchange email + password for an access/refresh token pair"""
    user = db.query(User).filter(User.email == data.email).first()
    if not user or not verify_password(data.password, user.password_hash):
        logger.warning(f"❌ Failed login attempt for {data.email}")
        raise AuthenticationError("Invalid credentials")

    logger.info(f"✅ User logged in: {user.email} ({user.role})")
    return _token_response(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(data: RefreshRequest, db: Session = Depends(get_db)):
    if not data.refreshToken:
        raise ValidationError("Refresh token is required")

    try:
        claims = decode_token(data.refreshToken)
    except TokenError as e:
        raise AuthenticationError("Invalid refresh token") from e

    if claims.get("tokenType") != "refresh":
        logger.warning("⚠️ Access token presented to refresh endpoint")
        raise AuthenticationError("Invalid refresh token")

    user = db.query(User).filter(User.id == claims.get("userId")).first()
    if not user:
        raise AuthenticationError("User not found")

    logger.info(f"🔄 Tokens refreshed for {user.email}")
    return _token_response(user)
