import logging
from typing import Any, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import AuthenticationError, AuthorizationError
from .security_utils import TokenError, TokenExpiredError, decode_token, has_role

logger = logging.getLogger(__name__)

# auto_error=False so a missing header surfaces as our 401, not a 403
security = HTTPBearer(auto_error=False)


async def get_current_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict[str, Any]:
    """Verify the bearer token and return its claims {userId, email, role, ...}"""
    if not credentials:
        logger.warning("❌ No credentials provided")
        raise AuthenticationError(
            "Not authenticated. Please provide a valid Bearer token in the Authorization header."
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise AuthenticationError("Invalid token format. Expected a valid JWT token.")

    try:
        claims = decode_token(token)
    except TokenExpiredError as e:
        raise AuthenticationError(
            "Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except TokenError as e:
        raise AuthenticationError("Invalid token") from e

    if claims.get("tokenType") == "refresh" or not claims.get("userId"):
        logger.warning("❌ Token missing user claims or is a refresh token")
        raise AuthenticationError("Invalid token claims")

    logger.debug(f"✅ Token verified for user: {claims.get('email')}")
    return claims


def require_roles(*roles: str):
    """
    Dependency factory restricting an endpoint to the given roles.

    Example:
        @router.get("", dependencies=[Depends(require_roles("admin", "staff"))])
    """

    async def dependency(claims: dict[str, Any] = Depends(get_current_claims)) -> dict[str, Any]:
        if not has_role(claims, roles):
            logger.warning(
                f"⚠️ User {claims.get('email')} with role {claims.get('role')} denied; requires {roles}"
            )
            raise AuthorizationError()
        return claims

    return dependency
