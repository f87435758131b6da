"""
JWT Authentication middleware for Supabase Auth.

Validates JWTs from Supabase and extracts the caller for route handlers.
Role checks load the caller's profile row.
"""

from dataclasses import dataclass
from typing import Optional

import jwt
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client

from app.api.deps import get_db
from app.config import get_settings
from app.db.repository import ProfileRepository

logger = structlog.get_logger()

security = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    """Identity extracted from a validated Supabase access token."""

    user_id: str
    email: str | None
    access_token: str
    role: str | None = None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    """
    Validate Supabase JWT and return the caller.

    Raises 401 if token is missing or invalid.

    Usage:
        @router.get("/protected")
        async def protected_route(auth: AuthenticatedUser = Depends(get_current_user)):
            ...
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Silakan login terlebih dahulu.",
        )
    return _validate_token(credentials.credentials)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthenticatedUser]:
    """
    Optionally validate Supabase JWT.

    Returns None if no token provided (useful for routes that work
    both with and without auth).
    """
    if credentials is None:
        return None
    return _validate_token(credentials.credentials)


def _validate_token(token: str) -> AuthenticatedUser:
    """
    Validate a Supabase JWT.

    Raises:
        HTTPException(401): If token is invalid, expired, or missing required claims
    """
    jwt_secret = get_settings().supabase_jwt_secret

    if not jwt_secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server auth configuration error",
        )

    try:
        # Supabase uses HS256 and the 'authenticated' audience
        payload = jwt.decode(
            token,
            jwt_secret,
            algorithms=["HS256"],
            audience="authenticated",
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        )
    except jwt.InvalidAudienceError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token audience",
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user identifier",
        )

    return AuthenticatedUser(user_id=user_id, email=payload.get("email"), access_token=token)


def require_role(*roles: str):
    """
    Dependency factory: the caller's profile must carry one of ``roles``.

    Usage:
        @router.get("/venue-only")
        async def handler(auth: AuthenticatedUser = Depends(require_role("venue_partner"))):
            ...
    """

    async def dependency(
        auth: AuthenticatedUser = Depends(get_current_user),
        db: Client = Depends(get_db),
    ) -> AuthenticatedUser:
        profile = ProfileRepository(db).get(auth.user_id)
        role = (profile or {}).get("role")
        if role not in roles:
            logger.warning("Role check failed", user_id=auth.user_id, role=role, required=roles)
            if roles == ("admin",):
                detail = "Akses ditolak. Hanya admin yang diizinkan."
            else:
                detail = "Akses ditolak. Hanya venue partner yang diizinkan."
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        auth.role = role
        return auth

    return dependency


require_admin = require_role("admin")
require_venue_partner = require_role("venue_partner", "admin")
