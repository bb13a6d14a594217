"""
JWT Authentication for FastAPI
Validates HS256 bearer tokens and resolves admin access for the flag console.
"""
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from pydantic import BaseModel, ConfigDict
from coursehub.core.config import settings
from coursehub.core.container import inject
from coursehub.core.exceptions import AuthenticationError, AuthorizationError
from coursehub.services.user_store import UserStore
import logging

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


class AuthUser(BaseModel):
    """Authenticated user model extracted from JWT."""
    id: int
    email: str = ""
    role: str = "authenticated"

    model_config = ConfigDict(extra="ignore")


class JWTAuth:
    """JWT Authentication handler for HS256 tokens."""

    audience = "authenticated"

    def __init__(self, jwt_secret: Optional[str] = None):
        self.jwt_secret = jwt_secret
        if not self.jwt_secret:
            logger.warning("SUPABASE_JWT_SECRET not configured. Authenticated requests will be rejected.")

    def decode_token(self, token: str) -> dict:
        """Decode and validate a JWT token."""
        if not self.jwt_secret:
            logger.error("Authentication not configured")
            raise AuthenticationError("Authentication not configured")

        try:
            return jwt.decode(
                token,
                self.jwt_secret,
                algorithms=["HS256"],
                audience=self.audience,
                options={"verify_exp": True},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("JWT token has expired")
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid JWT token: {e}")
            raise AuthenticationError(f"Invalid token: {str(e)}")

    def get_user_from_token(self, token: str) -> AuthUser:
        """Extract user information from JWT payload."""
        payload = self.decode_token(token)

        subject = payload.get("sub")
        try:
            user_id = int(subject)
        except (TypeError, ValueError):
            raise AuthenticationError("User ID not found in token")

        return AuthUser(id=user_id, email=payload.get("email", ""), role=payload.get("role", "authenticated"))


# Global JWT auth instance
jwt_auth = JWTAuth(settings.supabase_jwt_secret)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthUser:
    """
    Dependency to get the current authenticated user.
    Use in routes: user: AuthUser = Depends(get_current_user)
    """
    logger.debug(f"Auth check for path: {request.url.path}")

    if not credentials:
        raise AuthenticationError("Authentication required")

    return jwt_auth.get_user_from_token(credentials.credentials)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Optional[AuthUser]:
    """
    Dependency to optionally get the current user.
    Returns None if no valid auth token provided.
    """
    if not credentials:
        return None

    try:
        return jwt_auth.get_user_from_token(credentials.credentials)
    except AuthenticationError:
        return None


async def require_admin(
    user: AuthUser = Depends(get_current_user),
    users: UserStore = Depends(inject("user_store")),
) -> AuthUser:
    """Dependency that only lets admins through."""
    attributes = await users.get_user_attributes(user.id)
    if not attributes or not attributes.is_admin:
        logger.warning(f"Admin access denied for user {user.id}")
        raise AuthorizationError("Admin access required")
    return user
