"""
FastAPI dependencies for authentication, admin access and service lookup.

The auth provider is Supabase Auth: a request is resolved to a user from the
access token in the Authorization header (Bearer) or the session cookie.
"""
import hashlib
import hmac
from typing import Optional
from fastapi import Depends, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .config import Settings
from .container import Services
from .errors import AdminAuthorizationError, Unauthenticated
from .security import verify_token
from ..schemas.auth import UserResponse


# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)

SESSION_COOKIES = ("sb-access-token", "access_token")

ADMIN_ACTOR_MAX_LENGTH = 64


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_services(request: Request) -> Services:
    return request.app.state.services


def _token_from_request(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    for name in SESSION_COOKIES:
        token = request.cookies.get(name)
        if token:
            return token
    return None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> UserResponse:
    """
    Dependency to get the current authenticated user.

    Checks the Authorization Bearer header first, then the session cookie.

    Raises:
        Unauthenticated: If no token is present or it does not verify
    """
    token = _token_from_request(request, credentials)
    if not token:
        raise Unauthenticated("No authentication provided. Send a Supabase access token.")

    payload = verify_token(token, settings)
    if not payload or not payload.get("sub"):
        raise Unauthenticated("Could not validate credentials")

    return UserResponse(
        id=payload["sub"],
        email=payload.get("email"),
        role=payload.get("role"),
    )


async def get_optional_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> Optional[UserResponse]:
    """
    Dependency to optionally get the current user (allows anonymous access).
    """
    try:
        return await get_current_user(request, credentials, settings)
    except Unauthenticated:
        return None


async def require_admin(
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
    x_admin_actor: Optional[str] = Header(None, alias="X-Admin-Actor"),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Dependency guarding admin routes.

    Returns the actor name used in the audit log: the X-Admin-Actor header
    when sent, otherwise a short fingerprint of the token.
    """
    if not settings.admin_enabled:
        raise AdminAuthorizationError("Admin operations are disabled (ADMIN_API_KEY not set)")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, settings.admin_api_key):
        raise AdminAuthorizationError()

    actor = (x_admin_actor or "").strip()[:ADMIN_ACTOR_MAX_LENGTH]
    if actor:
        return actor
    return "admin-token:" + hashlib.sha256(x_admin_token.encode()).hexdigest()[:8]
