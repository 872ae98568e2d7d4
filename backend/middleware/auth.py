"""Authentication middleware for protecting routes."""

import logging
from fastapi import HTTPException, Request, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Dict, Any, Optional
from config import Settings
from services.auth_service import decode_jwt_token, get_user_by_id

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Settings object built at startup and attached to the app."""
    return request.app.state.settings


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings)
) -> Dict[str, Any]:
    """
    Dependency to get the current authenticated user from JWT token.

    Usage in routes:
        @router.get("/protected")
        def protected_route(current_user: Dict = Depends(get_current_user)):
            user_id = current_user["user_id"]
            email = current_user["email"]
            ...
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        payload = decode_jwt_token(credentials.credentials, settings)
    except ValueError as e:
        raise _unauthorized(str(e))

    user_id = payload.get("sub")
    email = payload.get("email")

    if not user_id or not email:
        raise _unauthorized("Invalid authentication credentials")

    user: Dict[str, Any] = {}
    if settings.supabase_enabled:
        # Verify user still exists in database
        try:
            user = get_user_by_id(user_id, settings)
        except Exception as e:
            logger.error("User lookup failed for %s: %s", user_id, e)
            raise _unauthorized("Could not validate credentials")
        if not user:
            raise _unauthorized("User not found")

    return {
        "user_id": user_id,
        "email": email,
        "name": user.get("name"),
        "avatar_url": user.get("avatar_url")
    }


def require_auth(current_user: Dict = Depends(get_current_user)) -> Dict[str, Any]:
    """
    Simplified dependency that just checks authentication.
    Returns the current user dict.
    """
    return current_user
