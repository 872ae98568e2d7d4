"""Authentication routes for session management."""

from fastapi import APIRouter, HTTPException, Depends
from typing import Dict
from config import Settings
from middleware.auth import get_settings, require_auth
from services.auth_service import create_jwt_token

router = APIRouter()


@router.get("/me")
def get_current_user_info(user: Dict = Depends(require_auth)):
    """Get current authenticated user information."""
    return {
        "id": user["user_id"],
        "email": user["email"],
        "name": user.get("name"),
        "avatar_url": user.get("avatar_url")
    }


@router.get("/status")
def auth_status(user: Dict = Depends(require_auth)):
    """Check authentication status."""
    return {
        "authenticated": True,
        "user_id": user["user_id"],
        "email": user["email"]
    }


@router.post("/refresh")
def refresh_token(
    user: Dict = Depends(require_auth),
    settings: Settings = Depends(get_settings)
):
    """Refresh JWT token."""
    try:
        new_token = create_jwt_token(user["user_id"], user["email"], settings)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Token refresh failed: {str(e)}")

    return {
        "access_token": new_token,
        "token_type": "bearer"
    }
