"""Authentication service for verifying users and JWT tokens."""

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from supabase import create_client, Client

from config import Settings


@lru_cache(maxsize=4)
def get_supabase(url: str, service_key: str) -> Client:
    """Supabase client for the given project, created once per process."""
    return create_client(url, service_key)


def create_jwt_token(user_id: str, email: str, settings: Settings) -> str:
    """Create a JWT token for a user."""
    now = datetime.now(timezone.utc)
    expiration = now + timedelta(minutes=settings.jwt_expiration_minutes)

    payload = {
        "sub": user_id,  # subject (user_id)
        "email": email,
        "exp": expiration,
        "iat": now
    }

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_jwt_token(token: str, settings: Settings) -> Dict[str, Any]:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise ValueError(f"Invalid token: {str(e)}")


def get_user_by_id(user_id: str, settings: Settings) -> Optional[Dict[str, Any]]:
    """Get user by ID from the users table."""
    try:
        supabase = get_supabase(settings.supabase_url, settings.supabase_service_key)
        response = supabase.table("users").select("*").eq("id", user_id).execute()

        if response.data and len(response.data) > 0:
            return response.data[0]
        return None

    except Exception as e:
        raise Exception(f"Error fetching user: {str(e)}")
