"""Process configuration, loaded once at startup."""

import os
from typing import List, Mapping, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator


LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


class Settings(BaseModel):
    n8n_webhook_url: str
    n8n_webhook_token: str
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = Field(1440, gt=0)
    allowed_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    relay_timeout_seconds: float = Field(30.0, gt=0)
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    log_level: str = "INFO"

    @field_validator("n8n_webhook_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return value

    @field_validator("n8n_webhook_token", "jwt_secret_key")
    @classmethod
    def _check_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(LOG_LEVELS)}")
        return level

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)


# env var name -> Settings field
REQUIRED_VARS = {
    "N8N_WEBHOOK_URL": "n8n_webhook_url",
    "N8N_WEBHOOK_TOKEN": "n8n_webhook_token",
    "JWT_SECRET_KEY": "jwt_secret_key",
}

OPTIONAL_VARS = {
    "JWT_ALGORITHM": "jwt_algorithm",
    "JWT_EXPIRATION_MINUTES": "jwt_expiration_minutes",
    "RELAY_TIMEOUT_SECONDS": "relay_timeout_seconds",
    "SUPABASE_URL": "supabase_url",
    "SUPABASE_SERVICE_KEY": "supabase_service_key",
    "LOG_LEVEL": "log_level",
}


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    When no mapping is given, a local .env file is loaded first (real
    environment variables win) and os.environ is used.
    """
    if env is None:
        load_dotenv(find_dotenv(usecwd=True), override=False)
        env = os.environ

    missing = [name for name in REQUIRED_VARS if not env.get(name)]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    values = {field: env[name] for name, field in REQUIRED_VARS.items()}
    for name, field in OPTIONAL_VARS.items():
        if env.get(name):
            values[field] = env[name]

    origins = env.get("ALLOWED_ORIGINS")
    if origins:
        values["allowed_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
