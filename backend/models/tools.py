"""Shared models for the tool relay API."""

from pydantic import BaseModel, field_validator
from typing import Any, Optional


class TriggerToolRequest(BaseModel):
    """Inbound body for POST /trigger-tool."""
    user_id: str
    tool_id: str
    input: Any = None

    @field_validator("user_id", "tool_id")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""
    error: str
    detail: Optional[str] = None
    retryable: bool = False
    downstream_status: Optional[int] = None
    downstream_body: Optional[Any] = None
