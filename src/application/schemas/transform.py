"""Text transform Pydantic models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TransformAction(str, Enum):
    """Rewrite operations offered by the editor."""

    SHORTEN = "shorten"
    LENGTHEN = "lengthen"


class TransformRequest(BaseModel):
    """Body of a transform call, after validation."""

    text: str = Field(..., description="Selected text to rewrite")


class TransformResult(BaseModel):
    """Success envelope returned by every transform route."""

    success: bool = Field(default=True)
    result: str = Field(..., description="Provider-generated rewrite")
    timestamp: str = Field(..., description="ISO-8601 UTC time of the response")


class ErrorEnvelope(BaseModel):
    error: str = Field(..., description="Short error title")
    message: str = Field(..., description="Detail, sanitized outside development")
    code: str
    timestamp: str
    request_id: str | None = None
    details: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: str
    uptime: float = Field(..., description="Seconds since process start")
    environment: str


class ReadyResponse(BaseModel):
    status: str = "ready"
    timestamp: str
