from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ResponseMeta(BaseModel):
    processing_time_ms: int
    timestamp: datetime


class ErrorLocation(BaseModel):
    field: str | None = None
    index: int | None = None


class SuggestedAction(BaseModel):
    action: str
    parameters: dict[str, Any] = Field(default_factory=dict)


class ErrorInfo(BaseModel):
    code: str
    message: str
    location: ErrorLocation | None = None
    retryable: bool = False
    suggested_fix: str | None = None  # Human-readable fix suggestion
    suggested_actions: list[SuggestedAction] = Field(default_factory=list)


class ErrorEnvelope(BaseModel):
    """Body of every non-2xx response."""

    request_id: str
    error: ErrorInfo
    meta: ResponseMeta
