"""
API schemas: response envelopes, RFC 7807 errors, and review payloads.

Every 2xx response is a :class:`SuccessResponse` (``{"data": ...}``);
every 4xx/5xx response is a :class:`ProblemDetail`.

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ProblemDetail(BaseModel):
    """RFC 7807 problem details for non-2xx responses."""

    type: str = Field(default="about:blank", description="Error type URI")
    title: str = Field(description="Short human-readable error summary")
    status: int = Field(description="HTTP status code")
    detail: str = Field(default="", description="Human-readable explanation of the error")
    instance: str = Field(default="", description="URI of the failing request")
    context: dict[str, Any] = Field(default_factory=dict, description="Structured error context")


class SuccessResponse(BaseModel, Generic[T]):
    """Standard success envelope."""

    data: T = Field(description="Response payload (type varies by endpoint)")
    warnings: list[str] = Field(default_factory=list, description="Non-fatal warnings")


class ArchiveRequest(BaseModel):
    """Body of ``POST /review/archive``."""

    sprint_name: str = Field(min_length=1, description="Sprint label; folder becomes {prefix}{sprint_name}")


class ProcessingLogSchema(BaseModel):
    file_id: str
    file_name: str
    action: str
    status: str = Field(description="'success' | 'error'")
    details: str = ""
    timestamp: str
    retry_count: int = 0


class ErrorLogSchema(BaseModel):
    action: str
    error: str
    file_id: str | None = None
    timestamp: str
    level: str = "error"


class ProcessingStatSchema(BaseModel):
    """Count and latest timestamp per (action, status)."""

    action: str
    status: str
    count: int
    last_timestamp: str | None = None


class DriveItemSchema(BaseModel):
    id: str
    name: str
    url: str = ""
    created_at: str = ""
    uploader: str = ""
    size: int = 0


class ReviewRowSchema(BaseModel):
    """A review table row keyed by field name."""

    index: int | None = Field(default=None, description="Row position when listed")
    fields: dict[str, Any]


__all__ = [
    "ArchiveRequest",
    "DriveItemSchema",
    "ErrorLogSchema",
    "ProblemDetail",
    "ProcessingLogSchema",
    "ProcessingStatSchema",
    "ReviewRowSchema",
    "SuccessResponse",
]
