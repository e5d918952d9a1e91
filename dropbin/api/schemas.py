from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from dropbin.domain.access_policy import as_utc


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten pydantic errors into one human-readable message."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


class PasteCreateForm(BaseModel):
    """Form fields of the multipart create request (the file travels separately)."""

    user_id: str = Field(..., min_length=1, description="Owner of the paste")
    expires_in: float = Field(
        ...,
        gt=0,
        allow_inf_nan=False,
        description="Lifetime in minutes (> 0)",
    )
    password: Optional[str] = Field(
        default=None,
        description="Optional plaintext password protecting the paste",
    )
    max_views: Optional[int] = Field(default=None, ge=0, description="View ceiling")
    max_downloads: Optional[int] = Field(
        default=None, ge=0, description="Download ceiling"
    )

    @field_validator("password", "max_views", "max_downloads", mode="before")
    @classmethod
    def _blank_as_missing(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class UserCreateRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    nickname: str = Field(..., min_length=1)


class PasteMetadata(BaseModel):
    slug: str
    filename: str
    mimetype: str
    created_at: datetime
    expires_at: Optional[datetime]
    view_count: int
    download_count: int
    max_views: Optional[int]
    max_downloads: Optional[int]
    password_protected: bool

    @field_validator("created_at", "expires_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None


class PasteSummary(PasteMetadata):
    expired: bool
    view_url: str
    download_url: str


class PasteCreatedResponse(BaseModel):
    url: str
    slug: str
    protected: bool
    expires_at: datetime


class HealthResponse(BaseModel):
    status: str = "ok"
