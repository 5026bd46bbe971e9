from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pastebin.domain.lifecycle import (
    MAX_CONTENT_CHARS,
    MAX_TITLE_CHARS,
    MAX_TTL_SECONDS,
    MAX_VIEWS_LIMIT,
)
from pastebin.services.paste_store import PasteRecord, PasteSummary


class PasteCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: str = Field(
        ...,
        max_length=MAX_CONTENT_CHARS,
        strict=True,
        description="Paste content",
    )
    title: Optional[str] = Field(
        default=None,
        max_length=MAX_TITLE_CHARS,
        strict=True,
        description="Optional descriptive title",
    )
    ttl_seconds: Optional[int] = Field(
        default=None,
        ge=0,
        le=MAX_TTL_SECONDS,
        strict=True,
        description="Optional time-to-live in seconds; 0 never expires",
    )
    max_views: Optional[int] = Field(
        default=None,
        ge=1,
        le=MAX_VIEWS_LIMIT,
        strict=True,
        description="Optional maximum allowed views (>= 1)",
    )

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content cannot be empty")
        return value

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class PasteCreatedResponse(BaseModel):
    id: str
    url: str
    title: Optional[str]
    created_at: datetime
    expires_at: Optional[datetime]
    max_views: Optional[int]

    @classmethod
    def from_record(cls, record: PasteRecord, url: str) -> "PasteCreatedResponse":
        return cls(
            id=record.id,
            url=url,
            title=record.title,
            created_at=record.created_at,
            expires_at=record.expires_at,
            max_views=record.max_views,
        )


class PasteViewResponse(BaseModel):
    id: str
    title: Optional[str]
    content: str
    remaining_views: Optional[int]
    expires_at: Optional[datetime]
    created_at: datetime
    view_count: int
    max_views: Optional[int]

    @classmethod
    def from_record(cls, record: PasteRecord) -> "PasteViewResponse":
        return cls(
            id=record.id,
            title=record.title,
            content=record.content,
            remaining_views=record.remaining_views,
            expires_at=record.expires_at,
            created_at=record.created_at,
            view_count=record.view_count,
            max_views=record.max_views,
        )


class PasteSummaryResponse(BaseModel):
    """Listing entry; field names are camelCase on the wire."""

    id: str
    title: Optional[str]
    created_at: datetime = Field(serialization_alias="createdAt")
    expires_at: Optional[datetime] = Field(serialization_alias="expiresAt")
    view_count: int = Field(serialization_alias="viewCount")
    max_views: Optional[int] = Field(serialization_alias="maxViews")

    @classmethod
    def from_summary(cls, summary: PasteSummary) -> "PasteSummaryResponse":
        return cls(
            id=summary.id,
            title=summary.title,
            created_at=summary.created_at,
            expires_at=summary.expires_at,
            view_count=summary.view_count,
            max_views=summary.max_views,
        )


class PasteListResponse(BaseModel):
    pastes: list[PasteSummaryResponse]


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: datetime
