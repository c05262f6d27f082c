"""Pydantic schemas for link endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.domain.link import Link


class CreateLinkRequest(BaseModel):
    """Body of ``POST /api/v1/links``."""

    url: str = Field(
        ...,
        description="Absolute http/https URL to shorten.",
        examples=["https://example.com/a"],
    )
    ttl: str | None = Field(
        default=None,
        description="Lifetime preset: 1_week, 1_month, 1_year or never. Defaults to the configured preset.",
    )


class LinkResponse(BaseModel):
    """A short link as returned by the API."""

    id: str = Field(..., description="Opaque link identifier (used for deletion).")
    short_code: str = Field(..., description="7-character Base56 code.")
    short_url: str = Field(..., description="Public URL that redirects to target_url.")
    target_url: str = Field(..., description="Redirect destination.")
    created_at: datetime = Field(..., description="Creation time (UTC).")
    expires_at: datetime | None = Field(
        default=None,
        description="Expiry time (UTC); null when the link never expires.",
    )

    @classmethod
    def from_link(cls, link: Link, short_url: str) -> "LinkResponse":
        return cls(
            id=link.id,
            short_code=link.short_code,
            short_url=short_url,
            target_url=link.target_url,
            created_at=link.created_at,
            expires_at=link.expires_at,
        )
