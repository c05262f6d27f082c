"""Pydantic schemas for standalone QR rendering."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CreateQRRequest(BaseModel):
    """Body of ``POST /api/v1/qr``; nothing is persisted."""

    url: str = Field(
        ...,
        description="Absolute http/https URL to encode.",
        examples=["https://example.com/landing"],
    )
