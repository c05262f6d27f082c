"""Request-scoped accessors for lifespan-owned components."""

from __future__ import annotations

from fastapi import Request

from app.services.link_service import LinkService
from app.services.qr_service import QRRenderer


def get_link_service(request: Request) -> LinkService:
    return request.app.state.link_service


def get_qr_renderer(request: Request) -> QRRenderer:
    return request.app.state.qr_renderer
