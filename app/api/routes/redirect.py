"""Public short-code routes. Registered last: ``/{short_code}`` is a catch-all."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import RedirectResponse

from app.api.dependencies import get_link_service, get_qr_renderer
from app.api.routes.qr import PNG_MEDIA_TYPE
from app.core.rate_limit import enforce_rate_limit
from app.services.link_service import LinkService
from app.services.qr_service import QRRenderer

router = APIRouter(tags=["Redirect"])


@router.get(
    "/{short_code}",
    response_class=RedirectResponse,
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    responses={404: {"description": "Unknown or expired short code"}},
    dependencies=[Depends(enforce_rate_limit)],
)
def redirect_short_code(
    short_code: str,
    service: Annotated[LinkService, Depends(get_link_service)],
) -> RedirectResponse:
    link = service.resolve(short_code)
    return RedirectResponse(link.target_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get(
    "/{short_code}/qr",
    response_class=Response,
    responses={200: {"content": {PNG_MEDIA_TYPE: {}}}, 404: {"description": "Unknown or expired short code"}},
    dependencies=[Depends(enforce_rate_limit)],
)
def short_code_qr(
    short_code: str,
    service: Annotated[LinkService, Depends(get_link_service)],
    renderer: Annotated[QRRenderer, Depends(get_qr_renderer)],
) -> Response:
    """QR code encoding the link's target URL."""
    link = service.resolve(short_code)
    return Response(content=renderer.render(link.target_url), media_type=PNG_MEDIA_TYPE)
