from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from app.api.dependencies import get_qr_renderer
from app.core.rate_limit import enforce_rate_limit
from app.schemas.qr import CreateQRRequest
from app.services.qr_service import QRRenderer
from app.utils.url_validators import validate_target_url

router = APIRouter(tags=["QR"])

PNG_MEDIA_TYPE = "image/png"


@router.post(
    "/qr",
    response_class=Response,
    responses={200: {"content": {PNG_MEDIA_TYPE: {}}}},
    dependencies=[Depends(enforce_rate_limit)],
)
def create_qr(
    body: CreateQRRequest,
    renderer: Annotated[QRRenderer, Depends(get_qr_renderer)],
) -> Response:
    """Render a QR code for an arbitrary URL without storing anything."""
    url = validate_target_url(body.url)
    return Response(content=renderer.render(url), media_type=PNG_MEDIA_TYPE)
