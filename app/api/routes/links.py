from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from app.api.dependencies import get_link_service
from app.core.auth import require_admin_secret
from app.core.rate_limit import enforce_rate_limit
from app.schemas.links import CreateLinkRequest, LinkResponse
from app.services.link_service import LinkService

router = APIRouter(prefix="/links", tags=["Links"])

LinkServiceDep = Annotated[LinkService, Depends(get_link_service)]


@router.post(
    "",
    response_model=LinkResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_rate_limit)],
)
def create_link(body: CreateLinkRequest, service: LinkServiceDep) -> LinkResponse:
    """Create a short link.

    Raises:
        ValidationAppError: 400 for a malformed URL or unknown ttl.
        ConflictAppError: 503 if no unique code could be allocated.
    """
    link = service.create(body.url, body.ttl)
    return LinkResponse.from_link(link, service.short_url(link))


@router.get(
    "",
    response_model=list[LinkResponse],
    dependencies=[Depends(enforce_rate_limit), Depends(require_admin_secret)],
)
def list_links(service: LinkServiceDep) -> list[LinkResponse]:
    """List links that have not expired, newest first."""
    return [LinkResponse.from_link(link, service.short_url(link)) for link in service.list()]


@router.delete(
    "/{link_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    dependencies=[Depends(enforce_rate_limit), Depends(require_admin_secret)],
)
def delete_link(link_id: str, service: LinkServiceDep) -> Response:
    """Delete a link by id (404 if it does not exist)."""
    service.delete(link_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
