from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])

SERVICE_NAME = "qrlink"


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Returns a simple status response to verify the API is operational.
    Used by load balancers and monitoring systems to determine service health.

    Returns:
        dict: ``{"status": "ok", "service": "qrlink"}``.
    """

    return {"status": "ok", "service": SERVICE_NAME}
