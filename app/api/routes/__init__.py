from __future__ import annotations

from app.api.routes.health import router as health_router
from app.api.routes.links import router as links_router
from app.api.routes.qr import router as qr_router
from app.api.routes.redirect import router as redirect_router

__all__ = ["health_router", "links_router", "qr_router", "redirect_router"]
