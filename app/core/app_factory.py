"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the lifecycle of the core components: the link store, link service, QR
renderer, rate limiter, admin gate and expiry sweeper are created when the
app starts and torn down when it stops. They live on ``app.state`` and are
handed to request handlers through dependencies.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.adapters.storage.sqlite import SQLiteLinkStore
from app.api.routes import health_router, links_router, qr_router, redirect_router
from app.core.auth import AdminGate
from app.core.config import Settings, settings as default_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import build_rate_limiter
from app.services.link_service import LinkService, utcnow
from app.services.qr_service import QRRenderer
from app.services.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create core components on startup and release them on shutdown.

    Raises:
        StorageAppError: If the database cannot be opened.
        RenderAppError: If a configured branding logo cannot be loaded.
    """
    cfg: Settings = app.state.settings
    clock: Callable[[], datetime] = app.state.clock

    logger.info("app.starting", extra={"app_env": cfg.app_env})

    store = SQLiteLinkStore.from_url(cfg.app.database_url)
    link_service = LinkService(
        store,
        base_url=cfg.app.base_url,
        default_ttl=cfg.app.default_ttl,
        max_collision_retries=cfg.app.max_collision_retries,
        clock=clock,
    )
    try:
        qr_renderer = QRRenderer.from_logo_path(
            cfg.app.qr_branding_logo,
            size=cfg.app.qr_size,
            logo_scale=cfg.app.qr_logo_scale,
        )
    except Exception:
        store.close()
        raise

    sweeper = ExpirySweeper(
        link_service,
        interval_seconds=cfg.app.cleanup_interval_minutes * 60,
    )

    app.state.link_store = store
    app.state.link_service = link_service
    app.state.qr_renderer = qr_renderer
    app.state.rate_limiter = build_rate_limiter(cfg.app)
    app.state.admin_gate = AdminGate(cfg.app.admin_secret)
    app.state.sweeper = sweeper

    sweeper.start()
    logger.info(
        "app.started",
        extra={
            "base_url": cfg.app.base_url,
            "admin_gate": app.state.admin_gate.enabled,
            "qr_logo": qr_renderer.logo is not None,
            "rate_limit_per_minute": cfg.app.rate_limit_per_minute,
            "sweep_interval_s": sweeper.interval_seconds,
        },
    )
    try:
        yield
    finally:
        await sweeper.stop()
        store.close()
        logger.info("app.stopped")


def create_app(
    settings: Settings | None = None,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Settings to use; defaults to the environment-loaded ones.
        clock: UTC time source for link creation, resolution and sweeps.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="qrlink",
        description=(
            "Short links with optional expiry and branded QR codes. "
            "Create links, follow them, render QR images for them or for any URL. "
            "Listing and deleting links may require the X-Delete-Secret header."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.clock = clock

    # Middleware
    app.middleware("http")(request_id_middleware)
    if cfg.app.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cfg.app.cors_allow_origins,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["Retry-After", cfg.log.request_id_header],
        )

    # Exception handlers
    setup_exception_handlers(app)

    # Routers: the short-code catch-all must come last
    app.include_router(health_router)
    app.include_router(links_router, prefix="/api/v1")
    app.include_router(qr_router, prefix="/api/v1")
    app.include_router(redirect_router)

    # OpenAPI customizations (security scheme, tags)
    apply_openapi_customizations(app)

    return app
