"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import delivery, health, webhooks
from .config import settings
from .services.delivery import DeliveryServices, build_delivery_services

logger = logging.getLogger(__name__)


def create_app(services: DeliveryServices | None = None) -> FastAPI:
    """Build the application.

    When ``services`` is omitted they are built from the environment at
    startup, failing fast if the Lalamove credentials are missing.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.delivery = services or build_delivery_services()
        logger.info("Delivery services initialised")
        try:
            yield
        finally:
            await app.state.delivery.aclose()
            logger.info("Delivery services shut down")

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    if settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Root endpoint for diagnostics
    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "api_prefix": settings.api_prefix,
            "health": f"{settings.api_prefix}/health",
            "docs": "/docs",
        }

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(delivery.router, prefix=settings.api_prefix)
    app.include_router(webhooks.router)
    return app


app = create_app()
