"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import appointments, distances, health, vehicles
from .config import settings
from .services.tracking import TrackingService, build_tracking_service


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs full request URLs at INFO and Mapbox URLs carry the access token
    logging.getLogger("httpx").setLevel(logging.WARNING)


def create_app(service: TrackingService | None = None) -> FastAPI:
    configure_logging(settings.log_level)
    tracking = service or build_tracking_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        tracking.start()
        try:
            yield
        finally:
            tracking.stop()

    app = FastAPI(title=settings.app_name, root_path="", lifespan=lifespan)
    app.state.tracking = tracking

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
    app.include_router(vehicles.router, prefix=settings.api_prefix)
    app.include_router(appointments.router, prefix=settings.api_prefix)
    app.include_router(distances.router, prefix=settings.api_prefix)
    return app


app = create_app()
