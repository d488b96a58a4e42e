"""
Main FastAPI application for the WhatsApp Concierge bot.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import admin, webhook
from .services import Services
from .channels import ChannelProvider
from .middleware.metrics import MetricsMiddleware, metrics_endpoint
from config.logging_config import setup_logging
from config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("WhatsApp Concierge starting up...")
    services: Services = app.state.services
    services.initialize()
    logger.info(f"WhatsApp Concierge ready ({services.channel.name} channel)")
    yield
    logger.info(
        f"WhatsApp Concierge shutting down with {services.store.count()} active sessions..."
    )


def create_app(
    settings: Optional[Settings] = None,
    channel: Optional[ChannelProvider] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title=settings.api_title,
        description="WhatsApp Cloud API concierge: menus, meeting booking, lead qualification and human handover.",
        version=settings.api_version,
        docs_url="/docs",
        redoc_url="/redoc",
        debug=settings.debug,
        lifespan=lifespan,
    )

    services = Services(settings=settings, channel=channel)
    services.initialize()
    app.state.services = services

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics middleware
    app.add_middleware(MetricsMiddleware)

    # --- WhatsApp webhook (path registered with Meta) ---
    app.include_router(webhook.router, tags=["Webhook"])

    # --- Admin ---
    app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])

    # --- Prometheus metrics endpoint ---
    app.get("/metrics", tags=["Monitoring"])(metrics_endpoint)

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "service": settings.api_title,
            "version": settings.api_version,
            "status": "operational",
            "docs": "/docs",
        }

    # Health check
    @app.get("/health")
    async def health():
        return {
            "status": "healthy" if services.is_ready else "degraded",
            "services": services.health(),
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
