"""
FastAPI application initialization
"""

import logging
from typing import Optional

from fastapi import FastAPI

from api.errors import handle_pipeline_exception
from api.middleware import RequestContextMiddleware
from api.routes import accounts, feed_items, health, webhooks
from core.config import settings, validate_settings
from core.database import get_session_factory
from core.exceptions import FeedPipelineException
from core.logging import setup_logging
from services.container import ServiceContainer, build_container

logger = logging.getLogger(__name__)


def create_app(container: Optional[ServiceContainer] = None, start_scheduler: bool = True) -> FastAPI:
    """
    Build the API application.

    Without a container the default one is built at startup from
    ``settings`` and the configured database.
    """
    app = FastAPI(
        title="feedpipe",
        description="Feed aggregation backend: subscriptions, push webhooks and feed item imports",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.container = container
    app.state.scheduler = None

    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(FeedPipelineException, handle_pipeline_exception)

    app.include_router(health.router)
    app.include_router(accounts.router)
    app.include_router(feed_items.router)
    app.include_router(webhooks.router)

    @app.on_event("startup")
    async def startup_event():
        """Application startup event"""
        setup_logging()
        if app.state.container is None:
            validate_settings(settings)
            app.state.container = build_container(settings, get_session_factory())
        else:
            validate_settings(app.state.container.settings)

        config = app.state.container.settings
        logger.info("Starting feedpipe API")
        logger.info(f"Environment: {config.ENVIRONMENT}")
        logger.info(f"Database: {config.DATABASE_URL.split('@')[1] if '@' in config.DATABASE_URL else 'configured'}")
        logger.info(f"Feed provider: {app.state.container.push_provider.name}")

        if start_scheduler:
            app.state.scheduler = app.state.container.make_scheduler()
            app.state.scheduler.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Application shutdown event"""
        logger.info("Shutting down feedpipe API")
        if app.state.scheduler is not None:
            app.state.scheduler.stop()

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "feedpipe API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
