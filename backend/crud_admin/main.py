"""
Admin application factory.

Usage:
    from crud_admin.main import create_app
    app = create_app(build_pool())
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from crud_admin.admin.pool import AdminPool
from crud_admin.controller.factory import ControllerFactory
from crud_admin.core.middlewares import register_middlewares
from crud_admin.models import Base
from crud_admin.routers.admin import build_admin_router
from crud_shared.config.logging import crud_admin_logger as logger
from crud_shared.config.logging import setup_logging
from crud_shared.config.settings import Settings, get_settings
from crud_shared.infrastructure.db import engine


def create_app(
    pool: AdminPool,
    app_settings: Settings | None = None,
    factory: ControllerFactory | None = None,
    create_tables: bool = True,
) -> FastAPI:
    app_settings = app_settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.
        Runs on startup and shutdown.
        """
        setup_logging()

        # Refuse to start with insecure defaults in production
        secret_errors = app_settings.validate_production_secrets()
        if secret_errors:
            for error in secret_errors:
                logger.error("Configuration error", error=error)
            if app_settings.environment == "production":
                raise RuntimeError(
                    f"Production configuration errors: {'; '.join(secret_errors)}. "
                    "Server will not start with insecure configuration."
                )
            logger.warning("Running with insecure defaults (acceptable for development only)")

        logger.info(
            "Starting admin",
            env=app_settings.environment,
            admins=len(pool.get_admins()),
            route_prefix=pool.route_prefix,
        )

        if create_tables:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables created/verified")

        yield

        logger.info("Shutting down admin")

    app = FastAPI(
        title=pool.title,
        description="CRUD administration",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.admin_pool = pool

    register_middlewares(
        app,
        session_secret=app_settings.session_secret,
        session_cookie=app_settings.session_cookie,
        max_age=app_settings.session_max_age,
    )

    app.include_router(build_admin_router(pool, factory or ControllerFactory(pool, app_settings=app_settings)))

    @app.get("/health")
    def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "service": "crud-admin",
            "environment": app_settings.environment,
        }

    return app
