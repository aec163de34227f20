# src/discourse_near/main.py
"""Main entry point for the discourse-near application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from discourse_near import __version__
from discourse_near.api.v1 import (
    auth_router,
    callback_router,
    linkage_router,
    posts_router,
    system_router,
)
from discourse_near.core.log import configure_logging
from discourse_near.core.settings import Settings, get_settings
from discourse_near.services.container import ServiceContainer, build_container

logger = logging.getLogger(__name__)

DESCRIPTION = "Link NEAR accounts to Discourse users and post on their behalf"


def create_app(
    settings: Settings | None = None,
    container: ServiceContainer | None = None,
) -> FastAPI:
    """Build the FastAPI application and its service container."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        description=DESCRIPTION,
        version=settings.app_version,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.container = container or build_container(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(posts_router, prefix="/api/v1")
    app.include_router(linkage_router, prefix="/api/v1")
    app.include_router(system_router, prefix="/api/v1")
    app.include_router(callback_router)

    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Initializing %s", settings.app_name)
        logger.info("Discourse URL: %s", settings.discourse_url)
        logger.info("Application: %s", settings.application_name)
        await app.state.container.start()
        logger.info("Initialized successfully")

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await app.state.container.close()

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint to verify the service is running."""
        return {"status": "ok", "plugin": "discourse-near", "authMethod": "user-api"}

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with basic information about the API."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "description": DESCRIPTION,
            "docs": "/docs",
        }

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("discourse_near.main:create_app", factory=True, host="0.0.0.0", port=8000)
