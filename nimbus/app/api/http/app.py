"""FastAPI application factory.

Run with ``nimbus serve`` or ``uvicorn nimbus.app.api.http.app:create_app --factory``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

import nimbus
from nimbus.app.api.http.app_data import ApplicationDependencies, build_dependencies
from nimbus.app.api.http.errors import register_exception_handlers
from nimbus.app.api.http.middleware import request_context_middleware
from nimbus.app.api.http.routers import branches, deploy, health, projects, services
from nimbus.app.runtime.config.config_data import ConfigData
from nimbus.app.runtime.context import get_config
from nimbus.app.runtime.logging import configure_logging


def create_app(
    config: ConfigData | None = None,
    dependencies: ApplicationDependencies | None = None,
) -> FastAPI:
    """Build the API around one set of application dependencies.

    Args:
        config: Configuration to use, the process configuration when omitted
        dependencies: Pre-wired services, built from ``config`` when omitted
    """
    if config is None:
        config = dependencies.config if dependencies is not None else get_config()
    if dependencies is None:
        configure_logging(config)
        dependencies = build_dependencies(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        deps: ApplicationDependencies = app.state.app_dependencies
        deps.database_service.create_all()
        logger.info(
            f"Nimbus {nimbus.__version__} started "
            f"(environment={config.app.environment}, cluster={config.cluster.backend})"
        )
        try:
            yield
        finally:
            deps.database_service.dispose()
            logger.info("Nimbus stopped")

    app = FastAPI(title="Nimbus", version=nimbus.__version__, lifespan=lifespan)
    app.state.app_dependencies = dependencies

    register_exception_handlers(app)
    app.middleware("http")(request_context_middleware)

    app.include_router(health.router)
    app.include_router(deploy.router)
    app.include_router(branches.router)
    app.include_router(projects.router)
    app.include_router(services.router)
    return app
