"""
Main Application Entry Point.

This module builds the FastAPI application. The lifespan resolves the feature
set, binds the backend registry and wires hooks through
``forkline.fork.bootstrap``; a configuration conflict aborts startup.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from forkline import __version__
from forkline.core.config import Settings
from forkline.core.logging_config import get_logger

from ..bootstrap import ForkRuntime, build_runtime, start_runtime, stop_runtime
from .api.v1 import deliveries, features, health, hooks
from .api.v1.accounts import messages
from .constant import API_V1_STR, PROJECT_NAME
from .exception_handlers import setup_exception_handlers

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None, runtime: Optional[ForkRuntime] = None) -> FastAPI:
    """
    Create the management application.

    Args:
        settings: Settings used to build the runtime at startup.
        runtime: A prebuilt runtime; takes precedence over ``settings``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting up Forkline management server...")
        current = runtime or build_runtime(settings)
        await start_runtime(current)
        app.state.runtime = current
        logger.info("Backends initialized successfully")

        yield

        logger.info("Shutting down Forkline management server...")
        await stop_runtime(current)
        app.state.runtime = None

    app = FastAPI(
        title=PROJECT_NAME,
        description="Forkline management API: feature set, hook wiring and local delivery.",
        version=__version__,
        openapi_url=f"{API_V1_STR}/openapi.json",
        docs_url=f"{API_V1_STR}/docs",
        redoc_url=f"{API_V1_STR}/redoc",
        lifespan=lifespan,
    )
    setup_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(features.router, prefix=f"{API_V1_STR}/features", tags=["features"])
    app.include_router(hooks.router, prefix=f"{API_V1_STR}/hooks", tags=["hooks"])
    app.include_router(deliveries.router, prefix=f"{API_V1_STR}/deliveries", tags=["deliveries"])
    app.include_router(messages.router, prefix=f"{API_V1_STR}/accounts", tags=["accounts"])
    return app
