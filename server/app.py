"""FastAPI application factory."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from server.dependencies import get_config, get_orchestrator, get_search_service
from server.middleware import RequestIDMiddleware
from server.routes import fetch, health, search, tools
from utils.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup/shutdown logic."""
    logger.info("FastAPI server starting up")

    required_keys = ["API_KEYS"]
    missing = [k for k in required_keys if not os.getenv(k)]
    if missing:
        logger.warning(f"Missing environment variables: {missing}")

    config = get_config()
    if not config.validate():
        logger.warning("Search provider is not usable; /v1/search will return 503")
    logger.info("Enabled sources", extra={"extra_fields": config.describe_sources()})

    yield

    logger.info("FastAPI server shutting down")
    for dependency in (get_orchestrator, get_search_service):
        instance = getattr(dependency, "_instance", None)
        if instance is not None:
            instance.close()


def create_app() -> FastAPI:
    """Factory function to create FastAPI application."""
    app = FastAPI(
        title="ResearchRelay API",
        description="Web search and source-aware page retrieval for research agents",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(tools.router)
    app.include_router(search.router)
    app.include_router(fetch.router)

    return app
