import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from vector_search.api.dependencies import (
    get_index_service,
    get_settings,
    initialize_services,
    shutdown_services,
)
from vector_search.api.health_routes import router as health_router
from vector_search.api.index_routes import router as index_router
from vector_search.api.search_routes import router as search_router
from vector_search.api.settings_routes import router as settings_router
from vector_search.logging_config import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Load the index on startup, start the file watcher, stop on shutdown."""
    logger.info("Starting up: initializing services")
    initialize_services()

    index_service = get_index_service()
    vault_path = get_settings().vault_path
    if os.path.isdir(vault_path):
        index_service.start_watcher()
    else:
        logger.warning("Vault path %s does not exist, file watcher disabled", vault_path)

    yield

    logger.info("Shutting down")
    index_service.stop_watcher()
    await shutdown_services()


app = FastAPI(
    title="Vault Vector Search",
    description="Local semantic search over a Markdown vault using Ollama embeddings",
    version="0.2.0",
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(index_router)
app.include_router(search_router)
app.include_router(settings_router)
