from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from docsync.api.dependencies import get_sync_engine, get_watch_pipeline, shutdown_services
from docsync.api.document_routes import router as document_router
from docsync.api.health_routes import router as health_router
from docsync.api.index_routes import router as index_router
from docsync.api.search_routes import router as search_router
from docsync.api.sync_routes import router as sync_router
from docsync.logging_config import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Sync the repository on startup and keep watching it until shutdown."""
    logger.info("Starting up: initializing services")
    engine = get_sync_engine()
    await engine.initialize()
    engine.embedding_queue.start()
    await engine.sync_all()
    get_watch_pipeline().start()

    yield

    logger.info("Shutting down")
    await shutdown_services()


app = FastAPI(
    title="DocSync",
    description="Markdown repository sync with wiki-links and semantic search",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(sync_router)
app.include_router(document_router)
app.include_router(search_router)
app.include_router(index_router)
