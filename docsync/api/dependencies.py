import os

from docsync.application.embedding_index import EmbeddingIndex
from docsync.application.embedding_queue import EmbeddingQueue
from docsync.application.search_service import SearchService
from docsync.application.sync_engine import SyncEngine
from docsync.application.watch_pipeline import WatchPipeline
from docsync.domain.constants import DEFAULT_REPO_PATH
from docsync.infrastructure.chunker import Chunker
from docsync.infrastructure.embedding import DEFAULT_MODEL, EmbeddingProvider, FastEmbedProvider
from docsync.infrastructure.git_client import GitClient
from docsync.infrastructure.link_resolver import LinkResolver
from docsync.infrastructure.markdown_parser import MarkdownParser
from docsync.infrastructure.qdrant_store import ContentStore, build_client
from docsync.logging_config import get_logger

logger = get_logger(__name__)

_sync_engine: SyncEngine | None = None
_search_service: SearchService | None = None
_watch_pipeline: WatchPipeline | None = None

# Shared infrastructure singletons (created once, shared across engines)
_store: ContentStore | None = None
_index: EmbeddingIndex | None = None
_embedding_queue: EmbeddingQueue | None = None


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _build_provider() -> EmbeddingProvider | None:
    """Return the configured provider, or None when EMBEDDING_MODEL is empty."""
    model_name = os.getenv("EMBEDDING_MODEL", DEFAULT_MODEL).strip()
    if not model_name:
        logger.warning("EMBEDDING_MODEL is empty; search and reindexing are disabled")
        return None
    return FastEmbedProvider(model_name)


def get_store() -> ContentStore:
    """Return the singleton ContentStore, creating it on first call."""
    global _store  # noqa: PLW0603
    if _store is None:
        _store = ContentStore(build_client())
        logger.info("Initialized ContentStore")
    return _store


def _get_index() -> EmbeddingIndex:
    global _index  # noqa: PLW0603
    if _index is None:
        _index = EmbeddingIndex(get_store(), Chunker(), _build_provider())
    return _index


def _get_embedding_queue() -> EmbeddingQueue:
    global _embedding_queue  # noqa: PLW0603
    if _embedding_queue is None:
        _embedding_queue = EmbeddingQueue(_get_index(), get_store())
    return _embedding_queue


def build_sync_engine(repo_path: str) -> SyncEngine:
    """Build an engine bound to `repo_path` on top of the shared store and queue."""
    logger.info("Initializing SyncEngine with repository: %s", repo_path)
    return SyncEngine(
        repo_path=repo_path,
        store=get_store(),
        parser=MarkdownParser(),
        resolver=LinkResolver(),
        embedding_queue=_get_embedding_queue(),
        git=GitClient(repo_path, enabled=_env_flag("DOCS_AUTO_COMMIT", True)),
    )


def get_sync_engine() -> SyncEngine:
    """Return the singleton SyncEngine, creating it on first call."""
    global _sync_engine  # noqa: PLW0603
    if _sync_engine is None:
        _sync_engine = build_sync_engine(os.getenv("DOCS_REPO_PATH", DEFAULT_REPO_PATH))
    return _sync_engine


def get_search_service() -> SearchService:
    """Return the singleton SearchService, creating it on first call."""
    global _search_service  # noqa: PLW0603
    if _search_service is None:
        _search_service = SearchService(index=_get_index(), store=get_store())
        logger.info("Initialized SearchService")
    return _search_service


def get_watch_pipeline() -> WatchPipeline:
    """Return the WatchPipeline for the current engine, creating it on first call."""
    global _watch_pipeline  # noqa: PLW0603
    if _watch_pipeline is None:
        _watch_pipeline = WatchPipeline(get_sync_engine())
    return _watch_pipeline


async def rebind_repository(repo_path: str) -> SyncEngine:
    """Point the service at a different repository root.

    Stops watching the old root, builds a fresh engine for the new one, runs
    a full sync and resumes watching if the old pipeline was running.
    """
    global _sync_engine, _watch_pipeline  # noqa: PLW0603
    was_watching = _watch_pipeline is not None and _watch_pipeline.is_running
    if _watch_pipeline is not None:
        await _watch_pipeline.stop()

    engine = build_sync_engine(repo_path)
    await engine.initialize()
    _sync_engine = engine
    _watch_pipeline = WatchPipeline(engine)
    await engine.sync_all()
    if was_watching:
        _watch_pipeline.start()
    logger.info("Rebound repository to: %s", repo_path)
    return engine


async def shutdown_services() -> None:
    """Stop background work and release the store. Called from FastAPI lifespan."""
    if _watch_pipeline is not None:
        await _watch_pipeline.stop()
    if _embedding_queue is not None:
        await _embedding_queue.stop()
    if _store is not None:
        await _store.close()


def set_sync_engine(engine: SyncEngine | None) -> None:
    """Override the SyncEngine singleton (for testing)."""
    global _sync_engine  # noqa: PLW0603
    _sync_engine = engine


def set_search_service(service: SearchService | None) -> None:
    """Override the SearchService singleton (for testing)."""
    global _search_service  # noqa: PLW0603
    _search_service = service


def set_watch_pipeline(pipeline: WatchPipeline | None) -> None:
    """Override the WatchPipeline singleton (for testing)."""
    global _watch_pipeline  # noqa: PLW0603
    _watch_pipeline = pipeline
