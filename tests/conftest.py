import hashlib

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from qdrant_client import AsyncQdrantClient

from docsync.application.embedding_index import EmbeddingIndex
from docsync.application.embedding_queue import EmbeddingQueue
from docsync.application.sync_engine import SyncEngine
from docsync.infrastructure.chunker import Chunker
from docsync.infrastructure.link_resolver import LinkResolver
from docsync.infrastructure.markdown_parser import MarkdownParser
from docsync.infrastructure.qdrant_store import ContentStore
from docsync.main import app

TEST_EMBEDDING_DIM = 8


class FakeEmbeddingProvider:
    """Deterministic bag-of-words embedder with per-text overrides and failures."""

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        fail_on: set[str] | None = None,
    ) -> None:
        self.vectors = vectors or {}
        self.fail_on = fail_on or set()
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on or "*" in self.fail_on:
            raise RuntimeError(f"provider refused: {text[:20]}")
        if text in self.vectors:
            return list(self.vectors[text])
        vector = [0.0] * TEST_EMBEDDING_DIM
        for word in text.lower().split():
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16)
            vector[bucket % TEST_EMBEDDING_DIM] += 1.0
        vector[0] += 0.01
        return vector


@pytest.fixture()
def client() -> TestClient:
    """Provide a FastAPI test client."""
    return TestClient(app)


@pytest.fixture()
def fake_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture()
def make_provider():
    """Factory for providers with custom vectors or failures."""
    return FakeEmbeddingProvider


@pytest_asyncio.fixture()
async def store():
    """ContentStore over Qdrant local in-memory mode."""
    content_store = ContentStore(
        AsyncQdrantClient(location=":memory:"), embedding_dim=TEST_EMBEDDING_DIM
    )
    await content_store.ensure_collections()
    yield content_store
    await content_store.close()


@pytest.fixture()
def repo_path(tmp_path) -> str:
    path = tmp_path / "docs"
    path.mkdir()
    return str(path)


@pytest_asyncio.fixture()
async def engine(repo_path: str, store: ContentStore, fake_provider):
    """SyncEngine bound to a temporary repository, without git."""
    index = EmbeddingIndex(store, Chunker(), fake_provider)
    queue = EmbeddingQueue(index, store)
    sync_engine = SyncEngine(
        repo_path=repo_path,
        store=store,
        parser=MarkdownParser(),
        resolver=LinkResolver(),
        embedding_queue=queue,
    )
    await sync_engine.initialize()
    yield sync_engine
    await queue.stop()
